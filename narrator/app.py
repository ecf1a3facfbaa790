'''
Camera client: live graded webcam window with face boxes and narrated subtitles.

Keys: SPACE=narrate, E=toggle enhancement, M=toggle music, ESC/Q=quit
'''
import asyncio
import logging
from typing import Callable, Optional

from .audio import AudioPlayer, BackgroundMusic
from .clients import NarrationClient, SpeechClient, fetch_music
from .config import Config, load_config
from .detection import Camera, DetectionLoop, FaceDetector, OpenCVWindow
from .errors import InitializationError, PlaybackError
from .models import Session
from .orchestrator import NarrationOrchestrator
from .overlay import OverlayRenderer

logger = logging.getLogger(__name__)

KEY_SPACE = 32
KEY_ESC = 27
ERROR_HOLD_SECONDS = 5.0


def set_status(session: Session, message: str, kind: str) -> None:
    session.set_status(message, kind)
    if kind == "error":
        logger.error(message)
    else:
        logger.info(message)


def make_key_handler(
    session: Session,
    orchestrator: NarrationOrchestrator,
    music: Optional[BackgroundMusic],
    quit_: Callable[[], None],
) -> Callable[[int], None]:
    def on_key(key: int) -> None:
        if key == KEY_SPACE:
            orchestrator.trigger()
        elif key in (ord("e"), ord("E")):
            session.enhancement_enabled = not session.enhancement_enabled
            logger.info("Enhancement: %s", "ON" if session.enhancement_enabled else "OFF")
        elif key in (ord("m"), ord("M")):
            if music is None:
                logger.info("No background music available")
                return
            try:
                playing = music.toggle()
            except PlaybackError as exc:
                logger.warning("%s", exc)
                return
            logger.info("Music %s", "playing" if playing else "paused")
        elif key in (KEY_ESC, ord("q"), ord("Q")):
            quit_()

    return on_key


def load_music(config: Config) -> Optional[BackgroundMusic]:
    if config.music_path.is_file():
        audio = config.music_path.read_bytes()
    else:
        audio = fetch_music(config.server_url)
    if audio is None:
        return None
    try:
        return BackgroundMusic.from_bytes(audio, volume=config.music_volume)
    except PlaybackError as exc:
        logger.warning("Background music unavailable: %s", exc)
        return None


def show_status(display, renderer: OverlayRenderer, session: Session, config: Config) -> None:
    """Paint the current status on a blank frame while no camera frames are flowing."""
    display.show(renderer.status_frame(session.status, config.cam_width, config.cam_height))
    display.poll_key()


async def hold_error(display, seconds: float = ERROR_HOLD_SECONDS, poll: float = 0.05) -> None:
    """Keep an error frame up until a key is pressed or `seconds` pass."""
    waited = 0.0
    while waited < seconds:
        if display.poll_key() != 0xFF:
            return
        await asyncio.sleep(poll)
        waited += poll


async def run_client(config: Config) -> int:
    session = Session()
    display = OpenCVWindow(config.window_title)
    renderer = OverlayRenderer(config.subtitle_max_line_length)

    def report(message: str, kind: str) -> None:
        set_status(session, message, kind)
        show_status(display, renderer, session, config)

    report("Loading face detection model...", "loading")
    try:
        detector = FaceDetector.create(config.face_model_path)
    except InitializationError as exc:
        report(f"Error: {exc}", "error")
        await hold_error(display)
        display.close()
        return 1

    report("Model loaded! Starting webcam...", "loading")
    try:
        camera = Camera.open(config.cam_index, config.cam_width, config.cam_height)
    except InitializationError as exc:
        detector.close()
        report(f"Webcam error: {exc}", "error")
        await hold_error(display)
        display.close()
        return 1

    set_status(session, "Ready! Detecting faces...", "ready")

    orchestrator = NarrationOrchestrator(
        session,
        NarrationClient(config.server_url, config.request_timeout),
        SpeechClient(config.server_url, config.request_timeout),
        AudioPlayer(),
        config,
    )

    music = load_music(config)
    if music is not None:
        try:
            music.start()
        except PlaybackError:
            logger.info("Autoplay blocked - press M to start music")

    stop = asyncio.Event()
    failures = []

    def on_error(exc: Exception) -> None:
        failures.append(exc)
        stop.set()

    loop = DetectionLoop(
        session,
        camera,
        detector,
        renderer,
        display,
        on_key=make_key_handler(session, orchestrator, music, stop.set),
        on_error=on_error,
        refresh_hz=config.refresh_hz,
    )

    await loop.start()
    try:
        await stop.wait()
    finally:
        await loop.stop()
        await orchestrator.shutdown()
        if music is not None:
            music.stop()
        if failures:
            show_status(display, renderer, session, config)
            await hold_error(display)
        display.close()
    return 1 if failures else 0


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    config = load_config()
    logging.info("Using narration server %s", config.server_url)
    raise SystemExit(asyncio.run(run_client(config)))


if __name__ == "__main__":
    main()
