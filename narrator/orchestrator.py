'''
Single-flight narration cycle.

    idle -> countdown(3) -> countdown(2) -> countdown(1) -> capturing
         -> awaiting_narration -> awaiting_speech -> playing -> idle

A trigger is only accepted while idle. Every failure ends the cycle and drops
straight back to idle; nothing is retried. The render loop keeps running the
whole time and only ever sees the subtitle change in one assignment.
'''
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

from .config import CFG, Config
from .errors import InvalidTransition, PlaybackError, RemoteNarrationError, RemoteSpeechError
from .models import START_LABEL, ConversationEntry, NarrationPhase, NarrationState, Session
from .snapshot import snapshot_for_narration

logger = logging.getLogger(__name__)

P = NarrationPhase

ALLOWED = {
    P.IDLE: {P.COUNTDOWN},
    P.COUNTDOWN: {P.COUNTDOWN, P.CAPTURING, P.IDLE},
    P.CAPTURING: {P.AWAITING_NARRATION, P.IDLE},
    P.AWAITING_NARRATION: {P.AWAITING_SPEECH, P.IDLE},
    P.AWAITING_SPEECH: {P.PLAYING, P.IDLE},
    P.PLAYING: {P.IDLE},
}


class Narrator(Protocol):
    def narrate(self, image_b64: str, history: List[Dict[str, Any]]) -> str: ...


class Speaker(Protocol):
    def speak(self, text: str) -> bytes: ...


class Player(Protocol):
    def play(self, audio_bytes: bytes) -> None: ...


class NarrationOrchestrator:
    def __init__(
        self,
        session: Session,
        narrator: Narrator,
        speaker: Speaker,
        player: Player,
        config: Config = CFG,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.session = session
        self.narrator = narrator
        self.speaker = speaker
        self.player = player
        self.config = config
        self._sleep = sleep
        self._state = NarrationState.idle()
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> NarrationState:
        return self._state

    def _transition(self, new: NarrationState) -> None:
        current = self._state
        if new.phase not in ALLOWED[current.phase]:
            raise InvalidTransition(f"{current} -> {new}")
        if new.phase is P.COUNTDOWN and current.phase is P.COUNTDOWN:
            if new.countdown != current.countdown - 1:
                raise InvalidTransition(f"{current} -> {new}")
        logger.debug("Narration state %s -> %s", current, new)
        self._state = new

        self.session.trigger_enabled = new.is_idle
        if new.is_idle:
            self.session.trigger_label = START_LABEL
        elif new.phase is P.COUNTDOWN:
            self.session.trigger_label = f"Starting in {new.countdown}..."
        else:
            self.session.trigger_label = "Processing..."

    def trigger(self) -> bool:
        """Start a narration cycle. Ignored unless idle; must run on the event loop."""
        if not self._state.is_idle:
            logger.debug("Narration trigger ignored while %s", self._state)
            return False
        self._transition(NarrationState.counting(self.config.countdown_from))
        self._task = asyncio.get_running_loop().create_task(self._run_cycle())
        return True

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def join(self) -> None:
        """Wait for the current cycle, if any, to reach idle."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Narration cycle ended with an error")

    async def shutdown(self) -> None:
        self.cancel()
        await self.join()

    async def _run_cycle(self) -> None:
        try:
            await self._countdown()
            image = self._capture()
            if image is None:
                return
            narration = await self._request_narration(image)
            if narration is None:
                return
            audio = await self._request_speech(narration)
            if audio is None:
                return
            await self._play(audio)
        except asyncio.CancelledError:
            logger.info("Narration cycle cancelled during %s", self._state)
            raise
        except Exception as exc:
            logger.exception("Narration cycle failed during %s", self._state)
            self.session.set_status(f"Error: {exc}", "error")
        finally:
            if not self._state.is_idle:
                self._transition(NarrationState.idle())

    async def _countdown(self) -> None:
        n = self._state.countdown
        while True:
            await self._sleep(self.config.countdown_interval)
            if n <= 1:
                break
            n -= 1
            self._transition(NarrationState.counting(n))
        self._transition(NarrationState(P.CAPTURING))

    def _fail(self, message: str) -> None:
        logger.error(message)
        self.session.set_status(message, "error")

    def _capture(self) -> Optional[str]:
        frame = self.session.latest_frame
        if frame is None:
            self._fail("Error: no camera frame to narrate")
            return None
        try:
            image = snapshot_for_narration(frame, self.config.capture_width, self.config.jpeg_quality)
        except (RuntimeError, ValueError) as exc:
            self._fail(f"Error: {exc}")
            return None
        self._transition(NarrationState(P.AWAITING_NARRATION))
        return image

    async def _request_narration(self, image: str) -> Optional[str]:
        history = self.session.history.to_payload()
        try:
            narration = await asyncio.to_thread(self.narrator.narrate, image, history)
        except RemoteNarrationError as exc:
            self._fail(f"Error: {exc}")
            return None

        self.session.history.append(ConversationEntry("assistant", narration))
        self.session.subtitle = narration
        self.session.set_status("Narration complete", "ready")
        logger.info("Narration: %s", narration)
        self._transition(NarrationState(P.AWAITING_SPEECH))
        return narration

    async def _request_speech(self, text: str) -> Optional[bytes]:
        try:
            audio = await asyncio.to_thread(self.speaker.speak, text)
        except RemoteSpeechError as exc:
            self._fail(f"Speech error: {exc}")
            return None
        self._transition(NarrationState(P.PLAYING))
        return audio

    async def _play(self, audio: bytes) -> None:
        try:
            await asyncio.to_thread(self.player.play, audio)
        except PlaybackError as exc:
            logger.warning("Failed to play narration audio: %s", exc)
