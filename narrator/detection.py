'''
Live webcam feed: capture -> face detection -> color grade -> overlay -> window.

The loop re-schedules itself once per display refresh on the asyncio event loop
and only stops when stop() is called.
'''
import asyncio
import logging
import time
from typing import Callable, List, Optional

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_python
from mediapipe.tasks.python import vision as mp_vision

from .enhance import DEFAULT_SETTINGS, enhance_frame
from .errors import InitializationError
from .models import BoundingBox, Category, Detection, EnhancementSettings, Keypoint, Session
from .overlay import OverlayRenderer

logger = logging.getLogger(__name__)


class Camera:
    """Thin wrapper over cv2.VideoCapture that yields BGR frames."""

    def __init__(self, cap: cv2.VideoCapture):
        self._cap = cap

    @classmethod
    def open(cls, index: int = 0, width: int = 1280, height: int = 720) -> "Camera":
        cap = cv2.VideoCapture(index)
        if not cap.isOpened():
            cap.release()
            raise InitializationError(f"Unable to open camera source {index!r}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        return cls(cap)

    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        return frame if ok else None

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Camera released.")


def _to_detection(raw) -> Detection:
    box = raw.bounding_box
    return Detection(
        bounding_box=BoundingBox(box.origin_x, box.origin_y, box.width, box.height),
        categories=[Category(c.score, c.category_name) for c in (raw.categories or [])],
        keypoints=[Keypoint(k.x, k.y) for k in (raw.keypoints or [])],
    )


class FaceDetector:
    """MediaPipe BlazeFace detector running in VIDEO mode."""

    def __init__(self, detector):
        self._detector = detector

    @classmethod
    def create(cls, model_path: str, min_confidence: float = 0.5) -> "FaceDetector":
        try:
            options = mp_vision.FaceDetectorOptions(
                base_options=mp_python.BaseOptions(model_asset_path=model_path),
                running_mode=mp_vision.RunningMode.VIDEO,
                min_detection_confidence=min_confidence,
            )
            detector = mp_vision.FaceDetector.create_from_options(options)
        except (RuntimeError, ValueError, OSError) as exc:
            raise InitializationError(f"Unable to load face detector {model_path!r}: {exc}") from exc
        return cls(detector)

    def detect(self, frame_bgr: np.ndarray, timestamp_ms: int) -> Optional[List[Detection]]:
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
        result = self._detector.detect_for_video(mp_image, timestamp_ms)
        if result is None or result.detections is None:
            return None
        return [_to_detection(d) for d in result.detections]

    def close(self) -> None:
        self._detector.close()


class OpenCVWindow:
    def __init__(self, title: str):
        self.title = title

    def show(self, surface: np.ndarray) -> None:
        cv2.imshow(self.title, surface)

    def poll_key(self) -> int:
        return cv2.waitKey(1) & 0xFF

    def close(self) -> None:
        try:
            cv2.destroyWindow(self.title)
        except cv2.error:
            logger.debug("Window %r was already closed", self.title)


class DetectionLoop:
    """Per-frame render cycle: running until stop() is called or a frame fails."""

    def __init__(
        self,
        session: Session,
        camera: Camera,
        detector: FaceDetector,
        renderer: OverlayRenderer,
        display: OpenCVWindow,
        on_key: Optional[Callable[[int], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        refresh_hz: float = 30.0,
        settings: EnhancementSettings = DEFAULT_SETTINGS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.camera = camera
        self.detector = detector
        self.renderer = renderer
        self.display = display
        self.on_key = on_key
        self.on_error = on_error
        self.interval = 1.0 / refresh_hz
        self.settings = settings
        self._clock = clock

        self._t0: Optional[float] = None
        self._last_timestamp_ms = -1
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.frames_drawn = 0

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._t0 = self._clock()
        self._task = asyncio.create_task(self._loop())
        logger.info("Detection loop started")

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            task = self._task
            self._task = None
            if not task.done():
                task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.camera.release()
        self.detector.close()
        logger.info("Detection loop stopped")

    async def _loop(self) -> None:
        while self._running:
            try:
                self.tick()
            except Exception as exc:
                logger.exception("Detection loop failed")
                self._running = False
                self.session.set_status(f"Error: {exc}", "error")
                if self.on_error is not None:
                    self.on_error(exc)
                return
            await asyncio.sleep(self.interval)

    def _next_timestamp(self) -> int:
        # VIDEO mode rejects timestamps that do not strictly increase
        if self._t0 is None:
            self._t0 = self._clock()
        ts = int((self._clock() - self._t0) * 1000)
        ts = max(ts, self._last_timestamp_ms + 1)
        self._last_timestamp_ms = ts
        return ts

    def tick(self) -> bool:
        """Run one frame. Returns True if something was drawn."""
        drawn = False
        frame = self.camera.read()
        if frame is not None:
            self.session.latest_frame = frame
            detections = self.detector.detect(frame, self._next_timestamp())
            if detections is not None:
                self._draw(frame, detections)
                drawn = True

        # waitKey also pumps the window's event queue, so poll every tick
        key = self.display.poll_key()
        if key != 0xFF and self.on_key is not None:
            self.on_key(key)
        return drawn

    def _draw(self, frame_bgr: np.ndarray, detections: List[Detection]) -> None:
        rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
        if self.session.enhancement_enabled:
            rgba = enhance_frame(rgba, self.settings)
        surface = self.renderer.render(rgba, detections, self.session.subtitle)
        self.renderer.draw_status(surface, self.session.status, self.session.trigger_label)
        self.display.show(surface)
        self.frames_drawn += 1
