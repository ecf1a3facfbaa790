import io
import logging
import threading
from typing import Optional

import numpy as np
import sounddevice as sd
import soundfile as sf

from .errors import PlaybackError

logger = logging.getLogger(__name__)


def decode_audio(audio_bytes: bytes):
    """Decode an encoded clip (mp3, wav, ...) into float32 frames and a sample rate."""
    if not audio_bytes:
        raise PlaybackError("no audio to decode")
    try:
        data, sample_rate = sf.read(io.BytesIO(audio_bytes), dtype="float32", always_2d=True)
    except (RuntimeError, TypeError) as exc:
        raise PlaybackError(f"Unable to decode audio: {exc}") from exc
    if data.size == 0:
        raise PlaybackError("decoded audio is empty")
    return data, sample_rate


class AudioPlayer:
    """Plays a whole clip and returns when it has finished."""

    def play(self, audio_bytes: bytes) -> None:
        data, sample_rate = decode_audio(audio_bytes)
        try:
            sd.play(data, sample_rate)
            sd.wait()
        except sd.PortAudioError as exc:
            raise PlaybackError(f"Audio device refused playback: {exc}") from exc


class BackgroundMusic:
    """Looping background track on its own output stream."""

    def __init__(self, data: np.ndarray, sample_rate: int, volume: float = 0.3):
        self._data = data
        self.sample_rate = sample_rate
        self.volume = volume
        self._position = 0
        self._stream: Optional[sd.OutputStream] = None
        self._lock = threading.Lock()

    @classmethod
    def from_bytes(cls, audio_bytes: bytes, volume: float = 0.3) -> "BackgroundMusic":
        data, sample_rate = decode_audio(audio_bytes)
        return cls(data, sample_rate, volume)

    @property
    def playing(self) -> bool:
        return self._stream is not None

    def _callback(self, outdata, frames, _time, status):
        if status:
            logger.debug("Music stream status: %s", status)
        with self._lock:
            written = 0
            total = len(self._data)
            while written < frames:
                take = min(frames - written, total - self._position)
                outdata[written:written + take] = self._data[self._position:self._position + take] * self.volume
                written += take
                self._position = (self._position + take) % total

    def start(self) -> None:
        if self._stream is not None:
            return
        try:
            stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self._data.shape[1],
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except sd.PortAudioError as exc:
            raise PlaybackError(f"Unable to start music: {exc}") from exc
        self._stream = stream
        logger.info("Background music playing.")

    def stop(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        logger.info("Background music paused.")

    def toggle(self) -> bool:
        if self.playing:
            self.stop()
        else:
            self.start()
        return self.playing
