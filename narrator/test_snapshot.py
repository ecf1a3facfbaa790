import base64

import cv2
import numpy as np
import pytest

from narrator.snapshot import downsample, snapshot_for_narration


def test_downsample_keeps_aspect_ratio():
    frame = np.zeros((480, 640, 3), dtype=np.uint8)
    assert downsample(frame, 500).shape == (375, 500, 3)


def test_downsample_upscales_small_frames_to_target():
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    assert downsample(frame, 500).shape[:2] == (375, 500)


def test_downsample_rejects_empty_frame():
    with pytest.raises(ValueError):
        downsample(np.zeros((0, 0, 3), dtype=np.uint8), 500)


def test_snapshot_is_base64_jpeg():
    frame = np.full((720, 1280, 3), 180, dtype=np.uint8)
    payload = snapshot_for_narration(frame)

    raw = base64.b64decode(payload)
    assert raw[:2] == b"\xff\xd8"
    decoded = cv2.imdecode(np.frombuffer(raw, np.uint8), cv2.IMREAD_COLOR)
    assert decoded.shape == (281, 500, 3)


def test_lower_quality_is_smaller():
    rng = np.random.default_rng(3)
    frame = rng.integers(0, 256, size=(360, 640, 3), dtype=np.uint8)
    assert len(snapshot_for_narration(frame, quality=30)) < len(snapshot_for_narration(frame, quality=95))
