import base64

import cv2
import numpy as np


def downsample(frame: np.ndarray, target_width: int) -> np.ndarray:
    """Resize to target_width keeping the aspect ratio."""
    h, w = frame.shape[:2]
    if w <= 0 or h <= 0:
        raise ValueError("cannot downsample an empty frame")
    ratio = target_width / float(w)
    new_h = max(1, int(h * ratio))
    return cv2.resize(frame, (target_width, new_h), interpolation=cv2.INTER_AREA)


def encode_jpeg_base64(frame_bgr: np.ndarray, quality: int = 80) -> str:
    ok, buffer = cv2.imencode(".jpg", frame_bgr, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise RuntimeError("Unable to encode frame as JPEG")
    return base64.b64encode(buffer).decode("utf-8")


def snapshot_for_narration(frame_bgr: np.ndarray, target_width: int = 500, quality: int = 80) -> str:
    """Downsampled, JPEG-compressed, base64 copy of a camera frame."""
    return encode_jpeg_base64(downsample(frame_bgr, target_width), quality)
