import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from .models import NO_NARRATION, Detection, Status

FONT = cv2.FONT_HERSHEY_SIMPLEX

# BGR
BOX_COLOR = (0, 255, 0)
KEYPOINT_COLOR = (0, 0, 255)
TEXT_COLOR = (255, 255, 255)
OUTLINE_COLOR = (0, 0, 0)
STATUS_COLORS = {
    "loading": (0, 215, 255),
    "ready": (50, 255, 50),
    "error": (60, 60, 255),
}

BOX_THICKNESS = 3
KEYPOINT_RADIUS = 3
SCORE_FONT_PX = 18

SUBTITLE_MARGIN = 30
SUBTITLE_PADDING = 12
SUBTITLE_LINE_FACTOR = 1.4
SUBTITLE_PANEL_ALPHA = 0.75
SUBTITLE_THICKNESS = 2
OUTLINE_EXTRA = 3


def wrap_text(text: str, max_line_length: int = 50) -> List[str]:
    """Greedy word wrap on spaces. Words longer than the limit keep their own line."""
    lines: List[str] = []
    current = ""
    for word in text.split(" "):
        if len(current + word) <= max_line_length:
            current += word + " "
        else:
            if current:
                lines.append(current.strip())
            current = word + " "
    if current:
        lines.append(current.strip())
    return lines


def font_scale_for(pixel_height: float, thickness: int = 1) -> float:
    return cv2.getFontScaleFromHeight(FONT, max(1, int(round(pixel_height))), thickness)


def format_score(score: float) -> str:
    # half-up rounding, e.g. 0.875 -> "88%"
    return f"{math.floor(score * 100 + 0.5)}%"


@dataclass(frozen=True)
class SubtitleLayout:
    lines: List[str]
    line_widths: List[int]
    font_scale: float
    font_size: float
    line_spacing: float
    first_baseline: float
    panel: Tuple[int, int, int, int]  # x, y, width, height


def layout_subtitle(text: str, width: int, height: int, max_line_length: int = 50) -> SubtitleLayout:
    """Place the wrapped subtitle block bottom-center of a width x height surface."""
    font_size = max(16.0, width / 60)
    scale = font_scale_for(font_size, SUBTITLE_THICKNESS)
    line_spacing = font_size * SUBTITLE_LINE_FACTOR

    lines = wrap_text(text, max_line_length)
    text_height_total = line_spacing * len(lines)
    start_y = height - text_height_total - SUBTITLE_MARGIN

    line_widths = [cv2.getTextSize(line, FONT, scale, SUBTITLE_THICKNESS)[0][0] for line in lines]
    max_width = max(line_widths, default=0)

    panel_x = width / 2 - max_width / 2 - SUBTITLE_PADDING
    panel_y = start_y - font_size - SUBTITLE_PADDING / 2
    panel_w = max_width + SUBTITLE_PADDING * 2
    panel_h = text_height_total + SUBTITLE_PADDING

    return SubtitleLayout(
        lines=lines,
        line_widths=line_widths,
        font_scale=scale,
        font_size=font_size,
        line_spacing=line_spacing,
        first_baseline=start_y,
        panel=(int(round(panel_x)), int(round(panel_y)), int(round(panel_w)), int(round(panel_h))),
    )


class OverlayRenderer:
    """Turns an enhanced RGBA frame plus annotations into the BGR surface shown on screen."""

    def __init__(self, max_line_length: int = 50):
        self.max_line_length = max_line_length

    def render(self, frame_rgba: np.ndarray, detections: Sequence[Detection], subtitle: str) -> np.ndarray:
        surface = cv2.cvtColor(frame_rgba, cv2.COLOR_RGBA2BGR)
        for detection in detections:
            self._draw_detection(surface, detection)
        if subtitle and subtitle != NO_NARRATION:
            self.draw_subtitle(surface, subtitle)
        return surface

    def _draw_detection(self, surface: np.ndarray, detection: Detection) -> None:
        h, w = surface.shape[:2]
        box = detection.bounding_box
        x0, y0 = int(box.origin_x), int(box.origin_y)
        x1, y1 = int(box.origin_x + box.width), int(box.origin_y + box.height)
        cv2.rectangle(surface, (x0, y0), (x1, y1), BOX_COLOR, BOX_THICKNESS)

        score = detection.top_score
        if score is not None:
            cv2.putText(surface, format_score(score), (x0, y0 - 5),
                        FONT, font_scale_for(SCORE_FONT_PX), BOX_COLOR, 2, cv2.LINE_AA)

        for kp in detection.keypoints:
            center = (int(kp.x * w), int(kp.y * h))
            cv2.circle(surface, center, KEYPOINT_RADIUS, KEYPOINT_COLOR, -1)

    def draw_subtitle(self, surface: np.ndarray, text: str) -> SubtitleLayout:
        h, w = surface.shape[:2]
        layout = layout_subtitle(text, w, h, self.max_line_length)

        px, py, pw, ph = layout.panel
        panel = surface.copy()
        cv2.rectangle(panel, (px, py), (px + pw, py + ph), (0, 0, 0), -1)
        cv2.addWeighted(panel, SUBTITLE_PANEL_ALPHA, surface, 1 - SUBTITLE_PANEL_ALPHA, 0, dst=surface)

        y = layout.first_baseline
        for line, line_w in zip(layout.lines, layout.line_widths):
            org = (int(w / 2 - line_w / 2), int(y))
            cv2.putText(surface, line, org, FONT, layout.font_scale, OUTLINE_COLOR,
                        SUBTITLE_THICKNESS + OUTLINE_EXTRA, cv2.LINE_AA)
            cv2.putText(surface, line, org, FONT, layout.font_scale, TEXT_COLOR,
                        SUBTITLE_THICKNESS, cv2.LINE_AA)
            y += layout.line_spacing
        return layout

    def draw_status(self, surface: np.ndarray, status: Status, trigger_label: str) -> None:
        """Status line and narration prompt in the top-left corner."""
        color = STATUS_COLORS.get(status.kind, TEXT_COLOR)
        if status.message:
            cv2.putText(surface, status.message, (10, 30), FONT, 0.8, OUTLINE_COLOR, 4, cv2.LINE_AA)
            cv2.putText(surface, status.message, (10, 30), FONT, 0.8, color, 2, cv2.LINE_AA)
        cv2.putText(surface, trigger_label, (10, 60), FONT, 0.7, (200, 200, 200), 2, cv2.LINE_AA)

    def status_frame(self, status: Status, width: int, height: int, trigger_label: str = "") -> np.ndarray:
        """Blank surface carrying only the status, for when no camera frame is available."""
        surface = np.zeros((height, width, 3), dtype=np.uint8)
        self.draw_status(surface, status, trigger_label)
        return surface
