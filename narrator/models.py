"""
Data models for the narrated webcam feed.
Simple dataclasses shared by the render loop and the narration cycle.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

import numpy as np

NO_NARRATION = "---"  # subtitle sentinel: nothing narrated yet

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class EnhancementSettings:
    """Constants of the cinematic color grade."""
    contrast_exponent: float = 1.3
    saturation_scale: float = 0.7
    warmth_r: float = 1.15
    warmth_g: float = 1.15 * 0.95
    cool_reduction_b: float = 0.85
    vignette_strength: float = 0.3


@dataclass(frozen=True)
class BoundingBox:
    origin_x: float
    origin_y: float
    width: float
    height: float


@dataclass(frozen=True)
class Category:
    score: float
    label: Optional[str] = None


@dataclass(frozen=True)
class Keypoint:
    """Normalized keypoint, x and y in [0, 1]."""
    x: float
    y: float


@dataclass(frozen=True)
class Detection:
    """One face reported by the detector for a single frame."""
    bounding_box: BoundingBox
    categories: List[Category] = field(default_factory=list)
    keypoints: List[Keypoint] = field(default_factory=list)

    @property
    def top_score(self) -> Optional[float]:
        return self.categories[0].score if self.categories else None


@dataclass(frozen=True)
class ConversationEntry:
    role: str
    content: Union[str, List[Dict[str, Any]]]

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown conversation role: {self.role!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ConversationHistory:
    """Append-only record of what the narrator has said so far."""

    def __init__(self):
        self._entries: List[ConversationEntry] = []

    def append(self, entry: ConversationEntry) -> None:
        self._entries.append(entry)

    def to_payload(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    @property
    def last(self) -> Optional[ConversationEntry]:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)


class NarrationPhase(Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    CAPTURING = "capturing"
    AWAITING_NARRATION = "awaiting_narration"
    AWAITING_SPEECH = "awaiting_speech"
    PLAYING = "playing"


@dataclass(frozen=True)
class NarrationState:
    phase: NarrationPhase = NarrationPhase.IDLE
    countdown: Optional[int] = None

    @classmethod
    def idle(cls) -> "NarrationState":
        return cls(NarrationPhase.IDLE)

    @classmethod
    def counting(cls, n: int) -> "NarrationState":
        return cls(NarrationPhase.COUNTDOWN, n)

    @property
    def is_idle(self) -> bool:
        return self.phase is NarrationPhase.IDLE

    def __str__(self) -> str:
        if self.phase is NarrationPhase.COUNTDOWN:
            return f"countdown({self.countdown})"
        return self.phase.value


@dataclass
class Status:
    message: str = ""
    kind: str = "loading"  # "loading", "ready" or "error"


START_LABEL = "Start Narration"


@dataclass
class Session:
    """State shared by the render loop and the narration cycle.

    The orchestrator is the only writer of ``subtitle`` and ``history``.
    """
    subtitle: str = NO_NARRATION
    history: ConversationHistory = field(default_factory=ConversationHistory)
    status: Status = field(default_factory=Status)
    latest_frame: Optional[np.ndarray] = None
    enhancement_enabled: bool = True
    trigger_enabled: bool = True
    trigger_label: str = START_LABEL

    def set_status(self, message: str, kind: str) -> None:
        self.status = Status(message, kind)

    @property
    def has_subtitle(self) -> bool:
        return bool(self.subtitle) and self.subtitle != NO_NARRATION
