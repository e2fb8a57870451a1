"""Per-session frame statistics."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SessionStats:
    """Counters maintained by the frame driver."""
    frame_count: int = 0
    valid_frames: int = 0
    invalid_frames: int = 0
    faces_missing: int = 0
    # Exponential moving average of frames per second
    fps: float = 0.0
    last_confidence: Optional[float] = None
    invalid_reasons: dict[str, int] = field(default_factory=dict)

    def record_valid(self, confidence: Optional[float]) -> None:
        self.frame_count += 1
        self.valid_frames += 1
        self.last_confidence = confidence

    def record_invalid(self, reason: str) -> None:
        self.frame_count += 1
        self.invalid_frames += 1
        self.invalid_reasons[reason] = self.invalid_reasons.get(reason, 0) + 1

    def record_delta(self, dt: float, smoothing: float = 0.9) -> None:
        if dt <= 0.0:
            return
        instant = 1.0 / dt
        if self.fps == 0.0:
            self.fps = instant
        else:
            self.fps = smoothing * self.fps + (1.0 - smoothing) * instant

    @property
    def valid_ratio(self) -> float:
        if self.frame_count == 0:
            return 0.0
        return self.valid_frames / self.frame_count

    def reset(self) -> None:
        self.frame_count = 0
        self.valid_frames = 0
        self.invalid_frames = 0
        self.faces_missing = 0
        self.fps = 0.0
        self.last_confidence = None
        self.invalid_reasons.clear()
