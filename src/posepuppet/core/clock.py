"""Frame clock: measured deltas and pacing toward a target frame rate."""

import time
from typing import Optional

from posepuppet.constants import MAX_DELTA_TIME


class DeltaClock:
    """Tracks time between frame cycles.

    ``get_delta`` is clamped to MAX_DELTA_TIME so a stalled estimator does
    not produce one huge step in the fps statistic.
    """

    def __init__(self):
        self._start = time.perf_counter()
        self._last_time = self._start
        self.frames = 0

    def get_delta(self) -> float:
        """Return seconds elapsed since last call, clamped to MAX_DELTA_TIME."""
        now = time.perf_counter()
        dt = now - self._last_time
        self._last_time = now
        self.frames += 1
        return min(dt, MAX_DELTA_TIME)

    def since_last(self) -> float:
        """Seconds since the last ``get_delta`` without consuming them."""
        return time.perf_counter() - self._last_time

    def remaining(self, target_fps: Optional[float]) -> float:
        """Seconds to wait so the current cycle lasts 1/target_fps; 0 if late."""
        if not target_fps or target_fps <= 0:
            return 0.0
        return max(0.0, 1.0 / target_fps - self.since_last())

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self._start

    def reset(self) -> None:
        self._start = time.perf_counter()
        self._last_time = self._start
        self.frames = 0
