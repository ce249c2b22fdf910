"""
Monotone model-loading progress.
"""

from __future__ import annotations

import math


class ProgressTracker:
    """
    Track load progress that only ever moves forward.

    Reported values are capped at 99 until ``complete()`` snaps the tracker to
    100. When a report carries no usable signal (missing, non-finite or negative) the
    tracker advances by one step so callers always observe motion.
    """

    def __init__(self, step: int = 1, cap: int = 99) -> None:
        self.step = step
        self.cap = cap
        self.value = 0
        self.completed = False

    def observe(self, reported: float | None) -> int:
        if self.completed:
            return self.value
        if reported is None or not math.isfinite(reported) or reported < 0:
            candidate = self.value + self.step
        else:
            candidate = int(round(reported))
        self.value = max(self.value, min(self.cap, candidate))
        return self.value

    def complete(self) -> int:
        self.completed = True
        self.value = 100
        return self.value
