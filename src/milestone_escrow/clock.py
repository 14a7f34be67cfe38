"""Time sources. All timestamps are integer seconds."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


class SystemClock:
    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self.now += seconds
        return self.now
