# MIT License
# Copyright (c) 2025 Hashborn

"""
Time sources.

All cycle and accrual math is a pure function of the value returned by
Clock.now() plus stored state, so pools take the clock as a parameter.
"""

import time


class Clock:
    """Monotonically non-decreasing timestamp (or height) source."""

    def now(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock seconds."""

    def __init__(self):
        self._last = 0

    def now(self) -> int:
        # Never step backwards even if the host clock does
        self._last = max(self._last, int(time.time()))
        return self._last


class ManualClock(Clock):
    """Explicitly driven clock for tests and simulations."""

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError("start must be non-negative")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError(f"Clock cannot move backwards: {timestamp} < {self._now}")
        self._now = timestamp
        return self._now
