"""
Time providers for the vesting ledger.

The ledger never reads wall-clock time directly; it calls an injected
``time_provider`` returning integer seconds. ``ManualClock`` gives tests and
simulations full control over that boundary.
"""

from __future__ import annotations

import time
from typing import Callable

TimeProvider = Callable[[], int]

SECONDS_PER_DAY = 86400


def system_time() -> int:
    """Current Unix timestamp in whole seconds."""
    return int(time.time())


class ManualClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, start_time: int = 0):
        self.current_time = int(start_time)

    def now(self) -> int:
        return self.current_time

    def set(self, timestamp: int) -> None:
        if timestamp < self.current_time:
            raise ValueError(
                f"Clock cannot move backwards ({timestamp} < {self.current_time})"
            )
        self.current_time = int(timestamp)

    def advance(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError("Cannot advance clock by a negative amount")
        self.current_time += int(seconds)

    def advance_days(self, days: int) -> None:
        self.advance(days * SECONDS_PER_DAY)

    __call__ = now
