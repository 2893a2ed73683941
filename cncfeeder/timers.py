"""Millisecond stopwatch used for timeouts and packet pacing."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Current monotonic time in whole milliseconds."""
    return time.monotonic_ns() // 1_000_000


class Timer:
    """A stopwatch that starts running when created."""

    def __init__(self) -> None:
        self._started = now_ms()

    def start(self) -> None:
        """Restart the stopwatch from now."""
        self._started = now_ms()

    def elapsed_ms(self) -> int:
        return now_ms() - self._started

    def expired(self, ms: int) -> bool:
        """True once `ms` milliseconds have passed; a zero period is always expired."""
        if ms == 0:
            return True
        return self.elapsed_ms() >= ms