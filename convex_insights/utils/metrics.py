"""
Metrics utilities - latency timing and rate helpers.
"""
import time
from typing import Optional


class Timer:
    """Measures wall-clock latency of a block. Usable as a context manager."""

    def __init__(self):
        self._start: Optional[float] = None
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        return self

    def __exit__(self, *exc) -> None:
        self._end = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        """Elapsed milliseconds (up to now if the block is still running)."""
        if self._start is None:
            return 0
        end = self._end or time.monotonic()
        return int((end - self._start) * 1000)


def rate_per_second(count: int, window_seconds: int) -> float:
    """Events per second for `count` events observed over `window_seconds`."""
    if window_seconds <= 0:
        return 0.0
    return count / window_seconds


def percentage(part: int, total: int) -> float:
    """part/total as a percentage, 0.0 when total is zero."""
    if total <= 0:
        return 0.0
    return part / total * 100
