# PATH: core/time.py
"""
Time utilities for CROSSARB.

Freshness rules and monotonic event clock.
"""

import time
from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_timestamp() -> float:
    """Get current Unix timestamp."""
    return time.time()


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def utc_day(current_time: Optional[float] = None) -> str:
    """UTC calendar day (YYYY-MM-DD) used as the daily-reset boundary."""
    ts = now_timestamp() if current_time is None else current_time
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


def age_seconds(timestamp: float, current_time: Optional[float] = None) -> float:
    """Age of a Unix timestamp in seconds."""
    current = now_timestamp() if current_time is None else current_time
    return current - timestamp


def is_fresh(
    timestamp: float,
    max_age_seconds: float = 2.0,
    current_time: Optional[float] = None,
) -> bool:
    """
    Check if a timestamp is fresh (within max_age).

    Args:
        timestamp: Unix timestamp to check
        max_age_seconds: Maximum allowed age
        current_time: Current time (defaults to now)

    Returns:
        True if timestamp is fresh
    """
    return age_seconds(timestamp, current_time) <= max_age_seconds


class MonotonicClock:
    """
    Millisecond clock that never returns the same or a smaller value twice.

    Wall-clock adjustments backwards are absorbed by bumping the last value.
    """

    def __init__(self):
        self._last_ms = 0

    def next_ms(self) -> int:
        current = now_ms()
        if current <= self._last_ms:
            current = self._last_ms + 1
        self._last_ms = current
        return current
