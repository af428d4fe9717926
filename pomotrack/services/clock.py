"""
Clock — the single source of "now" for the timer and statistics.

Everything time-dependent takes a Clock (a zero-argument callable returning
epoch milliseconds) so tests can drive time by hand.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(ms: int) -> datetime:
    """Epoch milliseconds to a naive local datetime."""
    return datetime.fromtimestamp(ms / 1000)


def datetime_to_ms(dt: datetime) -> int:
    """Naive local datetime to epoch milliseconds."""
    return int(dt.timestamp() * 1000)
