"""
Text formatting helpers for digest emails.
"""

from datetime import datetime
from typing import Tuple


# (seconds per unit, unit name), largest first
TIME_UNITS: Tuple[Tuple[int, str], ...] = (
    (31536000, "years"),
    (2592000, "months"),
    (86400, "days"),
    (3600, "hours"),
    (60, "minutes"),
)


def to_millis(moment: datetime) -> int:
    """Epoch milliseconds for a datetime."""
    return int(round(moment.timestamp() * 1000))


def time_since(now_ms: int, timestamp_ms: int) -> str:
    """
    Describe how long ago ``timestamp_ms`` was, relative to ``now_ms``.

    The first unit with a quotient strictly greater than one is used, so an
    exact day is reported as "24 hours ago" and 90 seconds as "90 seconds ago".
    """
    seconds = (now_ms - timestamp_ms) // 1000

    for unit_seconds, unit_name in TIME_UNITS:
        interval = seconds // unit_seconds
        if interval > 1:
            return f"{interval} {unit_name} ago"

    return f"{seconds} seconds ago"


def format_price(price: float) -> str:
    return f"${price:.2f}"
