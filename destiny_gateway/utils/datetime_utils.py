"""
Centralized datetime utilities for consistent timestamp handling across the gateway
"""

import time
from datetime import datetime, timezone, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Get current UTC datetime as ISO 8601 string

    Returns:
        Current UTC datetime formatted as ISO string
    """
    return datetime.now(timezone.utc).isoformat()


def seconds_from(start: datetime, seconds: float) -> datetime:
    """Absolute time `seconds` after `start`."""
    return start + timedelta(seconds=seconds)


def monotonic_ms() -> float:
    """Monotonic clock reading in milliseconds."""
    return time.monotonic() * 1000.0
