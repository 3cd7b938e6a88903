"""
Shared utilities: logging, time and response envelopes.
"""

from .logging_utils import get_logger, setup_logging
from .datetime_utils import utc_now, utc_now_iso, monotonic_ms
from .response_utils import (
    ToolEnvelope,
    success_envelope,
    error_envelope,
    get_error_suggestion,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "utc_now",
    "utc_now_iso",
    "monotonic_ms",
    "ToolEnvelope",
    "success_envelope",
    "error_envelope",
    "get_error_suggestion",
]
