r"""Utility functions for the retry loop: backoff sleeping and
structured logging."""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "calculate_sleep_time",
    "clear_correlation_id",
    "get_correlation_id",
    "interruptible_sleep",
    "log_structured",
    "set_correlation_id",
]

from restexec.utils.sleep import calculate_sleep_time, interruptible_sleep
from restexec.utils.structured_logging import (
    StructuredFormatter,
    clear_correlation_id,
    get_correlation_id,
    log_structured,
    set_correlation_id,
)
