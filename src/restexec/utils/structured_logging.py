r"""Structured logging utilities for machine-readable log output.

The executor logs every failed attempt with structured fields
(``attempt``, ``failure_kind``, ``status_code``, ``method``, ``url``)
passed through the ``extra`` mapping of the standard ``logging`` calls.
They are ignored by ordinary formatters and rendered as JSON keys by
``StructuredFormatter``.

The JSON output is opt-in:

```python
import logging
from restexec.utils.structured_logging import StructuredFormatter, set_correlation_id

handler = logging.StreamHandler()
handler.setFormatter(StructuredFormatter())
logger = logging.getLogger("restexec")
logger.addHandler(handler)
logger.setLevel(logging.DEBUG)

set_correlation_id("create-account-42")
```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "clear_correlation_id",
    "get_correlation_id",
    "log_structured",
    "set_correlation_id",
]

import contextvars
import json
import logging
import time
from typing import Any

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "restexec_correlation_id", default=None
)

# Attributes present on every LogRecord, everything else came from ``extra``
_RECORD_ATTRIBUTES = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}


def get_correlation_id() -> str | None:
    """Return the correlation ID of the current context, if any.

    Example:
        ```pycon
        >>> from restexec.utils.structured_logging import get_correlation_id, set_correlation_id
        >>> set_correlation_id("req-123")
        >>> get_correlation_id()
        'req-123'

        ```
    """
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context.

    The value lives in a context variable, so concurrent threads and
    asyncio tasks each see their own ID.
    """
    _correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Each record becomes one JSON object with the keys ``timestamp``,
    ``level``, ``logger``, ``message``, ``module``, ``function`` and
    ``line``, the correlation ID when one is set, the formatted
    exception when present, and every field passed through ``extra``.
    Values that are not JSON serializable are rendered with ``str``.

    Example:
        ```pycon
        >>> import json
        >>> import logging
        >>> from restexec.utils.structured_logging import StructuredFormatter
        >>> record = logging.LogRecord(
        ...     "restexec", logging.WARNING, __file__, 1, "attempt failed", None, None
        ... )
        >>> record.attempt = 2
        >>> data = json.loads(StructuredFormatter().format(record))
        >>> data["message"], data["attempt"]
        ('attempt failed', 2)

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = get_correlation_id()
        if correlation_id is not None:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: ARG002
        """Format the record time as ISO 8601 UTC with milliseconds."""
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(logger: logging.Logger, level: int, message: str, **extra: Any) -> None:
    """Log a message with structured fields.

    Args:
        logger: Logger to use.
        level: Log level (e.g., ``logging.WARNING``).
        message: Log message.
        **extra: Structured fields attached to the record.
    """
    logger.log(level, message, extra=extra)
