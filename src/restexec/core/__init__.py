r"""Configuration, validation and transport wiring shared by the sync
and async executors."""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT",
    "MAX_BACKOFF",
    "REDIRECT_STATUS_CODES",
    "THROTTLING_STATUS_CODE",
    "ExecutorConfig",
    "ProxyConfig",
    "create_async_client",
    "create_client",
    "validate_retry_params",
    "validate_timeout",
]

from restexec.core.config import (
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    MAX_BACKOFF,
    REDIRECT_STATUS_CODES,
    THROTTLING_STATUS_CODE,
    ExecutorConfig,
    ProxyConfig,
)
from restexec.core.transport import create_async_client, create_client
from restexec.core.validation import validate_retry_params, validate_timeout
