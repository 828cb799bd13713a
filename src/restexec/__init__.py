r"""restexec - Resilient HTTP request executor for REST API client SDKs.

This package provides the request-execution core of a client SDK. Given
a logical request, the executor signs it, sends it over an httpx
transport, retries transport failures and throttling with exponential
backoff, follows redirects while re-applying the original query
parameters and headers, and returns a fully buffered response.

Key Features:
    - Re-signing of the request on every attempt
    - Exponential backoff with a larger, jittered scale after HTTP 429
    - Replay of seekable request body streams on retry
    - 301/302/307 redirect following without consuming the retry budget
    - 5xx retried while the budget lasts, then returned to the caller
    - Sync (``RequestExecutor``) and asyncio (``AsyncRequestExecutor``) APIs

Example:
    ```pycon
    >>> from restexec import LogicalRequest, RequestExecutor
    >>> from restexec.core.config import ExecutorConfig
    >>> with RequestExecutor(config=ExecutorConfig(max_retries=4)) as executor:  # doctest: +SKIP
    ...     response = executor.execute(
    ...         LogicalRequest("GET", "https://api.example.com/v1/accounts", params={"limit": "25"})
    ...     )
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "ApiKey",
    "AsyncRequestExecutor",
    "BasicRequestAuthenticator",
    "ExecutorConfig",
    "LogicalRequest",
    "NonReplayableBodyError",
    "RedirectLimitError",
    "RequestBody",
    "RequestCancelledError",
    "RequestExecutionError",
    "RequestExecutor",
    "Response",
    "ThrottlingError",
    "__version__",
]

from importlib.metadata import PackageNotFoundError, version

from restexec.auth import ApiKey, BasicRequestAuthenticator
from restexec.core.config import ExecutorConfig
from restexec.exceptions import (
    NonReplayableBodyError,
    RedirectLimitError,
    RequestCancelledError,
    RequestExecutionError,
    ThrottlingError,
)
from restexec.executor import RequestExecutor
from restexec.executor_async import AsyncRequestExecutor
from restexec.models import LogicalRequest, RequestBody, Response

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
