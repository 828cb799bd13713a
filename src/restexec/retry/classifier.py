r"""Retry decision logic for failed attempts.

This module provides the RetryClassifier class that decides whether a
failed attempt may be retried, and the helper mapping transport
exceptions to failure kinds.
"""

from __future__ import annotations

__all__ = ["RetryClassifier", "classify_exception"]

import logging
from typing import TYPE_CHECKING

import httpx

from restexec.core.config import DEFAULT_MAX_RETRIES
from restexec.core.validation import validate_retry_params
from restexec.outcome import FailureKind

if TYPE_CHECKING:
    from restexec.models import LogicalRequest
    from restexec.outcome import AttemptFailure

logger: logging.Logger = logging.getLogger(__name__)

# No usable response was received: connect/read/write/pool timeouts,
# connection reset or refused, server closing the connection early
RETRYABLE_TRANSPORT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def classify_exception(exc: BaseException) -> FailureKind:
    """Map an exception raised while sending a request to a failure
    kind.

    Args:
        exc: The exception raised by the transport.

    Returns:
        ``FailureKind.TRANSPORT`` for connectivity failures, otherwise
        ``FailureKind.REQUEST``.

    Example:
        ```pycon
        >>> import httpx
        >>> from restexec.retry.classifier import classify_exception
        >>> classify_exception(httpx.ReadTimeout("timed out"))
        <FailureKind.TRANSPORT: 'transport'>
        >>> classify_exception(httpx.UnsupportedProtocol("ftp"))
        <FailureKind.REQUEST: 'request'>

        ```
    """
    if isinstance(exc, RETRYABLE_TRANSPORT_ERRORS):
        return FailureKind.TRANSPORT
    return FailureKind.REQUEST


class RetryClassifier:
    """Decides whether a failed attempt should be retried.

    The rules are applied in order, the first matching rule wins:

    1. ``attempt > max_retries``: no retry, the budget is spent.
    2. The request body cannot be rewound: no retry.
    3. Transport failure: retry.
    4. Throttling failure (HTTP 429): retry.
    5. Anything else: no retry.

    Args:
        max_retries: Maximum number of retries after the initial attempt.

    Example:
        ```pycon
        >>> from restexec.models import LogicalRequest
        >>> from restexec.outcome import AttemptFailure, FailureKind
        >>> from restexec.retry.classifier import RetryClassifier
        >>> classifier = RetryClassifier(max_retries=4)
        >>> request = LogicalRequest("GET", "https://api.example.com/v1/accounts")
        >>> failure = AttemptFailure(FailureKind.TRANSPORT, "read timed out")
        >>> classifier.should_retry(request, failure, attempt=4)
        True
        >>> classifier.should_retry(request, failure, attempt=5)
        False

        ```
    """

    def __init__(self, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
        validate_retry_params(max_retries=max_retries)
        self.max_retries = max_retries

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(max_retries={self.max_retries})"

    def is_budget_exhausted(self, attempt: int) -> bool:
        return attempt > self.max_retries

    def should_retry(self, request: LogicalRequest, failure: AttemptFailure, attempt: int) -> bool:
        """Determine if a failed attempt should be retried.

        Args:
            request: The request that failed.
            failure: The failure of the attempt.
            attempt: The number of attempts made so far, including the
                failed one.

        Returns:
            ``True`` if the request should be dispatched again.
        """
        if self.is_budget_exhausted(attempt):
            logger.debug(f"Not retrying: {attempt} attempts exceed max_retries={self.max_retries}")
            return False
        if not request.is_replayable:
            logger.debug("Not retrying: the request body cannot be replayed")
            return False
        if failure.kind is FailureKind.TRANSPORT:
            logger.debug(f"Retrying on {type(failure.error).__name__}: {failure.message}")
            return True
        return failure.kind is FailureKind.THROTTLING
