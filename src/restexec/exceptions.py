r"""Exceptions raised by the request executor.

Only failures that cannot be expressed as an ordinary response are
raised: transport failures once the retry budget is spent, throttling
once the retry budget is spent, bodies that cannot be replayed,
over-long redirect chains and cancellation. Client (4xx) and server
(5xx) responses are returned to the caller, never raised.
"""

from __future__ import annotations

__all__ = [
    "NonReplayableBodyError",
    "RedirectLimitError",
    "RequestCancelledError",
    "RequestExecutionError",
    "ThrottlingError",
]

from typing import TYPE_CHECKING, Any

from restexec.outcome import FailureKind

if TYPE_CHECKING:
    from restexec.models import Response


class RequestExecutionError(Exception):
    """Raised when a logical request cannot be completed.

    Args:
        method: The HTTP method of the request.
        url: The URL of the last attempt.
        message: The error message.
        attempts: The number of dispatches made before giving up.
        failure_kind: The kind of the failure that ended the call.
        status_code: The HTTP status code of the last response, if any.
        response: The last buffered response, if any.
        cause: The underlying exception, if any.

    Example:
        ```pycon
        >>> from restexec.exceptions import RequestExecutionError
        >>> from restexec.outcome import FailureKind
        >>> error = RequestExecutionError(
        ...     method="GET",
        ...     url="https://api.example.com/v1/accounts",
        ...     message="GET request to https://api.example.com/v1/accounts timed out",
        ...     attempts=5,
        ...     failure_kind=FailureKind.TRANSPORT,
        ... )
        >>> error.attempts
        5

        ```
    """

    def __init__(
        self,
        method: str,
        url: str,
        message: str,
        *,
        attempts: int = 0,
        failure_kind: FailureKind | None = None,
        status_code: int | None = None,
        response: Response | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.attempts = attempts
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.response = response
        self.cause = cause

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(method={self.method!r}, url={self.url!r}, "
            f"attempts={self.attempts}, failure_kind={self.failure_kind}, "
            f"status_code={self.status_code})"
        )


class ThrottlingError(RequestExecutionError):
    """Raised when the server keeps answering 429 until the retry budget
    is spent."""


class NonReplayableBodyError(RequestExecutionError):
    """Raised when a retry or redirect requires resending a body stream
    that cannot be rewound."""

    def __init__(self, method: str, url: str, message: str, **kwargs: Any) -> None:
        kwargs.setdefault("failure_kind", FailureKind.NON_REPLAYABLE_BODY)
        super().__init__(method, url, message, **kwargs)


class RedirectLimitError(RequestExecutionError):
    """Raised when a redirect chain exceeds the configured number of
    hops."""


class RequestCancelledError(RequestExecutionError):
    """Raised when cancellation is requested while waiting before a
    retry."""
