r"""Credentials and request authenticators.

The executor signs a request on every attempt by calling
``authenticator.authenticate(request, credential)``. Authenticators
mutate the request headers (and possibly query parameters) in place.
The signing algorithm is pluggable; ``BasicRequestAuthenticator`` is the
one shipped by default.
"""

from __future__ import annotations

__all__ = ["ApiKey", "BasicRequestAuthenticator", "RequestAuthenticator"]

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

    from restexec.models import LogicalRequest

DATE_HEADER = "X-Request-Date"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"


@dataclass(frozen=True)
class ApiKey:
    r"""API key credential.

    The secret is hidden from ``repr`` so that keys can be logged safely.

    Example:
        ```pycon
        >>> from restexec.auth import ApiKey
        >>> ApiKey(id="4YHE1CBAZ", secret="s3cr3t")
        ApiKey(id='4YHE1CBAZ')

        ```
    """

    id: str
    secret: str = field(repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            msg = "api key id cannot be empty"
            raise ValueError(msg)
        if not self.secret:
            msg = "api key secret cannot be empty"
            raise ValueError(msg)


@runtime_checkable
class RequestAuthenticator(Protocol):
    r"""Signs a request in place with a credential."""

    def authenticate(self, request: LogicalRequest, credential: ApiKey) -> None: ...


class BasicRequestAuthenticator:
    r"""HTTP Basic authenticator.

    Sets ``Authorization: Basic base64(id:secret)`` and a UTC timestamp
    header that changes with every attempt.

    Args:
        clock: Optional callable returning the current time, mainly for
            tests. Defaults to ``datetime.now(timezone.utc)``.

    Example:
        ```pycon
        >>> from datetime import datetime, timezone
        >>> from restexec.auth import ApiKey, BasicRequestAuthenticator
        >>> from restexec.models import LogicalRequest
        >>> authenticator = BasicRequestAuthenticator(
        ...     clock=lambda: datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        ... )
        >>> request = LogicalRequest("GET", "https://api.example.com/v1/tenants/current")
        >>> authenticator.authenticate(request, ApiKey(id="id", secret="secret"))
        >>> request.headers["Authorization"]
        'Basic aWQ6c2VjcmV0'
        >>> request.headers["X-Request-Date"]
        '20240102T030405Z'

        ```
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or _utcnow

    def authenticate(self, request: LogicalRequest, credential: ApiKey) -> None:
        token = base64.b64encode(f"{credential.id}:{credential.secret}".encode()).decode("ascii")
        request.headers[DATE_HEADER] = self._clock().strftime(TIMESTAMP_FORMAT)
        request.headers["Authorization"] = f"Basic {token}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
