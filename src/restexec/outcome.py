r"""Failure kinds and per-attempt outcome variants.

Each dispatch attempt of a logical call produces exactly one outcome:
``Success``, ``Redirect``, ``RetryableFailure`` or ``TerminalFailure``.
Failures carry a structured ``AttemptFailure`` whose ``kind`` tells the
backoff policy and the retry classifier what went wrong, so nothing has
to inspect exception messages.
"""

from __future__ import annotations

__all__ = [
    "AttemptFailure",
    "AttemptOutcome",
    "FailureKind",
    "Redirect",
    "RetryableFailure",
    "Success",
    "TerminalFailure",
]

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    import httpx

    from restexec.models import Response


class FailureKind(str, Enum):
    """Kind of failure observed for one attempt."""

    # connection reset or refused, timeouts, no response received
    TRANSPORT = "transport"
    # any other error raised while building or sending the request
    REQUEST = "request"
    # HTTP 429
    THROTTLING = "throttling"
    # HTTP 5xx
    SERVER = "server"
    NON_REPLAYABLE_BODY = "non_replayable_body"


@dataclass(frozen=True)
class AttemptFailure:
    """Structured reason for a failed attempt.

    Attributes:
        kind: The failure kind.
        message: A human-readable description of the failure.
        status_code: The HTTP status code, when a response was received.
        response: The buffered response, when one was received.
        error: The exception raised by the transport, if any.
    """

    kind: FailureKind
    message: str
    status_code: int | None = None
    response: Response | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class Success:
    response: Response


@dataclass(frozen=True)
class Redirect:
    location: httpx.URL


@dataclass(frozen=True)
class RetryableFailure:
    failure: AttemptFailure


@dataclass(frozen=True)
class TerminalFailure:
    failure: AttemptFailure


AttemptOutcome = Union[Success, Redirect, RetryableFailure, TerminalFailure]
