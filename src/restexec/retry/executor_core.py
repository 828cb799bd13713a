r"""Shared core logic for the sync and async request executors.

This module provides the helper functions used by both executors:
preparing the logical request before each attempt, building the
transport request, rewinding the body, turning a transport exception or
a buffered response into an attempt outcome, and turning a terminal
failure into the exception raised to the caller.
"""

from __future__ import annotations

__all__ = [
    "build_transport_request",
    "create_terminal_error",
    "evaluate_exception",
    "evaluate_response",
    "handle_outcome",
    "prepare_attempt",
    "prepare_for_resend",
]

import logging
from typing import TYPE_CHECKING

import httpx

from restexec.exceptions import (
    NonReplayableBodyError,
    RequestExecutionError,
    ThrottlingError,
)
from restexec.outcome import (
    AttemptFailure,
    FailureKind,
    Redirect,
    RetryableFailure,
    Success,
    TerminalFailure,
)
from restexec.retry.classifier import classify_exception
from restexec.utils.structured_logging import log_structured

if TYPE_CHECKING:
    from restexec.auth import ApiKey, RequestAuthenticator
    from restexec.models import LogicalRequest, OriginalState, Response
    from restexec.outcome import AttemptOutcome
    from restexec.retry.classifier import RetryClassifier
    from restexec.retry.redirect import RedirectHandler
    from restexec.retry.state import RetryState

logger: logging.Logger = logging.getLogger(__name__)


def prepare_attempt(
    request: LogicalRequest,
    original: OriginalState,
    state: RetryState,
    authenticator: RequestAuthenticator | None,
    credential: ApiKey | None,
) -> None:
    """Bring the logical request into shape for the next dispatch.

    A pending redirect target replaces the URL. Every dispatch after the
    first starts again from the original query parameters and headers.
    The request is then signed again, since signatures are only valid
    for one attempt.

    Args:
        request: The logical request, mutated in place.
        original: The snapshot taken before the first attempt.
        state: The retry state of the call.
        authenticator: Optional request authenticator.
        credential: Optional credential passed to the authenticator.
    """
    location = state.take_redirect()
    if location is not None:
        request.url = location
    if not state.is_first_dispatch:
        original.restore(request)
    if authenticator is not None and credential is not None:
        authenticator.authenticate(request, credential)


def build_transport_request(
    client: httpx.Client | httpx.AsyncClient,
    request: LogicalRequest,
) -> httpx.Request:
    """Build the httpx request for one attempt.

    The same RequestBody is reused on every attempt. A declared content
    length is sent as the ``Content-Length`` header so that stream
    bodies are not sent with chunked encoding.

    Args:
        client: The transport client.
        request: The logical request.

    Returns:
        The transport request.
    """
    headers = httpx.Headers(request.headers)
    content = None
    if request.body is not None:
        if isinstance(client, httpx.AsyncClient):
            content = request.body.async_transport_content()
        else:
            content = request.body.transport_content()
        if request.body.content_length is not None and "Content-Length" not in headers:
            headers["Content-Length"] = str(request.body.content_length)
    return client.build_request(
        request.method,
        request.url,
        params=request.params or None,
        headers=headers,
        content=content,
    )


def prepare_for_resend(request: LogicalRequest, state: RetryState) -> None:
    """Rewind the request body before it is sent again.

    Args:
        request: The logical request.
        state: The retry state of the call.

    Raises:
        NonReplayableBodyError: If the body is a stream that cannot be
            repositioned.
    """
    if request.body is None:
        return
    if not request.body.is_replayable:
        failure = state.last_failure
        method, url = request.method, str(request.url)
        raise NonReplayableBodyError(
            method=method,
            url=url,
            message=(
                f"{method} request to {url} cannot be sent again: "
                f"the request body stream does not support repositioning"
            ),
            attempts=state.dispatches,
            status_code=failure.status_code if failure is not None else None,
            response=failure.response if failure is not None else None,
            cause=failure.error if failure is not None else None,
        )
    request.body.rewind()


def evaluate_exception(
    exc: Exception,
    request: LogicalRequest,
    state: RetryState,
    classifier: RetryClassifier,
) -> AttemptOutcome:
    """Turn an exception raised by the transport into an outcome.

    Args:
        exc: The exception raised while sending or reading.
        request: The logical request.
        state: The retry state of the call.
        classifier: The retry classifier.

    Returns:
        A RetryableFailure or a TerminalFailure.
    """
    failure = AttemptFailure(
        kind=classify_exception(exc),
        message=f"{type(exc).__name__}: {exc}",
        error=exc,
    )
    if classifier.should_retry(request, failure, state.attempt):
        return RetryableFailure(failure)
    return TerminalFailure(failure)


def evaluate_response(
    response: Response,
    request: LogicalRequest,
    state: RetryState,
    classifier: RetryClassifier,
) -> AttemptOutcome:
    """Turn a buffered response into an outcome.

    429 is a throttling failure, retried while the classifier allows it.
    5xx is retried while the budget lasts and the body can be replayed,
    otherwise it is returned as-is. Every other response is returned to
    the caller.

    Args:
        response: The buffered response.
        request: The logical request.
        state: The retry state of the call.
        classifier: The retry classifier.

    Returns:
        The attempt outcome.
    """
    if response.is_throttled:
        failure = AttemptFailure(
            kind=FailureKind.THROTTLING,
            message="HTTP 429: Too Many Requests. Exceeded request rate limit in the allotted amount of time.",
            status_code=response.status_code,
            response=response,
        )
        if classifier.should_retry(request, failure, state.attempt):
            return RetryableFailure(failure)
        return TerminalFailure(failure)

    if (
        response.is_server_error
        and request.is_replayable
        and not classifier.is_budget_exhausted(state.attempt)
    ):
        return RetryableFailure(
            AttemptFailure(
                kind=FailureKind.SERVER,
                message=f"HTTP {response.status_code}: server error",
                status_code=response.status_code,
                response=response,
            )
        )
    return Success(response)


def create_terminal_error(
    failure: AttemptFailure,
    request: LogicalRequest,
    state: RetryState,
    classifier: RetryClassifier,
) -> RequestExecutionError:
    """Create the exception raised for a terminal failure.

    Args:
        failure: The failure of the last attempt.
        request: The logical request.
        state: The retry state of the call.
        classifier: The retry classifier.

    Returns:
        The exception to raise.
    """
    method, url = request.method, str(request.url)
    attempts = state.dispatches
    common = {
        "attempts": attempts,
        "status_code": failure.status_code,
        "response": failure.response,
        "cause": failure.error,
    }
    blocked_by_body = (
        failure.kind in (FailureKind.TRANSPORT, FailureKind.THROTTLING)
        and not classifier.is_budget_exhausted(state.attempt)
        and not request.is_replayable
    )
    if blocked_by_body:
        return NonReplayableBodyError(
            method=method,
            url=url,
            message=(
                f"{method} request to {url} cannot be retried after {failure.message}: "
                f"the request body stream does not support repositioning"
            ),
            **common,
        )
    if failure.kind is FailureKind.THROTTLING:
        return ThrottlingError(
            method=method,
            url=url,
            message=f"{method} request to {url} was throttled after {attempts} attempts: {failure.message}",
            failure_kind=FailureKind.THROTTLING,
            **common,
        )
    if isinstance(failure.error, httpx.TimeoutException):
        message = f"{method} request to {url} timed out ({attempts} attempts)"
    else:
        message = (
            f"Unable to execute HTTP request: {method} request to {url} "
            f"failed after {attempts} attempts: {failure.message}"
        )
    return RequestExecutionError(
        method=method,
        url=url,
        message=message,
        failure_kind=failure.kind,
        **common,
    )


def handle_outcome(
    outcome: AttemptOutcome,
    request: LogicalRequest,
    state: RetryState,
    classifier: RetryClassifier,
    redirects: RedirectHandler,
) -> Response | None:
    """Apply an attempt outcome to the retry state.

    Args:
        outcome: The outcome of the attempt that just completed.
        request: The logical request.
        state: The retry state of the call.
        classifier: The retry classifier.
        redirects: The redirect handler.

    Returns:
        The response to return to the caller, or ``None`` if the loop
        must dispatch again.

    Raises:
        RequestExecutionError: For a terminal failure.
        RedirectLimitError: If the redirect chain is too long.
    """
    method, url = request.method, request.url
    if isinstance(outcome, Success):
        logger.debug(
            f"{method} request to {url} completed with status {outcome.response.status_code} "
            f"after {state.dispatches} dispatches"
        )
        return outcome.response

    if isinstance(outcome, Redirect):
        state.record_redirect(outcome.location)
        redirects.check_limit(state.redirects, method, url, state.dispatches)
        return None

    failure = outcome.failure
    retrying = isinstance(outcome, RetryableFailure)
    log_structured(
        logger,
        logging.WARNING,
        f"{method} request to {url} failed on attempt {state.attempt}/{classifier.max_retries + 1}"
        f" ({failure.kind.value}): {failure.message}"
        f"{'; will retry' if retrying else ''}",
        method=method,
        url=str(url),
        attempt=state.attempt,
        failure_kind=failure.kind.value,
        status_code=failure.status_code,
    )
    if retrying:
        state.record_failure(failure)
        return None

    error = create_terminal_error(failure, request, state, classifier)
    raise error from failure.error
