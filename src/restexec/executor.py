r"""Synchronous request executor.

This module provides the RequestExecutor, which signs, sends, retries
and redirect-follows one logical request at a time over an
``httpx.Client``.
"""

from __future__ import annotations

__all__ = ["RequestExecutor"]

import logging
from typing import TYPE_CHECKING

import httpx

from restexec.core.transport import create_client
from restexec.exceptions import RequestCancelledError
from restexec.executor_base import BaseRequestExecutor
from restexec.models import LogicalRequest, OriginalState, Response
from restexec.outcome import Redirect
from restexec.retry.executor_core import (
    build_transport_request,
    evaluate_exception,
    evaluate_response,
    handle_outcome,
    prepare_attempt,
    prepare_for_resend,
)
from restexec.retry.state import RetryState
from restexec.utils.sleep import interruptible_sleep

if TYPE_CHECKING:
    import threading
    from types import TracebackType
    from typing import Self

    from restexec.auth import ApiKey, RequestAuthenticator
    from restexec.core.config import ExecutorConfig
    from restexec.outcome import AttemptOutcome

logger: logging.Logger = logging.getLogger(__name__)


class RequestExecutor(BaseRequestExecutor):
    r"""Executes logical requests with signing, retries and redirects.

    For each call the executor snapshots the query parameters and
    headers of the request, then loops: restore the snapshot (after the
    first dispatch), sign, wait if the previous attempt failed, send,
    and classify the outcome.

    - Transport failures (timeouts, connection resets, no response) and
      429 responses are retried with exponential backoff while the
      budget lasts, then raised as ``RequestExecutionError`` /
      ``ThrottlingError``.
    - 5xx responses are retried while the budget lasts, then returned.
    - 301, 302 and 307 responses with a ``Location`` are followed without
      backoff and without consuming the budget.
    - 2xx, other 3xx and 4xx responses are returned immediately.

    The executor can be shared between threads; each call keeps its own
    state.

    Args:
        client: Optional ``httpx.Client``. When ``None``, a client is
            created from ``config`` and closed by ``close()``. An
            injected client is never closed by the executor.
        config: Optional executor configuration.
        authenticator: Optional request authenticator.
        credential: Optional credential passed to the authenticator.

    Example:
        ```pycon
        >>> from restexec import LogicalRequest, RequestExecutor
        >>> from restexec.auth import ApiKey, BasicRequestAuthenticator
        >>> from restexec.core.config import ExecutorConfig
        >>> with RequestExecutor(
        ...     config=ExecutorConfig(max_retries=2),
        ...     authenticator=BasicRequestAuthenticator(),
        ...     credential=ApiKey(id="id", secret="secret"),
        ... ) as executor:  # doctest: +SKIP
        ...     response = executor.execute(
        ...         LogicalRequest("GET", "https://api.example.com/v1/tenants/current")
        ...     )
        ...

        ```
    """

    def __init__(
        self,
        *,
        client: httpx.Client | None = None,
        config: ExecutorConfig | None = None,
        authenticator: RequestAuthenticator | None = None,
        credential: ApiKey | None = None,
    ) -> None:
        super().__init__(config=config, authenticator=authenticator, credential=credential)
        self._owns_client = client is None
        self._client: httpx.Client = client if client is not None else create_client(self._config)

    @property
    def client(self) -> httpx.Client:
        return self._client

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        r"""Close the transport client if it was created by the
        executor."""
        if self._owns_client and not self._client.is_closed:
            self._client.close()

    def execute(
        self,
        request: LogicalRequest,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Response:
        r"""Execute a logical request until it succeeds or fails for good.

        Args:
            request: The request to execute. It is mutated in place
                (headers, URL) while the call runs.
            cancel_event: Optional event checked while waiting before a
                retry. Setting it from another thread aborts the call.

        Returns:
            The buffered response. 4xx responses, and 5xx responses once
            the retry budget is spent, are returned too.

        Raises:
            ValueError: If ``request`` is ``None``.
            RequestExecutionError: If a transport failure cannot be
                retried any more.
            ThrottlingError: If the server keeps answering 429.
            NonReplayableBodyError: If a retry or redirect requires
                resending a body stream that cannot be rewound.
            RedirectLimitError: If the redirect chain is too long.
            RequestCancelledError: If ``cancel_event`` is set during a
                backoff wait.
        """
        if request is None:
            msg = "request argument cannot be None"
            raise ValueError(msg)

        original = OriginalState.capture(request)
        state = RetryState()

        while True:
            prepare_attempt(request, original, state, self._authenticator, self._credential)
            transport_request = build_transport_request(self._client, request)

            if not state.is_first_dispatch:
                prepare_for_resend(request, state)
            if state.is_retry:
                self._pause(request, state, cancel_event)

            state.record_dispatch()
            logger.debug(f"Sending {request.method} request to {request.url} (dispatch {state.dispatches})")
            outcome = self._dispatch(transport_request, request, state)
            response = handle_outcome(outcome, request, state, self.classifier, self.redirects)
            if response is not None:
                return response

    def _pause(
        self,
        request: LogicalRequest,
        state: RetryState,
        cancel_event: threading.Event | None,
    ) -> None:
        failure = state.last_failure
        delay = self.strategy.calculate_delay(state.attempt, failure.kind)
        logger.debug(
            f"Retryable condition detected, will retry in {delay:.3f}s, "
            f"attempt number: {state.attempt}"
        )
        if interruptible_sleep(delay, cancel_event):
            raise RequestCancelledError(
                method=request.method,
                url=str(request.url),
                message=f"{request.method} request to {request.url} was cancelled before retrying",
                attempts=state.dispatches,
                failure_kind=failure.kind,
                status_code=failure.status_code,
                response=failure.response,
            )
        state.clear_failure()

    def _dispatch(
        self,
        transport_request: httpx.Request,
        request: LogicalRequest,
        state: RetryState,
    ) -> AttemptOutcome:
        try:
            http_response = self._client.send(transport_request, stream=True)
        except httpx.RequestError as exc:
            return evaluate_exception(exc, request, state, self.classifier)

        try:
            location = self.redirects.next_target(http_response, request.url)
            if location is not None:
                return Redirect(location)
            http_response.read()
            response = Response.from_httpx(http_response)
        except httpx.RequestError as exc:
            return evaluate_exception(exc, request, state, self.classifier)
        finally:
            http_response.close()
        return evaluate_response(response, request, state, self.classifier)
