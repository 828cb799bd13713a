r"""Asynchronous request executor.

This module provides the AsyncRequestExecutor, the ``asyncio``
counterpart of RequestExecutor over an ``httpx.AsyncClient``. Backoff
waits use ``asyncio.sleep`` so that other tasks keep running, and task
cancellation propagates out of ``execute`` unchanged.
"""

from __future__ import annotations

__all__ = ["AsyncRequestExecutor"]

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from restexec.core.transport import create_async_client
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

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from restexec.auth import ApiKey, RequestAuthenticator
    from restexec.core.config import ExecutorConfig
    from restexec.outcome import AttemptOutcome

logger: logging.Logger = logging.getLogger(__name__)


class AsyncRequestExecutor(BaseRequestExecutor):
    r"""Executes logical requests asynchronously with signing, retries
    and redirects.

    The retry, redirect and signing semantics are the same as
    RequestExecutor. Concurrent ``execute`` calls on one instance are
    independent.

    Args:
        client: Optional ``httpx.AsyncClient``. When ``None``, a client is
            created from ``config`` and closed by ``aclose()``.
        config: Optional executor configuration.
        authenticator: Optional request authenticator.
        credential: Optional credential passed to the authenticator.

    Example:
        ```pycon
        >>> import asyncio
        >>> from restexec import AsyncRequestExecutor, LogicalRequest
        >>> async def main():
        ...     async with AsyncRequestExecutor() as executor:
        ...         return await executor.execute(
        ...             LogicalRequest("GET", "https://api.example.com/v1/tenants/current")
        ...         )
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        config: ExecutorConfig | None = None,
        authenticator: RequestAuthenticator | None = None,
        credential: ApiKey | None = None,
    ) -> None:
        super().__init__(config=config, authenticator=authenticator, credential=credential)
        self._owns_client = client is None
        self._client: httpx.AsyncClient = (
            client if client is not None else create_async_client(self._config)
        )

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        r"""Close the transport client if it was created by the
        executor."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def execute(self, request: LogicalRequest) -> Response:
        r"""Execute a logical request until it succeeds or fails for good.

        Args:
            request: The request to execute, mutated in place while the
                call runs.

        Returns:
            The buffered response.

        Raises:
            ValueError: If ``request`` is ``None``.
            RequestExecutionError: If a transport failure cannot be
                retried any more, or one of its subclasses
                (ThrottlingError, NonReplayableBodyError,
                RedirectLimitError).
            asyncio.CancelledError: If the task is cancelled.
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
                delay = self.strategy.calculate_delay(state.attempt, state.last_failure.kind)
                logger.debug(
                    f"Retryable condition detected, will retry in {delay:.3f}s, "
                    f"attempt number: {state.attempt}"
                )
                await asyncio.sleep(delay)
                state.clear_failure()

            state.record_dispatch()
            logger.debug(f"Sending {request.method} request to {request.url} (dispatch {state.dispatches})")
            outcome = await self._dispatch(transport_request, request, state)
            response = handle_outcome(outcome, request, state, self.classifier, self.redirects)
            if response is not None:
                return response

    async def _dispatch(
        self,
        transport_request: httpx.Request,
        request: LogicalRequest,
        state: RetryState,
    ) -> AttemptOutcome:
        try:
            http_response = await self._client.send(transport_request, stream=True)
        except httpx.RequestError as exc:
            return evaluate_exception(exc, request, state, self.classifier)

        try:
            location = self.redirects.next_target(http_response, request.url)
            if location is not None:
                return Redirect(location)
            await http_response.aread()
            response = Response.from_httpx(http_response)
        except httpx.RequestError as exc:
            return evaluate_exception(exc, request, state, self.classifier)
        finally:
            await http_response.aclose()
        return evaluate_response(response, request, state, self.classifier)
