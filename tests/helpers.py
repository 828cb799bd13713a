r"""Shared test helpers for the executor tests.

This module contains a scripted handler for ``httpx.MockTransport`` and
small factories used across the sync and async executor tests.
"""

from __future__ import annotations

__all__ = [
    "ACCOUNTS_URL",
    "ScriptedHandler",
    "StreamTracker",
    "TrackingStream",
    "UnseekableStream",
    "make_async_client",
    "make_client",
]

import io
from typing import TYPE_CHECKING

import httpx

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator, Sequence

ACCOUNTS_URL = "https://api.example.com/v1/accounts"


class ScriptedHandler:
    """MockTransport handler replaying a fixed script of results.

    Each entry of the script is either an ``httpx.Response`` to return,
    an exception class (or instance) to raise, or a callable receiving
    the request and returning a response. The last entry is repeated
    once the script is exhausted. Every request received is recorded,
    together with its body.

    Args:
        script: The results, in dispatch order.
    """

    def __init__(self, script: Sequence[object]) -> None:
        self._script = list(script)
        self.requests: list[httpx.Request] = []
        self.bodies: list[bytes] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(request.content)
        index = min(len(self.requests), len(self._script)) - 1
        result = self._script[index]
        if isinstance(result, type) and issubclass(result, Exception):
            raise result("scripted failure", request=request)
        if isinstance(result, Exception):
            raise result
        if isinstance(result, httpx.Response):
            return httpx.Response(
                result.status_code,
                headers=result.headers,
                content=result.content,
            )
        return result(request)


class UnseekableStream(io.RawIOBase):
    """Readable binary stream that cannot be repositioned."""

    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._buffer = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def readinto(self, buffer: bytearray) -> int:
        data = self._buffer.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)


class TrackingStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Response body stream recording whether it was closed.

    Args:
        content: The body served by the stream.
        error: Optional exception raised once the body is served.
    """

    def __init__(self, content: bytes = b"", error: Exception | None = None) -> None:
        self._content = content
        self._error = error
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        yield self._content
        if self._error is not None:
            raise self._error

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._content
        if self._error is not None:
            raise self._error

    def close(self) -> None:
        self.closed = True

    async def aclose(self) -> None:
        self.closed = True


class StreamTracker:
    """Factory of streaming responses that keeps every stream it
    serves."""

    def __init__(self) -> None:
        self.streams: list[TrackingStream] = []

    def respond(
        self,
        status_code: int,
        headers: dict[str, str] | None = None,
        content: bytes = b"",
        error: Exception | None = None,
    ) -> Callable[[httpx.Request], httpx.Response]:
        def responder(request: httpx.Request) -> httpx.Response:
            stream = TrackingStream(content, error)
            self.streams.append(stream)
            return httpx.Response(status_code, headers=headers, stream=stream)

        return responder

    @property
    def all_closed(self) -> bool:
        return all(stream.closed for stream in self.streams)


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=False)


def make_async_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=False)
