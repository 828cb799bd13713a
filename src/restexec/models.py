r"""Request and response value types used by the executor.

A ``LogicalRequest`` is mutated in place across the attempts of one
logical call: authenticators add headers, redirects change the target.
``OriginalState`` captures the query parameters and headers before the
first attempt so that every later attempt starts again from them.
``Response`` is a fully buffered response, detached from the transport
connection that produced it.
"""

from __future__ import annotations

__all__ = ["LogicalRequest", "OriginalState", "RequestBody", "Response"]

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, BinaryIO

import httpx

from restexec.core.config import REDIRECT_STATUS_CODES, THROTTLING_STATUS_CODE

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator, Mapping

logger: logging.Logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class RequestBody:
    r"""Payload of a request, either in-memory bytes or a binary stream.

    Bytes are always replayable. A stream is replayable when it is
    seekable; ``rewind`` moves it back to the position it had when the
    body was created so that it can be sent again.

    Args:
        content: The payload bytes or a binary file-like object.
        content_length: The declared length in bytes. Defaults to
            ``len(content)`` for bytes and to unknown for streams, in
            which case the transport uses chunked encoding.

    Example:
        ```pycon
        >>> import io
        >>> from restexec.models import RequestBody
        >>> RequestBody(b'{"name": "acme"}').is_replayable
        True
        >>> body = RequestBody(io.BytesIO(b"payload"), content_length=7)
        >>> body.is_replayable
        True
        >>> b"".join(body.iter_bytes())
        b'payload'
        >>> body.rewind()
        >>> b"".join(body.iter_bytes())
        b'payload'

        ```
    """

    def __init__(self, content: bytes | bytearray | BinaryIO, content_length: int | None = None) -> None:
        if content_length is not None and content_length < 0:
            msg = f"content_length must be >= 0, got {content_length}"
            raise ValueError(msg)
        if isinstance(content, (bytes, bytearray)):
            content = bytes(content)
            if content_length is None:
                content_length = len(content)
            self._start: int | None = 0
        elif _is_seekable(content):
            self._start = content.tell()
        else:
            self._start = None
        self._content = content
        self.content_length = content_length

    def __repr__(self) -> str:
        kind = "bytes" if self.is_bytes else type(self._content).__name__
        return (
            f"{self.__class__.__qualname__}(content={kind}, "
            f"content_length={self.content_length}, replayable={self.is_replayable})"
        )

    @property
    def is_bytes(self) -> bool:
        return isinstance(self._content, bytes)

    @property
    def is_replayable(self) -> bool:
        r"""``True`` if the body can be sent more than once."""
        return self._start is not None

    def rewind(self) -> None:
        r"""Reposition a stream body to its start.

        Raises:
            ValueError: If the body is a stream that cannot be
                repositioned.
        """
        if self.is_bytes:
            return
        if self._start is None:
            msg = "request body stream does not support repositioning"
            raise ValueError(msg)
        self._content.seek(self._start)

    def transport_content(self) -> bytes | Iterator[bytes]:
        r"""Return the content in the form expected by ``httpx.Client``."""
        if self.is_bytes:
            return self._content
        return self.iter_bytes()

    def async_transport_content(self) -> bytes | AsyncIterator[bytes]:
        r"""Return the content in the form expected by
        ``httpx.AsyncClient``."""
        if self.is_bytes:
            return self._content
        return self.aiter_bytes()

    def iter_bytes(self) -> Iterator[bytes]:
        if self.is_bytes:
            yield self._content
            return
        while chunk := self._content.read(CHUNK_SIZE):
            yield chunk

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        r"""Iterate over the content without blocking the event loop.

        Stream reads run in a worker thread.
        """
        if self.is_bytes:
            yield self._content
            return
        while chunk := await asyncio.to_thread(self._content.read, CHUNK_SIZE):
            yield chunk


def _is_seekable(stream: Any) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except ValueError:
        # closed file
        return False


@dataclass
class LogicalRequest:
    r"""One caller-initiated request, possibly dispatched several times.

    Args:
        method: The HTTP method. Stored upper-cased.
        url: The absolute target URL.
        params: Query parameters, one value per key.
        headers: Request headers. Multi-valued, case-insensitive keys.
        body: Optional payload. Bytes are wrapped into a RequestBody.

    Example:
        ```pycon
        >>> from restexec.models import LogicalRequest
        >>> request = LogicalRequest(
        ...     "post",
        ...     "https://api.example.com/v1/accounts",
        ...     params={"expand": "groups"},
        ...     headers={"Accept": "application/json"},
        ...     body=b'{"email": "jane@example.com"}',
        ... )
        >>> request.method
        'POST'
        >>> request.body.content_length
        29

        ```
    """

    method: str
    url: httpx.URL | str
    params: dict[str, str] = field(default_factory=dict)
    headers: httpx.Headers | Mapping[str, str] = field(default_factory=httpx.Headers)
    body: RequestBody | bytes | None = None

    def __post_init__(self) -> None:
        if not self.method:
            msg = "method cannot be empty"
            raise ValueError(msg)
        self.method = self.method.upper()
        self.url = httpx.URL(self.url)
        if not self.url.is_absolute_url:
            msg = f"url must be absolute, got {str(self.url)!r}"
            raise ValueError(msg)
        self.params = {str(k): str(v) for k, v in self.params.items()}
        self.headers = httpx.Headers(self.headers)
        if isinstance(self.body, (bytes, bytearray)):
            self.body = RequestBody(self.body)

    @property
    def has_body(self) -> bool:
        return self.body is not None

    @property
    def is_replayable(self) -> bool:
        r"""``True`` if the request can be dispatched again as-is."""
        return self.body is None or self.body.is_replayable


@dataclass(frozen=True)
class OriginalState:
    r"""Immutable snapshot of the query parameters and headers of a
    request.

    Example:
        ```pycon
        >>> from restexec.models import LogicalRequest, OriginalState
        >>> request = LogicalRequest("GET", "https://api.example.com/v1/tenants", params={"limit": "25"})
        >>> state = OriginalState.capture(request)
        >>> request.headers["Authorization"] = "Basic xyz"
        >>> request.params["offset"] = "25"
        >>> state.restore(request)
        >>> request.params
        {'limit': '25'}
        >>> "Authorization" in request.headers
        False

        ```
    """

    params: tuple[tuple[str, str], ...]
    headers: tuple[tuple[str, str], ...]

    @classmethod
    def capture(cls, request: LogicalRequest) -> OriginalState:
        return cls(
            params=tuple(request.params.items()),
            headers=tuple(request.headers.multi_items()),
        )

    def restore(self, request: LogicalRequest) -> None:
        request.params = dict(self.params)
        request.headers = httpx.Headers(list(self.headers))


@dataclass(frozen=True)
class Response:
    r"""A fully buffered HTTP response.

    Args:
        status_code: The HTTP status code.
        headers: The response headers.
        content: The whole response body.
        media_type: The media type of the body without parameters,
            lower-cased, or ``None`` if the response has no
            ``Content-Type`` header.
        content_length: The declared ``Content-Length``, or ``None``.
        url: The URL of the request that produced the response.

    Example:
        ```pycon
        >>> import httpx
        >>> from restexec.models import Response
        >>> response = Response(
        ...     status_code=200,
        ...     headers=httpx.Headers({"Content-Type": "application/json; charset=utf-8"}),
        ...     content=b'{"href": "https://api.example.com/v1/accounts/1"}',
        ...     media_type="application/json",
        ... )
        >>> response.is_success
        True
        >>> response.json()["href"]
        'https://api.example.com/v1/accounts/1'

        ```
    """

    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: bytes = b""
    media_type: str | None = None
    content_length: int | None = None
    url: httpx.URL | None = None

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> Response:
        r"""Build a buffered response from an httpx response whose body
        has already been read.

        Raises:
            httpx.ResponseNotRead: If the body was not read.
        """
        headers = httpx.Headers(response.headers)
        return cls(
            status_code=response.status_code,
            headers=headers,
            content=response.content,
            media_type=_parse_media_type(headers.get("Content-Type")),
            content_length=_parse_content_length(headers.get("Content-Length")),
            url=response.request.url if _has_request(response) else None,
        )

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_redirect(self) -> bool:
        return self.status_code in REDIRECT_STATUS_CODES

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600

    @property
    def is_throttled(self) -> bool:
        return self.status_code == THROTTLING_STATUS_CODE

    @property
    def encoding(self) -> str:
        content_type = self.headers.get("Content-Type", "")
        for param in content_type.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding, errors="replace")

    def json(self, **kwargs: Any) -> Any:
        return json.loads(self.content, **kwargs)


def _parse_media_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type or None


def _parse_content_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        logger.debug(f"Ignoring invalid Content-Length header: {value!r}")
        return None
    return length if length >= 0 else None


def _has_request(response: httpx.Response) -> bool:
    try:
        response.request  # noqa: B018
    except RuntimeError:
        return False
    return True
