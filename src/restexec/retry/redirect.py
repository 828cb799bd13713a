r"""Redirect handling for the request executor.

Automatic redirects are disabled on the transport. The executor asks the
RedirectHandler whether a response should be followed and where to, then
dispatches again with the same method and body and with the original
query parameters and headers re-applied, so that headers signed for the
previous target are never sent to the new one.
"""

from __future__ import annotations

__all__ = ["RedirectHandler"]

import logging

import httpx

from restexec.core.config import DEFAULT_MAX_REDIRECTS, REDIRECT_STATUS_CODES
from restexec.core.validation import validate_retry_params
from restexec.exceptions import RedirectLimitError

logger: logging.Logger = logging.getLogger(__name__)


class RedirectHandler:
    """Decides whether a response is a redirect to follow.

    Only 301, 302 and 307 responses with a non-empty ``Location`` header
    are followed. Relative locations are resolved against the URL of the
    request that received the redirect.

    Args:
        max_redirects: Maximum number of hops followed in one logical
            call.

    Example:
        ```pycon
        >>> import httpx
        >>> from restexec.retry.redirect import RedirectHandler
        >>> handler = RedirectHandler()
        >>> response = httpx.Response(302, headers={"Location": "https://api.example.com/v2/res"})
        >>> handler.next_target(response, httpx.URL("https://api.example.com/v1/res"))
        URL('https://api.example.com/v2/res')
        >>> handler.next_target(httpx.Response(200), httpx.URL("https://api.example.com/v1/res")) is None
        True

        ```
    """

    def __init__(self, max_redirects: int = DEFAULT_MAX_REDIRECTS) -> None:
        validate_retry_params(max_retries=0, max_redirects=max_redirects)
        self.max_redirects = max_redirects

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(max_redirects={self.max_redirects})"

    def is_redirect(self, response: httpx.Response) -> bool:
        if response.status_code not in REDIRECT_STATUS_CODES:
            return False
        return bool(response.headers.get("Location", "").strip())

    def next_target(self, response: httpx.Response, current_url: httpx.URL) -> httpx.URL | None:
        """Return the URL to follow, or ``None`` if the response is not
        a redirect to follow.

        Args:
            response: The response received for ``current_url``.
            current_url: The URL of the request that was sent.

        Returns:
            The absolute URL of the next attempt, or ``None``.
        """
        if not self.is_redirect(response):
            return None
        location = response.headers["Location"].strip()
        target = current_url.join(location)
        logger.debug(f"Redirecting to: {target} (status {response.status_code})")
        return target

    def check_limit(self, redirects: int, method: str, url: httpx.URL, attempts: int) -> None:
        """Raise if one more hop would exceed the limit.

        Args:
            redirects: Number of hops already followed, including the
                one about to be followed.
            method: The HTTP method, for the error message.
            url: The URL that answered with the last redirect.
            attempts: Number of dispatches made so far.

        Raises:
            RedirectLimitError: If ``redirects`` exceeds ``max_redirects``.
        """
        if redirects > self.max_redirects:
            raise RedirectLimitError(
                method=method,
                url=str(url),
                message=(
                    f"{method} request to {url} exceeded the limit of "
                    f"{self.max_redirects} redirects"
                ),
                attempts=attempts,
            )
