r"""Factories for the default httpx transport clients.

The executor never configures a transport it was given. These helpers
are only used when no client is injected, and they always disable
automatic redirects because redirects are followed by the executor
itself.
"""

from __future__ import annotations

__all__ = ["create_async_client", "create_client"]

import logging
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from restexec.core.config import ExecutorConfig

logger: logging.Logger = logging.getLogger(__name__)


def _client_kwargs(config: ExecutorConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "timeout": config.timeout,
        "limits": httpx.Limits(
            max_connections=config.max_connections,
            max_keepalive_connections=config.max_connections,
        ),
        "follow_redirects": False,
    }
    if config.proxy is not None:
        logger.debug(f"Using proxy {config.proxy.host}:{config.proxy.port}")
        kwargs["proxy"] = config.proxy.url
    return kwargs


def create_client(config: ExecutorConfig) -> httpx.Client:
    """Create the default synchronous transport for a config.

    Args:
        config: The executor configuration.

    Returns:
        A new ``httpx.Client`` with redirects disabled.

    Example:
        ```pycon
        >>> from restexec.core.config import ExecutorConfig
        >>> from restexec.core.transport import create_client
        >>> with create_client(ExecutorConfig(timeout=5.0)) as client:
        ...     client.follow_redirects
        ...
        False

        ```
    """
    return httpx.Client(**_client_kwargs(config))


def create_async_client(config: ExecutorConfig) -> httpx.AsyncClient:
    """Create the default asynchronous transport for a config.

    Args:
        config: The executor configuration.

    Returns:
        A new ``httpx.AsyncClient`` with redirects disabled.
    """
    return httpx.AsyncClient(**_client_kwargs(config))
