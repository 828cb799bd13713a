r"""Configuration dataclasses and defaults for the request executor.

This module provides configuration constants and dataclass-based
configuration objects for the RequestExecutor and AsyncRequestExecutor
classes.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_MAX_REDIRECTS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT",
    "MAX_BACKOFF",
    "REDIRECT_STATUS_CODES",
    "THROTTLING_STATUS_CODE",
    "ExecutorConfig",
    "ProxyConfig",
]

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from restexec.core.validation import validate_retry_params, validate_timeout

if TYPE_CHECKING:
    import httpx

    from restexec.backoff import BaseBackoffPolicy


# Default timeout in seconds for both connecting and reading
DEFAULT_TIMEOUT = 10.0

# Default maximum number of retries
# Total dispatches = max_retries + 1 (initial attempt)
DEFAULT_MAX_RETRIES = 4

# Ceiling in seconds applied to every backoff delay, whatever the policy
MAX_BACKOFF = 20.0

# Redirect hops followed in one logical call before giving up
DEFAULT_MAX_REDIRECTS = 10

# Connections kept by the default transport
DEFAULT_MAX_CONNECTIONS = 10

# 301: Moved Permanently, 302: Found, 307: Temporary Redirect
REDIRECT_STATUS_CODES = (301, 302, 307)

# 429: Too Many Requests
THROTTLING_STATUS_CODE = 429


@dataclass(frozen=True)
class ProxyConfig:
    """HTTP proxy used by the default transport.

    Args:
        host: The proxy host name.
        port: The proxy port.
        username: Optional user name when the proxy requires authentication.
        password: Optional password when the proxy requires authentication.

    Example:
        ```pycon
        >>> from restexec.core.config import ProxyConfig
        >>> ProxyConfig(host="proxy.local", port=3128).url
        'http://proxy.local:3128'
        >>> ProxyConfig(host="proxy.local", port=3128, username="u", password="p").url
        'http://u:p@proxy.local:3128'

        ```
    """

    host: str
    port: int
    username: str | None = None
    password: str | None = None

    def __post_init__(self) -> None:
        if not self.host:
            msg = "proxy host cannot be empty"
            raise ValueError(msg)
        if not 0 < self.port < 65536:
            msg = f"proxy port must be in [1, 65535], got {self.port}"
            raise ValueError(msg)

    @property
    def is_authentication_required(self) -> bool:
        return self.username is not None and self.password is not None

    @property
    def url(self) -> str:
        if self.is_authentication_required:
            userinfo = f"{quote(self.username, safe='')}:{quote(self.password, safe='')}"
            return f"http://{userinfo}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(host={self.host!r}, port={self.port}, "
            f"username={self.username!r}, password={'***' if self.password else None})"
        )


@dataclass
class ExecutorConfig:
    """Configuration for the request executor.

    The retry parameters (``max_retries``, ``backoff_policy``,
    ``max_wait_time``, ``max_redirects``) drive the retry loop. The
    transport parameters (``timeout``, ``proxy``, ``max_connections``)
    are only used when the executor creates its own httpx client; an
    injected client is used as-is.

    Args:
        max_retries: Maximum number of retries after the initial attempt.
            Must be >= 0.
        backoff_policy: Optional custom backoff policy. When ``None`` the
            default ExponentialBackoff is used.
        max_wait_time: Ceiling in seconds for every backoff delay.
        max_redirects: Maximum number of redirect hops per logical call.
        timeout: Connect and read timeout of the default transport.
        proxy: Optional proxy of the default transport.
        max_connections: Connection pool size of the default transport.

    Example:
        ```pycon
        >>> from restexec.core.config import ExecutorConfig
        >>> config = ExecutorConfig()
        >>> config.max_retries
        4
        >>> config.merge(max_retries=2).max_retries
        2
        >>> config.max_retries  # Original unchanged
        4

        ```
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_policy: BaseBackoffPolicy | None = None
    max_wait_time: float = MAX_BACKOFF
    max_redirects: int = DEFAULT_MAX_REDIRECTS
    timeout: float | httpx.Timeout = DEFAULT_TIMEOUT
    proxy: ProxyConfig | None = None
    max_connections: int = DEFAULT_MAX_CONNECTIONS

    def __post_init__(self) -> None:
        validate_retry_params(
            max_retries=self.max_retries,
            max_wait_time=self.max_wait_time,
            max_redirects=self.max_redirects,
            max_connections=self.max_connections,
        )
        validate_timeout(self.timeout)

    def merge(self, **overrides: Any) -> ExecutorConfig:
        """Create a new config with the specified parameters overridden.

        Only non-None override values are applied, so this method cannot
        be used to reset an optional parameter to ``None``.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new validated ExecutorConfig instance.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)
