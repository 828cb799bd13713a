r"""Parameter validation utilities for the request executor.

This module provides validation functions for executor parameters to
ensure they meet the required constraints before being used by the
retry loop or by the transport factory.
"""

from __future__ import annotations

__all__ = ["validate_retry_params", "validate_timeout"]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


def validate_timeout(timeout: float | httpx.Timeout) -> None:
    """Validate timeout parameter.

    Args:
        timeout: Maximum seconds to wait for server responses.
            Must be > 0 if provided as a numeric value.

    Raises:
        ValueError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from restexec.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: timeout must be > 0, got 0

        ```
    """
    if isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ValueError(msg)


def validate_retry_params(
    max_retries: int,
    max_wait_time: float | None = None,
    max_redirects: int = 0,
    max_connections: int = 1,
) -> None:
    """Validate retry parameters.

    Args:
        max_retries: Maximum number of retries after the initial attempt.
            Must be >= 0. A value of 0 means the request is dispatched once.
        max_wait_time: Ceiling in seconds applied to every backoff delay.
            Must be > 0 if provided.
        max_redirects: Maximum number of redirect hops followed in one
            logical call. Must be >= 0.
        max_connections: Size of the default transport connection pool.
            Must be >= 1.

    Raises:
        ValueError: If any parameter is outside its allowed range.

    Example:
        ```pycon
        >>> from restexec.core.validation import validate_retry_params
        >>> validate_retry_params(max_retries=4)
        >>> validate_retry_params(max_retries=4, max_wait_time=20.0)
        >>> validate_retry_params(max_retries=-1)  # doctest: +SKIP

        ```
    """
    if max_retries < 0:
        msg = f"max_retries must be >= 0, got {max_retries}"
        raise ValueError(msg)
    if max_wait_time is not None and max_wait_time <= 0:
        msg = f"max_wait_time must be > 0, got {max_wait_time}"
        raise ValueError(msg)
    if max_redirects < 0:
        msg = f"max_redirects must be >= 0, got {max_redirects}"
        raise ValueError(msg)
    if max_connections < 1:
        msg = f"max_connections must be >= 1, got {max_connections}"
        raise ValueError(msg)
