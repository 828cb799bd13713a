r"""Backoff delay calculation and cancellable sleeping.

This module computes the wait before a retry from a backoff policy and
a ceiling, and performs that wait in a way that can be interrupted by a
cancellation event from another thread.
"""

from __future__ import annotations

__all__ = ["calculate_sleep_time", "interruptible_sleep"]

import logging
import time
from typing import TYPE_CHECKING

from restexec.backoff.exponential import ExponentialBackoff
from restexec.core.config import MAX_BACKOFF

if TYPE_CHECKING:
    import threading

    from restexec.backoff.base import BaseBackoffPolicy
    from restexec.outcome import FailureKind

logger: logging.Logger = logging.getLogger(__name__)


def calculate_sleep_time(
    attempt: int,
    failure_kind: FailureKind | None = None,
    backoff_policy: BaseBackoffPolicy | None = None,
    max_wait_time: float = MAX_BACKOFF,
) -> float:
    """Calculate the wait before the next attempt.

    The delay is computed by the backoff policy, then clamped to
    ``[0, max_wait_time]``. A custom policy fully replaces the default
    formula; only the ceiling is applied on top of it.

    Args:
        attempt: The number of attempts already made.
        failure_kind: The kind of the failure that triggered the retry.
        backoff_policy: The backoff policy. Defaults to
            ``ExponentialBackoff()``.
        max_wait_time: The ceiling in seconds.

    Returns:
        The wait in seconds.

    Example:
        ```pycon
        >>> from restexec.utils.sleep import calculate_sleep_time
        >>> from restexec.backoff import ConstantBackoff
        >>> calculate_sleep_time(attempt=1)
        0.6
        >>> calculate_sleep_time(attempt=3)
        2.4
        >>> calculate_sleep_time(attempt=1, backoff_policy=ConstantBackoff(60.0))
        20.0

        ```
    """
    if backoff_policy is None:
        backoff_policy = ExponentialBackoff()
    sleep_time = backoff_policy.calculate(attempt, failure_kind)
    if sleep_time > max_wait_time:
        logger.debug(f"Capping sleep time from {sleep_time:.2f}s to {max_wait_time:.2f}s")
        sleep_time = max_wait_time
    return max(sleep_time, 0.0)


def interruptible_sleep(delay: float, cancel_event: threading.Event | None = None) -> bool:
    """Block the calling thread for ``delay`` seconds.

    Args:
        delay: The wait in seconds.
        cancel_event: Optional event. When it is set before or during
            the wait, the wait stops early.

    Returns:
        ``True`` if the wait was cancelled, otherwise ``False``.

    Example:
        ```pycon
        >>> import threading
        >>> from restexec.utils.sleep import interruptible_sleep
        >>> interruptible_sleep(0.0)
        False
        >>> event = threading.Event()
        >>> event.set()
        >>> interruptible_sleep(10.0, event)
        True

        ```
    """
    if cancel_event is None:
        time.sleep(delay)
        return False
    return cancel_event.wait(delay)
