r"""Retry strategy for calculating backoff delays."""

from __future__ import annotations

__all__ = ["RetryStrategy"]

from typing import TYPE_CHECKING

from restexec.backoff.exponential import ExponentialBackoff
from restexec.core.config import MAX_BACKOFF
from restexec.utils.sleep import calculate_sleep_time

if TYPE_CHECKING:
    from restexec.backoff.base import BaseBackoffPolicy
    from restexec.outcome import FailureKind


class RetryStrategy:
    """Strategy for calculating retry delays.

    Args:
        backoff_policy: Backoff policy instance. Defaults to
            ``ExponentialBackoff()``.
        max_wait_time: Ceiling in seconds applied to every delay.

    Attributes:
        backoff_policy: The backoff policy in use.
        max_wait_time: The ceiling in seconds.
    """

    def __init__(
        self,
        backoff_policy: BaseBackoffPolicy | None = None,
        max_wait_time: float = MAX_BACKOFF,
    ) -> None:
        self.backoff_policy: BaseBackoffPolicy = (
            backoff_policy if backoff_policy is not None else ExponentialBackoff()
        )
        self.max_wait_time = max_wait_time

    def calculate_delay(self, attempt: int, failure_kind: FailureKind | None = None) -> float:
        """Calculate delay before the next attempt.

        Args:
            attempt: Number of attempts already made.
            failure_kind: Kind of the failure that triggered the retry.

        Returns:
            Sleep time in seconds.
        """
        return calculate_sleep_time(
            attempt=attempt,
            failure_kind=failure_kind,
            backoff_policy=self.backoff_policy,
            max_wait_time=self.max_wait_time,
        )
