r"""Exponential backoff policy with throttling-aware jitter."""

from __future__ import annotations

__all__ = ["ExponentialBackoff"]

import random

from restexec.backoff.base import BaseBackoffPolicy
from restexec.core.config import MAX_BACKOFF
from restexec.outcome import FailureKind


class ExponentialBackoff(BaseBackoffPolicy):
    """Exponential backoff policy.

    Calculates delay as ``min(max_delay, scale * 2 ** attempt)``. The
    scale is ``base_delay`` for ordinary failures. After a throttling
    failure (HTTP 429) it is ``throttling_base_delay`` plus a random
    jitter in ``[0, throttling_jitter)`` so that concurrent callers that
    were throttled together do not retry together.

    This is the default policy of the executor.

    Args:
        base_delay: The scale in seconds for non-throttling failures.
        throttling_base_delay: The scale in seconds after throttling.
        throttling_jitter: The upper bound in seconds of the random part
            added to ``throttling_base_delay``.
        max_delay: The ceiling in seconds.
        rng: Optional random generator used for the jitter. Defaults to
            the ``random`` module.

    Example:
        ```pycon
        >>> from restexec.backoff import ExponentialBackoff
        >>> backoff = ExponentialBackoff()
        >>> backoff.calculate(1)  # First retry
        0.6
        >>> backoff.calculate(2)  # Second retry
        1.2
        >>> backoff.calculate(10)  # Would be 307.2, but capped
        20.0

        ```
    """

    def __init__(
        self,
        base_delay: float = 0.3,
        throttling_base_delay: float = 0.5,
        throttling_jitter: float = 0.1,
        max_delay: float = MAX_BACKOFF,
        rng: random.Random | None = None,
    ) -> None:
        if base_delay < 0:
            msg = f"base_delay must be non-negative, got {base_delay}"
            raise ValueError(msg)
        if throttling_base_delay < 0:
            msg = f"throttling_base_delay must be non-negative, got {throttling_base_delay}"
            raise ValueError(msg)
        if throttling_jitter < 0:
            msg = f"throttling_jitter must be non-negative, got {throttling_jitter}"
            raise ValueError(msg)
        if max_delay <= 0:
            msg = f"max_delay must be positive, got {max_delay}"
            raise ValueError(msg)

        self.base_delay = base_delay
        self.throttling_base_delay = throttling_base_delay
        self.throttling_jitter = throttling_jitter
        self.max_delay = max_delay
        self._rng = rng

    def scale(self, failure_kind: FailureKind | None = None) -> float:
        """Return the scale factor for a failure kind.

        Args:
            failure_kind: The kind of the failure that triggered the retry.

        Returns:
            The scale in seconds, including jitter after throttling.
        """
        if failure_kind is FailureKind.THROTTLING:
            uniform = self._rng.uniform if self._rng is not None else random.uniform
            return self.throttling_base_delay + uniform(0, self.throttling_jitter)  # noqa: S311
        return self.base_delay

    def calculate(self, attempt: int, failure_kind: FailureKind | None = None) -> float:
        """Calculate exponential backoff delay.

        Args:
            attempt: The number of attempts already made.
            failure_kind: The kind of the failure that triggered the retry.

        Returns:
            The delay in seconds, capped at ``max_delay``.
        """
        # 2**64 already exceeds any sane ceiling and keeps the float finite
        exponent = min(max(attempt, 0), 64)
        return min(self.max_delay, self.scale(failure_kind) * (2**exponent))
