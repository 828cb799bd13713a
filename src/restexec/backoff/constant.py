r"""Constant backoff policy."""

from __future__ import annotations

__all__ = ["ConstantBackoff"]

from typing import TYPE_CHECKING

from restexec.backoff.base import BaseBackoffPolicy

if TYPE_CHECKING:
    from restexec.outcome import FailureKind


class ConstantBackoff(BaseBackoffPolicy):
    """Constant backoff policy.

    Returns the same delay for every retry whatever the attempt number
    or the failure kind. Useful in tests, or against a service with a
    known recovery time.

    Args:
        delay: The fixed delay in seconds.

    Example:
        ```pycon
        >>> from restexec.backoff import ConstantBackoff
        >>> from restexec.outcome import FailureKind
        >>> backoff = ConstantBackoff(delay=2.5)
        >>> backoff.calculate(1)
        2.5
        >>> backoff.calculate(4, FailureKind.THROTTLING)
        2.5

        ```
    """

    def __init__(self, delay: float = 1.0) -> None:
        if delay < 0:
            msg = f"delay must be non-negative, got {delay}"
            raise ValueError(msg)
        self.delay = delay

    def calculate(
        self,
        attempt: int,  # noqa: ARG002
        failure_kind: FailureKind | None = None,  # noqa: ARG002
    ) -> float:
        return self.delay
