r"""Abstract base class for backoff policies."""

from __future__ import annotations

__all__ = ["BaseBackoffPolicy"]

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from restexec.outcome import FailureKind


class BaseBackoffPolicy(ABC):
    """Abstract base class for backoff policies.

    A backoff policy determines how long to wait before retrying a
    failed request based on the attempt number and on the kind of the
    failure that triggered the retry. Policies must not keep state
    between calls.
    """

    @abstractmethod
    def calculate(self, attempt: int, failure_kind: FailureKind | None = None) -> float:
        """Calculate the backoff delay before the next attempt.

        Args:
            attempt: The number of attempts already made in the logical
                call. The first retry is computed with ``attempt=1``.
            failure_kind: The kind of the failure that triggered the
                retry, if known.

        Returns:
            The delay in seconds.
        """
