r"""Per-call retry bookkeeping."""

from __future__ import annotations

__all__ = ["RetryState"]

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from restexec.outcome import AttemptFailure


@dataclass
class RetryState:
    """Mutable state of one logical call.

    A new instance is created for every call to ``execute`` and is never
    shared between calls.

    Attributes:
        dispatches: Number of physical dispatches made.
        redirects: Number of redirect hops followed.
        last_failure: The failure of the previous attempt when that
            attempt is being retried, otherwise ``None``.
        redirect_url: A redirect target waiting to be followed.

    Example:
        ```pycon
        >>> import httpx
        >>> from restexec.retry.state import RetryState
        >>> state = RetryState()
        >>> state.record_dispatch()
        >>> state.record_redirect(httpx.URL("https://api.example.com/v2/res"))
        >>> state.record_dispatch()
        >>> state.dispatches, state.attempt
        (2, 1)

        ```
    """

    dispatches: int = 0
    redirects: int = 0
    last_failure: AttemptFailure | None = None
    redirect_url: httpx.URL | None = None

    @property
    def attempt(self) -> int:
        """Number of attempts that count against the retry budget.

        Dispatches answered by a followed redirect do not count.
        """
        return self.dispatches - self.redirects

    @property
    def is_first_dispatch(self) -> bool:
        return self.dispatches == 0

    @property
    def is_retry(self) -> bool:
        return self.last_failure is not None

    def record_dispatch(self) -> None:
        self.dispatches += 1

    def record_failure(self, failure: AttemptFailure) -> None:
        self.last_failure = failure

    def record_redirect(self, location: httpx.URL) -> None:
        self.redirects += 1
        self.redirect_url = location
        self.last_failure = None

    def take_redirect(self) -> httpx.URL | None:
        """Return the pending redirect target and clear it."""
        location, self.redirect_url = self.redirect_url, None
        return location

    def clear_failure(self) -> None:
        self.last_failure = None
