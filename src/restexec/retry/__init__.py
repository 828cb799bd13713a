r"""Retry machinery of the request executor.

Public API:
    - RetryClassifier: Decides whether a failed attempt is retried
    - RetryStrategy: Computes the wait before a retry
    - RedirectHandler: Decides whether and where a redirect is followed
    - RetryState: Per-call bookkeeping
    - classify_exception: Maps transport exceptions to failure kinds
"""

from __future__ import annotations

__all__ = [
    "RedirectHandler",
    "RetryClassifier",
    "RetryState",
    "RetryStrategy",
    "classify_exception",
]

from restexec.retry.classifier import RetryClassifier, classify_exception
from restexec.retry.redirect import RedirectHandler
from restexec.retry.state import RetryState
from restexec.retry.strategy import RetryStrategy
