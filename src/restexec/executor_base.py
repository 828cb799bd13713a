r"""Configuration surface shared by the sync and async executors."""

from __future__ import annotations

__all__ = ["BaseRequestExecutor"]

from dataclasses import replace
from typing import TYPE_CHECKING

from restexec.core.config import ExecutorConfig
from restexec.retry.classifier import RetryClassifier
from restexec.retry.redirect import RedirectHandler
from restexec.retry.strategy import RetryStrategy

if TYPE_CHECKING:
    from restexec.auth import ApiKey, RequestAuthenticator
    from restexec.backoff.base import BaseBackoffPolicy


class BaseRequestExecutor:
    r"""Holds the configuration and collaborators of an executor.

    The only state kept between calls is this configuration; everything
    that changes during a call lives in local variables of ``execute``.

    Args:
        config: Optional executor configuration. Defaults to
            ``ExecutorConfig()``.
        authenticator: Optional request authenticator, invoked before
            every attempt.
        credential: Optional credential passed to the authenticator.
            Requests are sent unsigned when either is missing.
    """

    def __init__(
        self,
        *,
        config: ExecutorConfig | None = None,
        authenticator: RequestAuthenticator | None = None,
        credential: ApiKey | None = None,
    ) -> None:
        self._config: ExecutorConfig = config or ExecutorConfig()
        self._authenticator = authenticator
        self._credential = credential
        self.classifier = RetryClassifier(self._config.max_retries)
        self.strategy = RetryStrategy(self._config.backoff_policy, self._config.max_wait_time)
        self.redirects = RedirectHandler(self._config.max_redirects)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(max_retries={self.max_retries}, "
            f"backoff_policy={self.backoff_policy!r}, credential={self._credential!r})"
        )

    @property
    def config(self) -> ExecutorConfig:
        return self._config

    @property
    def authenticator(self) -> RequestAuthenticator | None:
        return self._authenticator

    @property
    def credential(self) -> ApiKey | None:
        return self._credential

    @property
    def max_retries(self) -> int:
        r"""Maximum number of retries after the initial attempt."""
        return self._config.max_retries

    @max_retries.setter
    def max_retries(self, max_retries: int) -> None:
        self._config = self._config.merge(max_retries=max_retries)
        self.classifier.max_retries = max_retries

    @property
    def backoff_policy(self) -> BaseBackoffPolicy | None:
        r"""The custom backoff policy, or ``None`` when the default
        exponential policy is used."""
        return self._config.backoff_policy

    @backoff_policy.setter
    def backoff_policy(self, backoff_policy: BaseBackoffPolicy | None) -> None:
        self._config = replace(self._config, backoff_policy=backoff_policy)
        self.strategy = RetryStrategy(backoff_policy, self._config.max_wait_time)
