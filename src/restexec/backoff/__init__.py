r"""Backoff policies for retry delays.

This package provides the default exponential policy, whose scale grows
after throttling failures, and a constant policy. Callers may supply any
subclass of ``BaseBackoffPolicy`` instead.
"""

from __future__ import annotations

__all__ = ["BaseBackoffPolicy", "ConstantBackoff", "ExponentialBackoff"]

from restexec.backoff.base import BaseBackoffPolicy
from restexec.backoff.constant import ConstantBackoff
from restexec.backoff.exponential import ExponentialBackoff
