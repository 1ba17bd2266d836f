r"""Backoff strategies for retry delays.

This package provides the exponential backoff with jitter used between
retry attempts, and the base class for custom strategies.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_JITTER",
    "BaseBackoffStrategy",
    "ExponentialBackoff",
    "compute_backoff",
]

from retrychain.backoff.base import BaseBackoffStrategy
from retrychain.backoff.exponential import DEFAULT_JITTER, ExponentialBackoff, compute_backoff
