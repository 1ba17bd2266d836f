r"""Abstract base class for backoff strategies."""

from __future__ import annotations

__all__ = ["BaseBackoffStrategy"]

from abc import ABC, abstractmethod


class BaseBackoffStrategy(ABC):
    """Abstract base class for backoff strategies.

    A backoff strategy maps the index of a failed attempt to the number
    of seconds to wait before the next attempt. Implementations must be
    safe to share between concurrent calls.
    """

    @abstractmethod
    def calculate(self, attempt: int) -> float:
        """Calculate the wait before the attempt that follows ``attempt``.

        Args:
            attempt: Index of the attempt that just failed (0-indexed).
                attempt=0 is the initial request, so its result is the
                wait before the first retry.

        Returns:
            The delay in seconds. Never negative.
        """
