r"""Retry policy configuration.

This module provides the RetryPolicy dataclass holding the retry bounds,
the backoff parameters, and the retry predicate of a pipeline.
"""

from __future__ import annotations

__all__ = ["RetryPolicy"]

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from retrychain.backoff.exponential import ExponentialBackoff
from retrychain.core.config import DEFAULT_MAX_BACKOFF, DEFAULT_MAX_RETRIES, DEFAULT_MIN_BACKOFF
from retrychain.core.validation import validate_retry_params
from retrychain.retry.predicate import default_retry_if

if TYPE_CHECKING:
    import httpx

    from retrychain.backoff.base import BaseBackoffStrategy
    from retrychain.retry.predicate import RetryPredicate


@dataclass
class RetryPolicy:
    """Configuration for retry behavior.

    The total number of attempts performed for one call is
    ``max_retries + 1`` unless cancellation intervenes.

    Attributes:
        max_retries: Maximum number of additional attempts. Must be >= 0.
        min_backoff: Delay in seconds before the first retry, before jitter.
        max_backoff: Cap in seconds on the pre-jitter delay.
        retry_if: Optional predicate replacing :func:`default_retry_if`.
        backoff_strategy: Optional strategy replacing the exponential
            backoff derived from ``min_backoff`` and ``max_backoff``.
        clamp_backoff: Whether to re-clamp the jittered delay to
            ``max_backoff``.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.retry import RetryPolicy
        >>> policy = RetryPolicy(max_retries=3)
        >>> policy.should_retry(httpx.Response(503), None)
        True
        >>> policy.should_retry(httpx.Response(200), None)
        False

        ```
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    min_backoff: float = DEFAULT_MIN_BACKOFF
    max_backoff: float = DEFAULT_MAX_BACKOFF
    retry_if: RetryPredicate | None = None
    backoff_strategy: BaseBackoffStrategy | None = None
    clamp_backoff: bool = False
    _strategy: BaseBackoffStrategy = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        validate_retry_params(
            max_retries=self.max_retries,
            min_backoff=self.min_backoff,
            max_backoff=self.max_backoff,
        )
        self._strategy = self.backoff_strategy or ExponentialBackoff(
            min_backoff=self.min_backoff,
            max_backoff=self.max_backoff,
            clamp=self.clamp_backoff,
        )

    @property
    def strategy(self) -> BaseBackoffStrategy:
        """The backoff strategy used between attempts."""
        return self._strategy

    def should_retry(self, response: httpx.Response | None, error: Exception | None) -> bool:
        """Evaluate the retry predicate on one attempt's outcome."""
        predicate = self.retry_if or default_retry_if
        return predicate(response, error)

    def compute_delay(self, attempt: int) -> float:
        """Return the wait in seconds after the failed attempt
        ``attempt``."""
        return self._strategy.calculate(attempt)
