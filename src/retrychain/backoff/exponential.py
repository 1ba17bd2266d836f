r"""Exponential backoff with symmetric jitter."""

from __future__ import annotations

__all__ = ["DEFAULT_JITTER", "ExponentialBackoff", "compute_backoff"]

import logging
import random

from retrychain.backoff.base import BaseBackoffStrategy
from retrychain.core.validation import validate_backoff_params

logger: logging.Logger = logging.getLogger(__name__)

# Jitter amplitude relative to the capped delay: +/- 25%
DEFAULT_JITTER = 0.25

# Largest exponent for which 2.0 ** exponent is a finite float
_MAX_EXPONENT = 1023


def compute_backoff(
    attempt: int,
    min_backoff: float,
    max_backoff: float,
    *,
    jitter: float = DEFAULT_JITTER,
    clamp: bool = False,
    rng: random.Random | None = None,
) -> float:
    """Compute the wait before the retry that follows ``attempt``.

    The delay is calculated as follows:
    1. base = min_backoff * (2 ** attempt), capped at max_backoff
    2. result = base + uniform(-jitter, +jitter) * base
    3. if clamp is set, result is capped at max_backoff again

    Without ``clamp`` the jittered result may exceed ``max_backoff`` by
    up to ``jitter * max_backoff``. The result is never negative because
    ``jitter <= 1``.

    Args:
        attempt: Index of the attempt that just failed (0-indexed).
        min_backoff: Delay in seconds for attempt 0, before jitter.
        max_backoff: Cap in seconds on the pre-jitter delay.
        jitter: Relative jitter amplitude. 0 disables jitter.
        clamp: Whether to cap the jittered delay at ``max_backoff``.
        rng: Optional random source. Defaults to the ``random`` module.

    Returns:
        The delay in seconds.

    Example:
        ```pycon
        >>> from retrychain.backoff import compute_backoff
        >>> compute_backoff(0, 0.1, 5.0, jitter=0.0)
        0.1
        >>> compute_backoff(2, 0.1, 5.0, jitter=0.0)
        0.4
        >>> compute_backoff(10, 0.1, 5.0, jitter=0.0)  # capped
        5.0

        ```
    """
    # float exponent capped below overflow; larger products saturate to inf and then the cap
    base = min(min_backoff * 2.0 ** min(attempt, _MAX_EXPONENT), max_backoff)
    if jitter <= 0:
        return base
    source = rng if rng is not None else random
    delay = base + source.uniform(-jitter, jitter) * base  # noqa: S311
    if clamp and delay > max_backoff:
        logger.debug(f"Clamping jittered backoff {delay:.3f}s to {max_backoff:.3f}s")
        delay = max_backoff
    return max(0.0, delay)


class ExponentialBackoff(BaseBackoffStrategy):
    """Exponential backoff strategy with jitter.

    Calculates delay as ``min(min_backoff * 2 ** attempt, max_backoff)``
    perturbed by a uniform jitter in ``[-jitter, +jitter]`` of that value.
    See :func:`compute_backoff`.

    Args:
        min_backoff: Delay in seconds for the first retry, before jitter.
        max_backoff: Cap in seconds on the pre-jitter delay.
        jitter: Relative jitter amplitude, within [0, 1]. Default 0.25.
        clamp: Whether to cap the jittered delay at ``max_backoff``.
        rng: Optional random source, useful for reproducible delays.

    Example:
        ```pycon
        >>> from retrychain.backoff import ExponentialBackoff
        >>> backoff = ExponentialBackoff(min_backoff=0.1, max_backoff=1.0, jitter=0.0)
        >>> backoff.calculate(0)
        0.1
        >>> backoff.calculate(1)
        0.2
        >>> backoff.calculate(8)  # Would be 25.6, but capped
        1.0

        ```
    """

    def __init__(
        self,
        min_backoff: float = 0.1,
        max_backoff: float = 5.0,
        jitter: float = DEFAULT_JITTER,
        clamp: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        validate_backoff_params(min_backoff, max_backoff, jitter)
        self.min_backoff = min_backoff
        self.max_backoff = max_backoff
        self.jitter = jitter
        self.clamp = clamp
        self.rng = rng

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(min_backoff={self.min_backoff}, "
            f"max_backoff={self.max_backoff}, jitter={self.jitter}, clamp={self.clamp})"
        )

    def calculate(self, attempt: int) -> float:
        return compute_backoff(
            attempt,
            self.min_backoff,
            self.max_backoff,
            jitter=self.jitter,
            clamp=self.clamp,
            rng=self.rng,
        )
