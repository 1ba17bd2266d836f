r"""Parameter validation utilities for the request pipeline.

This module provides validation functions for retry and timeout
parameters to ensure they meet the required constraints before being
used to build a pipeline.
"""

from __future__ import annotations

__all__ = ["validate_backoff_params", "validate_retry_params", "validate_timeout"]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


def validate_timeout(timeout: float | httpx.Timeout) -> None:
    """Validate timeout parameter.

    Args:
        timeout: Maximum seconds allowed for a call.
            Must be > 0 if provided as a numeric value.

    Raises:
        ValueError: If timeout is a numeric value <= 0.

    Example:
        ```pycon
        >>> from retrychain.core.validation import validate_timeout
        >>> validate_timeout(10.0)
        >>> validate_timeout(30)
        >>> validate_timeout(0)  # doctest: +SKIP
        Traceback (most recent call last):
        ...
        ValueError: timeout must be > 0, got 0

        ```
    """
    if isinstance(timeout, (int, float)) and timeout <= 0:
        msg = f"timeout must be > 0, got {timeout}"
        raise ValueError(msg)


def validate_backoff_params(min_backoff: float, max_backoff: float, jitter: float = 0.0) -> None:
    """Validate exponential backoff parameters.

    Args:
        min_backoff: Delay in seconds before the first retry. Must be >= 0.
        max_backoff: Cap in seconds on the pre-jitter delay.
            Must be >= min_backoff.
        jitter: Relative jitter amplitude. Must be within [0, 1].

    Raises:
        ValueError: If any parameter is out of range.

    Example:
        ```pycon
        >>> from retrychain.core.validation import validate_backoff_params
        >>> validate_backoff_params(0.1, 5.0)
        >>> validate_backoff_params(0.1, 5.0, jitter=0.25)

        ```
    """
    if min_backoff < 0:
        msg = f"min_backoff must be >= 0, got {min_backoff}"
        raise ValueError(msg)
    if max_backoff < min_backoff:
        msg = f"max_backoff must be >= min_backoff ({min_backoff}), got {max_backoff}"
        raise ValueError(msg)
    if not 0 <= jitter <= 1:
        msg = f"jitter must be within [0, 1], got {jitter}"
        raise ValueError(msg)


def validate_retry_params(
    max_retries: int,
    min_backoff: float = 0.0,
    max_backoff: float = 0.0,
) -> None:
    """Validate retry parameters.

    Args:
        max_retries: Maximum number of additional attempts.
            Must be >= 0. A value of 0 means no retries (only the initial attempt).
        min_backoff: Delay in seconds before the first retry. Must be >= 0.
        max_backoff: Cap in seconds on the backoff delay.
            Must be >= min_backoff.

    Raises:
        ValueError: If max_retries is negative or the backoff bounds are invalid.

    Example:
        ```pycon
        >>> from retrychain.core.validation import validate_retry_params
        >>> validate_retry_params(max_retries=3)
        >>> validate_retry_params(max_retries=3, min_backoff=0.1, max_backoff=5.0)
        >>> validate_retry_params(max_retries=-1)  # doctest: +SKIP

        ```
    """
    if max_retries < 0:
        msg = f"max_retries must be >= 0, got {max_retries}"
        raise ValueError(msg)
    validate_backoff_params(min_backoff, max_backoff)
