r"""Configuration dataclass and defaults for PipelineClient.

This module provides configuration constants and a dataclass-based
configuration object for the PipelineClient and AsyncPipelineClient
classes.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MIN_BACKOFF",
    "DEFAULT_TIMEOUT",
    "ClientConfig",
]

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from retrychain.core.validation import validate_retry_params, validate_timeout

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    import httpx

    from retrychain.retry.policy import RetryPolicy


# Default overall deadline in seconds for one call, retries included
DEFAULT_TIMEOUT = 10.0

# Retries are disabled unless requested
# Total attempts = max_retries + 1 (initial attempt)
DEFAULT_MAX_RETRIES = 0

# Backoff bounds for exponential backoff
# Wait time = min(min_backoff * (2 ** attempt), max_backoff), +/- 25% jitter
# With 0.1: 1st retry waits ~0.1s, 2nd ~0.2s, 3rd ~0.4s
DEFAULT_MIN_BACKOFF = 0.1
DEFAULT_MAX_BACKOFF = 5.0


@dataclass
class ClientConfig:
    """Configuration for a PipelineClient.

    This dataclass holds every option recognized when building a client:
    the overall deadline, the retry policy parameters, default headers,
    the ordered interceptors, and an optional pre-built base transport.

    Args:
        timeout: Overall per-call deadline in seconds, retries and
            backoff waits included. Must be > 0.
        max_retries: Maximum number of additional attempts. Must be >= 0.
        retry_min_backoff: Delay in seconds before the first retry.
        retry_max_backoff: Cap in seconds on the pre-jitter backoff delay.
        retry_if: Optional predicate ``(response, error) -> bool``
            replacing the default retry predicate.
        headers: Default headers sent with every request.
        interceptors: Ordered interceptors. The first one is outermost.
        transport: Optional base transport. If ``None``, an
            ``httpx.HTTPTransport`` with pooled connections is created.
        clamp_backoff: Whether to re-clamp the jittered delay to
            ``retry_max_backoff``.

    Example:
        ```pycon
        >>> from retrychain.core.config import ClientConfig
        >>> config = ClientConfig()  # Use defaults
        >>> config.max_retries
        0
        >>> config = ClientConfig(max_retries=3)
        >>> merged = config.merge(max_retries=5)
        >>> merged.max_retries
        5
        >>> config.max_retries  # Original unchanged
        3

        ```
    """

    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_min_backoff: float = DEFAULT_MIN_BACKOFF
    retry_max_backoff: float = DEFAULT_MAX_BACKOFF
    retry_if: Callable[[httpx.Response | None, Exception | None], bool] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    interceptors: Sequence[Callable[[Any], Any]] = field(default_factory=tuple)
    transport: httpx.BaseTransport | httpx.AsyncBaseTransport | None = None
    clamp_backoff: bool = False

    def __post_init__(self) -> None:
        """Validate configuration parameters after initialization.

        Raises:
            ValueError: If any parameter fails validation.
        """
        validate_timeout(self.timeout)
        validate_retry_params(
            max_retries=self.max_retries,
            min_backoff=self.retry_min_backoff,
            max_backoff=self.retry_max_backoff,
        )
        self.interceptors = tuple(self.interceptors)

    def merge(self, **overrides: Any) -> ClientConfig:
        """Create a new config with specified parameters overridden.

        Only non-None override values are applied.

        Args:
            **overrides: Keyword arguments for parameters to override.

        Returns:
            A new ClientConfig instance with overrides applied.
        """
        filtered_overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered_overrides)

    def to_policy(self) -> RetryPolicy:
        """Return the retry policy described by this configuration.

        Example:
            ```pycon
            >>> from retrychain.core.config import ClientConfig
            >>> policy = ClientConfig(max_retries=2).to_policy()
            >>> policy.max_retries
            2

            ```
        """
        from retrychain.retry.policy import RetryPolicy  # noqa: PLC0415

        return RetryPolicy(
            max_retries=self.max_retries,
            min_backoff=self.retry_min_backoff,
            max_backoff=self.retry_max_backoff,
            retry_if=self.retry_if,
            clamp_backoff=self.clamp_backoff,
        )
