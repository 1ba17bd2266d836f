r"""Core configuration and validation shared by sync and async
pipelines."""

from __future__ import annotations

__all__ = [
    "DEFAULT_MAX_BACKOFF",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MIN_BACKOFF",
    "DEFAULT_TIMEOUT",
    "ClientConfig",
    "validate_backoff_params",
    "validate_retry_params",
    "validate_timeout",
]

from retrychain.core.config import (
    DEFAULT_MAX_BACKOFF,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MIN_BACKOFF,
    DEFAULT_TIMEOUT,
    ClientConfig,
)
from retrychain.core.validation import (
    validate_backoff_params,
    validate_retry_params,
    validate_timeout,
)
