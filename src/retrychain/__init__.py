r"""retrychain - Retry and interceptor pipeline for httpx transports.

This package layers bounded automatic retry with exponential backoff and
jitter, plus an ordered chain of request/response interceptors, around
any httpx transport. The resulting pipeline is itself a transport and can
be handed to ``httpx.Client`` / ``httpx.AsyncClient`` or used through the
bundled clients.

Key Features:
    - Bounded retries: exactly ``max_retries + 1`` attempts at most
    - Exponential backoff with +/- 25% jitter, optionally clamped
    - Default retry predicate: transport errors, 5xx and 429
    - Cooperative cancellation and deadlines checked before each attempt
      and during backoff waits
    - Discarded responses closed before the next attempt
    - Interceptors for logging, metrics and per-request timeouts, in a
      deterministic, caller-declared order
    - Sync and async pipelines

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain import ClientConfig, PipelineClient
    >>> from retrychain.middleware import LoggingInterceptor, TimeoutInterceptor
    >>> config = ClientConfig(
    ...     max_retries=3,
    ...     interceptors=[LoggingInterceptor(), TimeoutInterceptor(2.0)],
    ... )
    >>> with PipelineClient(config) as client:  # doctest: +SKIP
    ...     response = client.get("https://api.example.com/data")
    ...

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncChainTransport",
    "AsyncPipelineClient",
    "AsyncRetryTransport",
    "CancellationToken",
    "ChainTransport",
    "ClientConfig",
    "DeadlineExceededError",
    "PipelineClient",
    "RequestCancelledError",
    "RetryPolicy",
    "RetryTransport",
    "UnreplayableBodyError",
    "__version__",
    "build_async_chain",
    "build_chain",
    "compute_backoff",
    "default_retry_if",
    "get_default_client",
    "set_default_client",
    "with_body_supplier",
    "with_cancellation",
]

from importlib.metadata import PackageNotFoundError, version

from retrychain.backoff import compute_backoff
from retrychain.cancellation import CancellationToken, with_cancellation
from retrychain.chain import AsyncChainTransport, ChainTransport, build_async_chain, build_chain
from retrychain.client import PipelineClient, get_default_client, set_default_client
from retrychain.client_async import AsyncPipelineClient
from retrychain.core.config import ClientConfig
from retrychain.exceptions import DeadlineExceededError, RequestCancelledError, UnreplayableBodyError
from retrychain.retry import (
    AsyncRetryTransport,
    RetryPolicy,
    RetryTransport,
    default_retry_if,
    with_body_supplier,
)

try:
    __version__ = version(__name__)
except PackageNotFoundError:  # pragma: no cover
    # Package is not installed, fallback if needed
    __version__ = "0.0.0"
