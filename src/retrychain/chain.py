r"""Chain composer assembling the request pipeline.

The pipeline is assembled from the inside out:

1. the base transport, closest to the network;
2. the retry layer, when the policy allows at least one retry;
3. the interceptors, applied so that the first declared one ends up
   outermost: it sees the request first and the outcome last;
4. an identity boundary (:class:`ChainTransport`) remembering how the
   chain was built, so that it can be rebuilt with more interceptors.

Because retry sits beneath every interceptor, interceptors observe the
logical call (one request, one final outcome) rather than individual
attempts.

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain.chain import build_chain
    >>> from retrychain.middleware import LoggingInterceptor, TimeoutInterceptor
    >>> from retrychain.retry import RetryPolicy
    >>> chain = build_chain(
    ...     httpx.HTTPTransport(),
    ...     RetryPolicy(max_retries=3),
    ...     [LoggingInterceptor(), TimeoutInterceptor(5.0)],
    ... )
    >>> client = httpx.Client(transport=chain)

    ```
"""

from __future__ import annotations

__all__ = ["AsyncChainTransport", "ChainTransport", "build_async_chain", "build_chain"]

import logging
from typing import TYPE_CHECKING, Any

import httpx

from retrychain.retry.body import prepare_body
from retrychain.retry.executor import RetryTransport
from retrychain.retry.executor_async import AsyncRetryTransport
from retrychain.retry.policy import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from retrychain.middleware.base import Interceptor

logger: logging.Logger = logging.getLogger(__name__)


def _compose(
    transport: Any,
    policy: RetryPolicy,
    interceptors: tuple[Interceptor, ...],
    retry_layer: Callable[[Any, RetryPolicy], Any],
    handler_name: str,
) -> Any:
    composed = transport
    if policy.max_retries > 0:
        composed = retry_layer(composed, policy)
    for interceptor in reversed(interceptors):
        composed = interceptor(composed)
        if not callable(getattr(composed, handler_name, None)):
            msg = (
                f"interceptor {interceptor!r} returned {type(composed).__qualname__}, "
                f"which does not implement {handler_name}()"
            )
            raise TypeError(msg)
    logger.debug(
        f"Built pipeline with {len(interceptors)} interceptor(s), "
        f"max_retries={policy.max_retries}"
    )
    return composed


class ChainTransport(httpx.BaseTransport):
    """Frozen, ordered pipeline exposed to callers.

    The chain holds no per-call state and is safe to share between
    threads. It is itself a transport, so it can be passed to
    ``httpx.Client`` or nested inside another pipeline.

    Attributes:
        base: The raw base transport.
        policy: The retry policy.
        interceptors: The interceptors, outermost first.
        inner: The composed transport the chain delegates to.
    """

    def __init__(
        self,
        base: httpx.BaseTransport,
        policy: RetryPolicy,
        interceptors: tuple[Interceptor, ...],
        inner: httpx.BaseTransport,
    ) -> None:
        self.base = base
        self.policy = policy
        self.interceptors = interceptors
        self.inner = inner

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(base={self.base!r}, "
            f"max_retries={self.policy.max_retries}, interceptors={len(self.interceptors)})"
        )

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if self.policy.max_retries == 0:
            # without a retry layer the chain installs the supplied body itself
            prepare_body(request, 0, 0)
        return self.inner.handle_request(request)

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        """Send one request through the pipeline and return its
        response."""
        return self.handle_request(request)

    def with_interceptors(self, *interceptors: Interceptor) -> ChainTransport:
        """Return a new chain with ``interceptors`` appended.

        The new chain is rebuilt from the base transport; this chain is
        left untouched.
        """
        return build_chain(self.base, self.policy, (*self.interceptors, *interceptors))

    def close(self) -> None:
        self.inner.close()


class AsyncChainTransport(httpx.AsyncBaseTransport):
    """Async counterpart of :class:`ChainTransport`."""

    def __init__(
        self,
        base: httpx.AsyncBaseTransport,
        policy: RetryPolicy,
        interceptors: tuple[Interceptor, ...],
        inner: httpx.AsyncBaseTransport,
    ) -> None:
        self.base = base
        self.policy = policy
        self.interceptors = interceptors
        self.inner = inner

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(base={self.base!r}, "
            f"max_retries={self.policy.max_retries}, interceptors={len(self.interceptors)})"
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.policy.max_retries == 0:
            prepare_body(request, 0, 0)
        return await self.inner.handle_async_request(request)

    async def round_trip(self, request: httpx.Request) -> httpx.Response:
        """Send one request through the pipeline and return its
        response."""
        return await self.handle_async_request(request)

    def with_interceptors(self, *interceptors: Interceptor) -> AsyncChainTransport:
        """Return a new chain with ``interceptors`` appended, rebuilt
        from the base transport."""
        return build_async_chain(self.base, self.policy, (*self.interceptors, *interceptors))

    async def aclose(self) -> None:
        await self.inner.aclose()


def build_chain(
    transport: httpx.BaseTransport,
    policy: RetryPolicy | None = None,
    interceptors: Iterable[Interceptor] = (),
) -> ChainTransport:
    """Assemble base transport, retry layer and interceptors into one
    transport.

    Args:
        transport: The base transport.
        policy: The retry policy. ``None`` means no retries.
        interceptors: Interceptors in declaration order; the first one is
            outermost.

    Returns:
        The composed pipeline.

    Raises:
        TypeError: If an interceptor does not return a transport.
    """
    policy = policy if policy is not None else RetryPolicy()
    interceptors = tuple(interceptors)
    inner = _compose(transport, policy, interceptors, RetryTransport, "handle_request")
    return ChainTransport(transport, policy, interceptors, inner)


def build_async_chain(
    transport: httpx.AsyncBaseTransport,
    policy: RetryPolicy | None = None,
    interceptors: Iterable[Interceptor] = (),
) -> AsyncChainTransport:
    """Async counterpart of :func:`build_chain`."""
    policy = policy if policy is not None else RetryPolicy()
    interceptors = tuple(interceptors)
    inner = _compose(transport, policy, interceptors, AsyncRetryTransport, "handle_async_request")
    return AsyncChainTransport(transport, policy, interceptors, inner)
