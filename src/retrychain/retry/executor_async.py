r"""Asynchronous retry transport.

This module provides the AsyncRetryTransport class, the asyncio
counterpart of :class:`retrychain.retry.RetryTransport`.
"""

from __future__ import annotations

__all__ = ["AsyncRetryTransport"]

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from retrychain.cancellation import get_cancellation
from retrychain.exceptions import RequestCancelledError
from retrychain.retry.executor_core import (
    cancellation_error,
    check_cancelled,
    describe_outcome,
    prepare_attempt,
)

if TYPE_CHECKING:
    from retrychain.cancellation import CancellationToken
    from retrychain.retry.policy import RetryPolicy

logger: logging.Logger = logging.getLogger(__name__)


class AsyncRetryTransport(httpx.AsyncBaseTransport):
    """Async transport that retries the wrapped transport under a retry
    policy.

    The retry loop is the same as :class:`RetryTransport`. The backoff
    wait suspends the task instead of blocking the thread, so other tasks
    keep running while a request waits for its next attempt. Cancelling
    the task itself (``asyncio.CancelledError``) interrupts the wait as
    well.

    Args:
        transport: The wrapped async transport, closest to the network.
        policy: The retry policy.

    Example:
        ```pycon
        >>> import asyncio
        >>> import httpx
        >>> from retrychain.retry import AsyncRetryTransport, RetryPolicy
        >>> async def main():
        ...     transport = AsyncRetryTransport(
        ...         httpx.AsyncHTTPTransport(), RetryPolicy(max_retries=3)
        ...     )
        ...     async with httpx.AsyncClient(transport=transport) as client:
        ...         return await client.get("https://api.example.com/data")
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(self, transport: httpx.AsyncBaseTransport, policy: RetryPolicy) -> None:
        self.transport = transport
        self.policy = policy

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(transport={self.transport!r}, policy={self.policy!r})"

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        token = get_cancellation(request)
        max_retries = self.policy.max_retries

        for attempt in range(max_retries + 1):
            check_cancelled(request, token, attempt)
            prepare_attempt(request, token, attempt, max_retries)

            response: httpx.Response | None = None
            error: Exception | None = None
            try:
                response = await self.transport.handle_async_request(request)
            except RequestCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                if token is not None and token.cancelled:
                    raise cancellation_error(request, token) from exc
                error = exc

            should_retry = self.policy.should_retry(response, error)
            if not should_retry or attempt == max_retries:
                if error is not None:
                    raise error
                return response

            if response is not None:
                await response.aclose()

            sleep_time = self.policy.compute_delay(attempt)
            logger.debug(
                f"{request.method} request to {request.url} will retry "
                f"({describe_outcome(response, error)}) after {sleep_time:.3f}s "
                f"[attempt {attempt + 1}/{max_retries + 1}]"
            )
            if await self._wait(token, sleep_time):
                logger.debug(f"{request.method} request to {request.url} cancelled during backoff")
                raise cancellation_error(request, token)

        msg = "retry loop exited without an outcome"  # pragma: no cover
        raise RuntimeError(msg)  # pragma: no cover

    async def aclose(self) -> None:
        await self.transport.aclose()

    @staticmethod
    async def _wait(token: CancellationToken | None, sleep_time: float) -> bool:
        """Wait for ``sleep_time`` seconds; return ``True`` if cancelled
        first."""
        if token is None:
            await asyncio.sleep(sleep_time)
            return False
        return await token.wait_async(sleep_time)
