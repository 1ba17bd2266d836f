r"""Synchronous retry transport.

This module provides the RetryTransport class that decorates an httpx
transport with bounded automatic retry, exponential backoff with
jitter, and cooperative cancellation.
"""

from __future__ import annotations

__all__ = ["RetryTransport"]

import logging
import time
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


class RetryTransport(httpx.BaseTransport):
    """Transport that retries the wrapped transport under a retry policy.

    For ``attempt = 0 .. max_retries`` the transport:

    1. raises the cancellation error if the request's token already
       fired, without calling the wrapped transport;
    2. calls the wrapped transport once;
    3. returns the response (or re-raises the error) if the retry
       predicate declines, or if this was the last allowed attempt;
    4. otherwise closes the discarded response, then waits for the
       backoff delay. The wait races the token: if the token fires
       first, the cancellation error is raised and no further attempt
       is made.

    Cancellation errors raised by the wrapped transport are never
    retried. All other exceptions are outcomes handed to the predicate.

    Args:
        transport: The wrapped transport, closest to the network.
        policy: The retry policy.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.retry import RetryPolicy, RetryTransport
        >>> transport = RetryTransport(httpx.HTTPTransport(), RetryPolicy(max_retries=3))
        >>> with httpx.Client(transport=transport) as client:  # doctest: +SKIP
        ...     response = client.get("https://api.example.com/data")
        ...

        ```
    """

    def __init__(self, transport: httpx.BaseTransport, policy: RetryPolicy) -> None:
        self.transport = transport
        self.policy = policy

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(transport={self.transport!r}, policy={self.policy!r})"

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        token = get_cancellation(request)
        max_retries = self.policy.max_retries

        for attempt in range(max_retries + 1):
            check_cancelled(request, token, attempt)
            prepare_attempt(request, token, attempt, max_retries)

            response: httpx.Response | None = None
            error: Exception | None = None
            try:
                response = self.transport.handle_request(request)
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
                response.close()

            sleep_time = self.policy.compute_delay(attempt)
            logger.debug(
                f"{request.method} request to {request.url} will retry "
                f"({describe_outcome(response, error)}) after {sleep_time:.3f}s "
                f"[attempt {attempt + 1}/{max_retries + 1}]"
            )
            if self._wait(token, sleep_time):
                logger.debug(f"{request.method} request to {request.url} cancelled during backoff")
                raise cancellation_error(request, token)

        msg = "retry loop exited without an outcome"  # pragma: no cover
        raise RuntimeError(msg)  # pragma: no cover

    def close(self) -> None:
        self.transport.close()

    @staticmethod
    def _wait(token: CancellationToken | None, sleep_time: float) -> bool:
        """Wait for ``sleep_time`` seconds; return ``True`` if cancelled
        first."""
        if token is None:
            time.sleep(sleep_time)
            return False
        return token.wait(sleep_time)
