r"""Per-request timeout interceptor."""

from __future__ import annotations

__all__ = ["TimeoutInterceptor", "TimeoutTransport"]

import logging
from typing import Any

import httpx

from retrychain.cancellation import (
    CancellationToken,
    apply_deadline,
    get_cancellation,
    with_cancellation,
)
from retrychain.core.validation import validate_timeout
from retrychain.exceptions import DeadlineExceededError
from retrychain.middleware.base import InterceptingTransport

logger: logging.Logger = logging.getLogger(__name__)


class TimeoutTransport(InterceptingTransport):
    """Transport bounding each call by a derived cancellation token.

    The derived token is closed on every exit path, detaching it from
    the caller's token.
    """

    def __init__(self, transport: Any, timeout: float) -> None:
        super().__init__(transport)
        self.timeout = timeout

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        with self._derive_token(request) as token:
            bounded = self._bind(request, token)
            try:
                return self.transport.handle_request(bounded)
            except httpx.TimeoutException as exc:
                self._raise_if_deadline(request, token, exc)
                raise

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        with self._derive_token(request) as token:
            bounded = self._bind(request, token)
            try:
                return await self.transport.handle_async_request(bounded)
            except httpx.TimeoutException as exc:
                self._raise_if_deadline(request, token, exc)
                raise

    def _derive_token(self, request: httpx.Request) -> CancellationToken:
        parent = get_cancellation(request)
        if parent is None:
            return CancellationToken(self.timeout)
        return parent.child(self.timeout)

    @staticmethod
    def _bind(request: httpx.Request, token: CancellationToken) -> httpx.Request:
        bounded = with_cancellation(request, token)
        apply_deadline(bounded, token)
        return bounded

    @staticmethod
    def _raise_if_deadline(
        request: httpx.Request, token: CancellationToken, exc: httpx.TimeoutException
    ) -> None:
        if token.deadline_exceeded:
            logger.debug(f"{request.method} request to {request.url} exceeded its deadline")
            raise DeadlineExceededError(request=request) from exc


class TimeoutInterceptor:
    """Interceptor bounding the duration of every call.

    For each call it derives a new cancellation token from the request's
    token (or creates one if the request carries none) with a deadline
    ``timeout`` seconds away; the earlier of the two deadlines governs.
    The token is attached to a copy of the request, the httpx timeouts of
    that copy are bounded by the deadline, and the copy is sent to the
    next transport. A transport timeout raised after the deadline has
    elapsed is reported as ``DeadlineExceededError``.

    Args:
        timeout: The per-call timeout in seconds. Must be > 0.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.middleware import TimeoutInterceptor
        >>> transport = TimeoutInterceptor(2.0)(httpx.HTTPTransport())

        ```
    """

    def __init__(self, timeout: float) -> None:
        validate_timeout(timeout)
        self.timeout = timeout

    def __call__(self, transport: Any) -> TimeoutTransport:
        return TimeoutTransport(transport, timeout=self.timeout)
