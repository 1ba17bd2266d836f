r"""Interceptor abstraction.

An interceptor is any callable that takes the next transport and returns
a new transport with the same single-operation contract. The returned
transport may inspect or replace the request before delegating, and may
inspect the response or error after delegation returns. It must not
close a response it hands back outward.

Transports produced by the built-in interceptors derive from
:class:`InterceptingTransport`, which implements both the synchronous
and the asynchronous httpx transport interfaces, so one interceptor
serves both kinds of pipeline.

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain.middleware import interceptor
    >>> @interceptor
    ... def add_api_key(request, call_next):
    ...     request.headers["X-Api-Key"] = "secret"
    ...     return call_next(request)
    ...
    >>> transport = add_api_key(httpx.MockTransport(lambda request: httpx.Response(200)))
    >>> transport.handle_request(httpx.Request("GET", "https://example.com")).status_code
    200

    ```
"""

from __future__ import annotations

__all__ = [
    "AsyncFunctionTransport",
    "FunctionTransport",
    "Interceptor",
    "InterceptingTransport",
    "ObservingTransport",
    "Transport",
    "async_interceptor",
    "interceptor",
]

import functools
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, Union

import httpx

Transport = Union[httpx.BaseTransport, httpx.AsyncBaseTransport]
Interceptor = Callable[[Any], Any]

SyncHandler = Callable[[httpx.Request], httpx.Response]
AsyncHandler = Callable[[httpx.Request], Awaitable[httpx.Response]]


class InterceptingTransport(httpx.BaseTransport, httpx.AsyncBaseTransport):
    """Identity passthrough around a sync or async transport.

    Subclasses override :meth:`handle_request` and/or
    :meth:`handle_async_request`. Closing the transport closes the
    wrapped one.

    Args:
        transport: The next (inner) transport.
    """

    def __init__(self, transport: Any) -> None:
        self.transport = transport

    def __repr__(self) -> str:
        return f"{self.__class__.__qualname__}(transport={self.transport!r})"

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.transport.handle_request(request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.transport.handle_async_request(request)

    def close(self) -> None:
        self.transport.close()

    async def aclose(self) -> None:
        await self.transport.aclose()


class ObservingTransport(InterceptingTransport, ABC):
    """Passthrough that reports the outcome and duration of each call.

    Subclasses implement :meth:`observe`, which is called exactly once
    per call after the inner transport returns or raises. The request
    and the response are handed on unchanged.
    """

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        start = time.monotonic()
        try:
            response = self.transport.handle_request(request)
        except Exception as exc:
            self.observe(request, None, exc, time.monotonic() - start)
            raise
        self.observe(request, response, None, time.monotonic() - start)
        return response

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        start = time.monotonic()
        try:
            response = await self.transport.handle_async_request(request)
        except Exception as exc:
            self.observe(request, None, exc, time.monotonic() - start)
            raise
        self.observe(request, response, None, time.monotonic() - start)
        return response

    @abstractmethod
    def observe(
        self,
        request: httpx.Request,
        response: httpx.Response | None,
        error: Exception | None,
        elapsed: float,
    ) -> None:
        """Report one call.

        Args:
            request: The request as handed to the inner transport.
            response: The response, or ``None`` if the call raised.
            error: The exception raised, or ``None``.
            elapsed: Duration of the call in seconds.
        """


class FunctionTransport(InterceptingTransport):
    """Synchronous transport implemented by a ``(request, call_next)``
    function."""

    def __init__(
        self,
        transport: httpx.BaseTransport,
        func: Callable[[httpx.Request, SyncHandler], httpx.Response],
    ) -> None:
        super().__init__(transport)
        self.func = func

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.func(request, self.transport.handle_request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        msg = f"{self.func.__qualname__} is a sync interceptor and cannot serve async requests"
        raise TypeError(msg)


class AsyncFunctionTransport(InterceptingTransport):
    """Asynchronous transport implemented by an async
    ``(request, call_next)`` function."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        func: Callable[[httpx.Request, AsyncHandler], Awaitable[httpx.Response]],
    ) -> None:
        super().__init__(transport)
        self.func = func

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        msg = f"{self.func.__qualname__} is an async interceptor and cannot serve sync requests"
        raise TypeError(msg)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.func(request, self.transport.handle_async_request)


def interceptor(
    func: Callable[[httpx.Request, SyncHandler], httpx.Response],
) -> Callable[[httpx.BaseTransport], FunctionTransport]:
    """Turn a ``(request, call_next)`` function into an interceptor.

    ``call_next`` sends the request to the next transport and returns its
    response. The function may modify the request before calling it and
    inspect the response afterwards.
    """

    @functools.wraps(func)
    def wrap(transport: httpx.BaseTransport) -> FunctionTransport:
        return FunctionTransport(transport, func)

    return wrap


def async_interceptor(
    func: Callable[[httpx.Request, AsyncHandler], Awaitable[httpx.Response]],
) -> Callable[[httpx.AsyncBaseTransport], AsyncFunctionTransport]:
    """Async counterpart of :func:`interceptor`.

    Example:
        ```pycon
        >>> from retrychain.middleware import async_interceptor
        >>> @async_interceptor
        ... async def add_trace_header(request, call_next):
        ...     request.headers["X-Trace"] = "1"
        ...     return await call_next(request)
        ...

        ```
    """

    @functools.wraps(func)
    def wrap(transport: httpx.AsyncBaseTransport) -> AsyncFunctionTransport:
        return AsyncFunctionTransport(transport, func)

    return wrap
