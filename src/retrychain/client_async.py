r"""Asynchronous client built around the request pipeline.

This module provides the asyncio counterpart of
:class:`retrychain.client.PipelineClient`.
"""

from __future__ import annotations

__all__ = ["AsyncPipelineClient", "default_async_transport"]

import logging
from typing import TYPE_CHECKING, Any

import httpx

from retrychain.cancellation import CancellationToken, get_cancellation, with_cancellation
from retrychain.chain import build_async_chain
from retrychain.client import DEFAULT_LIMITS, build_extensions, derive_call_token
from retrychain.core.config import ClientConfig

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from retrychain.chain import AsyncChainTransport
    from retrychain.middleware.base import Interceptor
    from retrychain.retry.body import BodySupplier

logger: logging.Logger = logging.getLogger(__name__)


def default_async_transport() -> httpx.AsyncHTTPTransport:
    """Return the pooled async base transport used when none is
    configured."""
    return httpx.AsyncHTTPTransport(limits=DEFAULT_LIMITS)


class _AsyncChainHandle(httpx.AsyncBaseTransport):
    """Stable transport given to ``httpx.AsyncClient``; delegates to the
    current chain."""

    def __init__(self, chain: AsyncChainTransport) -> None:
        self.chain = chain

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.chain.handle_async_request(request)

    async def aclose(self) -> None:
        await self.chain.aclose()


class AsyncPipelineClient:
    r"""Asynchronous client sending requests through the pipeline.

    Args:
        config: Optional ClientConfig. If ``None``, a default ClientConfig
            is used. ``config.transport``, when set, must be an
            ``httpx.AsyncBaseTransport``.
        base_url: Optional base URL prepended to relative request URLs.

    Example:
        ```pycon
        >>> import asyncio
        >>> from retrychain import AsyncPipelineClient
        >>> from retrychain.core.config import ClientConfig
        >>> async def main():
        ...     async with AsyncPipelineClient(ClientConfig(max_retries=3)) as client:
        ...         return await client.get("https://api.example.com/data")
        ...
        >>> asyncio.run(main())  # doctest: +SKIP

        ```
    """

    def __init__(self, config: ClientConfig | None = None, *, base_url: str = "") -> None:
        self._config: ClientConfig = config or ClientConfig()
        base = (
            self._config.transport
            if self._config.transport is not None
            else default_async_transport()
        )
        self._handle = _AsyncChainHandle(
            build_async_chain(base, self._config.to_policy(), self._config.interceptors)
        )
        self._client = httpx.AsyncClient(
            transport=self._handle,
            headers=self._config.headers,
            timeout=self._config.timeout,
            base_url=base_url,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def chain(self) -> AsyncChainTransport:
        return self._handle.chain

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def aclose(self) -> None:
        await self._client.aclose()

    def add_interceptors(self, *interceptors: Interceptor) -> None:
        """Append interceptors, rebuilding the whole pipeline."""
        self._handle.chain = self._handle.chain.with_interceptors(*interceptors)
        self._config = self._config.merge(
            interceptors=(*self._config.interceptors, *interceptors)
        )
        logger.debug(f"Rebuilt pipeline with {len(self._config.interceptors)} interceptor(s)")

    async def request(
        self,
        method: str,
        url: httpx.URL | str,
        *,
        cancellation: CancellationToken | None = None,
        body_supplier: BodySupplier | None = None,
        extensions: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        r"""Send an HTTP request through the pipeline.

        See :meth:`retrychain.client.PipelineClient.request`.
        """
        with derive_call_token(cancellation, self._config.timeout) as token:
            token.raise_if_cancelled()
            return await self._client.request(
                method,
                url,
                extensions=build_extensions(token, body_supplier, extensions),
                **kwargs,
            )

    async def get(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def round_trip(self, request: httpx.Request) -> httpx.Response:
        """Send a prepared request straight through the pipeline."""
        for name, value in self._client.headers.items():
            request.headers.setdefault(name, value)
        if get_cancellation(request) is not None:
            return await self.chain.round_trip(request)
        with CancellationToken(self._config.timeout) as token:
            return await self.chain.round_trip(with_cancellation(request, token))
