r"""Synchronous client built around the request pipeline.

This module provides a context manager-based client that assembles the
pipeline from a :class:`~retrychain.core.config.ClientConfig` and sends
requests through an ``httpx.Client``. Each call carries its own
cancellation token, bounded by the configured timeout, so the deadline
covers every attempt and backoff wait of the call.
"""

from __future__ import annotations

__all__ = [
    "DEFAULT_LIMITS",
    "PipelineClient",
    "default_transport",
    "get_default_client",
    "set_default_client",
]

import logging
import threading
from typing import TYPE_CHECKING, Any

import httpx

from retrychain.cancellation import (
    CANCELLATION_EXTENSION,
    CancellationToken,
    get_cancellation,
    with_cancellation,
)
from retrychain.chain import build_chain
from retrychain.core.config import ClientConfig
from retrychain.retry.body import BODY_SUPPLIER_EXTENSION

if TYPE_CHECKING:
    from types import TracebackType
    from typing import Self

    from retrychain.chain import ChainTransport
    from retrychain.middleware.base import Interceptor
    from retrychain.retry.body import BodySupplier

logger: logging.Logger = logging.getLogger(__name__)

# Connection pool sizing for the default base transport
DEFAULT_LIMITS = httpx.Limits(
    max_connections=None,
    max_keepalive_connections=100,
    keepalive_expiry=90.0,
)


def default_transport() -> httpx.HTTPTransport:
    """Return the pooled base transport used when none is configured."""
    return httpx.HTTPTransport(limits=DEFAULT_LIMITS)


def derive_call_token(
    cancellation: CancellationToken | None, timeout: float
) -> CancellationToken:
    """Return the token bounding one call: the caller's token (if any)
    further bounded by ``timeout``."""
    if cancellation is None:
        return CancellationToken(timeout)
    return cancellation.child(timeout)


def build_extensions(
    token: CancellationToken,
    body_supplier: BodySupplier | None,
    extensions: dict[str, Any] | None,
) -> dict[str, Any]:
    merged = dict(extensions or {})
    merged[CANCELLATION_EXTENSION] = token
    if body_supplier is not None:
        merged[BODY_SUPPLIER_EXTENSION] = body_supplier
    return merged


class _ChainHandle(httpx.BaseTransport):
    """Stable transport given to ``httpx.Client``.

    Rebuilding the pipeline swaps the chain this handle points to;
    calls already in flight finish on the chain they started with.
    """

    def __init__(self, chain: ChainTransport) -> None:
        self.chain = chain

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return self.chain.handle_request(request)

    def close(self) -> None:
        self.chain.close()


class PipelineClient:
    r"""Synchronous client sending requests through the pipeline.

    Args:
        config: Optional ClientConfig. If ``None``, a default ClientConfig
            is used (10s timeout, no retries).
        base_url: Optional base URL prepended to relative request URLs.

    Example:
        ```pycon
        >>> from retrychain import PipelineClient
        >>> from retrychain.core.config import ClientConfig
        >>> from retrychain.middleware import LoggingInterceptor
        >>> config = ClientConfig(max_retries=3, interceptors=[LoggingInterceptor()])
        >>> with PipelineClient(config) as client:  # doctest: +SKIP
        ...     response = client.get("https://api.example.com/data")
        ...

        ```
    """

    def __init__(self, config: ClientConfig | None = None, *, base_url: str = "") -> None:
        self._config: ClientConfig = config or ClientConfig()
        base = self._config.transport if self._config.transport is not None else default_transport()
        self._handle = _ChainHandle(
            build_chain(base, self._config.to_policy(), self._config.interceptors)
        )
        self._client = httpx.Client(
            transport=self._handle,
            headers=self._config.headers,
            timeout=self._config.timeout,
            base_url=base_url,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def chain(self) -> ChainTransport:
        """The pipeline currently used by the client."""
        return self._handle.chain

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    def close(self) -> None:
        """Close the client and the base transport's connection pool."""
        self._client.close()

    def add_interceptors(self, *interceptors: Interceptor) -> None:
        """Append interceptors, rebuilding the whole pipeline.

        The new interceptors wrap inside the existing ones: the first
        interceptor of the configuration stays outermost.
        """
        self._handle.chain = self._handle.chain.with_interceptors(*interceptors)
        self._config = self._config.merge(
            interceptors=(*self._config.interceptors, *interceptors)
        )
        logger.debug(f"Rebuilt pipeline with {len(self._config.interceptors)} interceptor(s)")

    def request(
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

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH, ...).
            url: The URL to send the request to.
            cancellation: Optional caller token; the call is bounded by
                both this token and the configured timeout.
            body_supplier: Optional callable producing the body for each
                attempt. Required to retry streaming bodies.
            extensions: Optional httpx request extensions.
            **kwargs: Additional keyword arguments passed to
                ``httpx.Client.request()`` (``params``, ``json``, ...).

        Returns:
            The response of the last attempt. Non-2xx statuses are
            returned, not raised.

        Raises:
            RequestCancelledError: If the call was cancelled.
            DeadlineExceededError: If the call's deadline elapsed.
            httpx.TransportError: If the last attempt failed.
        """
        with derive_call_token(cancellation, self._config.timeout) as token:
            token.raise_if_cancelled()
            return self._client.request(
                method,
                url,
                extensions=build_extensions(token, body_supplier, extensions),
                **kwargs,
            )

    def get(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return self.request("POST", url, **kwargs)

    def put(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", url, **kwargs)

    def round_trip(self, request: httpx.Request) -> httpx.Response:
        """Send a prepared request straight through the pipeline.

        Default headers are added where the request does not set them,
        and a token bounded by the configured timeout is attached unless
        the request already carries one.
        """
        for name, value in self._client.headers.items():
            request.headers.setdefault(name, value)
        if get_cancellation(request) is not None:
            return self.chain.round_trip(request)
        with CancellationToken(self._config.timeout) as token:
            return self.chain.round_trip(with_cancellation(request, token))


_default_client: PipelineClient | None = None
_default_lock = threading.Lock()


def get_default_client() -> PipelineClient:
    """Return the process-wide default client, creating it on first use.

    Creation happens once, under a lock. Prefer passing a client
    explicitly; the default exists for drop-in convenience.
    """
    global _default_client  # noqa: PLW0603
    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                logger.debug("Creating the default PipelineClient")
                _default_client = PipelineClient()
    return _default_client


def set_default_client(client: PipelineClient | None) -> None:
    """Replace the process-wide default client.

    Passing ``None`` resets it; the next :func:`get_default_client` call
    creates a fresh one. The previous client is not closed.
    """
    global _default_client  # noqa: PLW0603
    with _default_lock:
        _default_client = client
