r"""Logging interceptor."""

from __future__ import annotations

__all__ = ["LoggingInterceptor", "LoggingTransport"]

import logging
from typing import Any

import httpx

from retrychain.middleware.base import ObservingTransport
from retrychain.utils.structured_logging import log_structured


class LoggingTransport(ObservingTransport):
    """Transport emitting one structured log record per call."""

    def __init__(
        self,
        transport: Any,
        logger: logging.Logger,
        level: int = logging.INFO,
        error_level: int = logging.WARNING,
    ) -> None:
        super().__init__(transport)
        self.logger = logger
        self.level = level
        self.error_level = error_level

    def observe(
        self,
        request: httpx.Request,
        response: httpx.Response | None,
        error: Exception | None,
        elapsed: float,
    ) -> None:
        elapsed_ms = round(elapsed * 1000, 3)
        fields: dict[str, Any] = {
            "method": request.method,
            "url": str(request.url),
            "elapsed_ms": elapsed_ms,
        }
        if error is not None:
            fields["error"] = f"{type(error).__name__}: {error}"
            log_structured(
                self.logger,
                self.error_level,
                f"{request.method} {request.url} failed: {fields['error']} ({elapsed_ms:.0f}ms)",
                **fields,
            )
            return
        fields["status_code"] = response.status_code
        log_structured(
            self.logger,
            self.level,
            f"{request.method} {request.url} -> {response.status_code} ({elapsed_ms:.0f}ms)",
            **fields,
        )


class LoggingInterceptor:
    """Interceptor logging the method, URL, duration and outcome of every
    call.

    Each call produces exactly one record, carrying ``method``, ``url``,
    ``elapsed_ms`` and either ``status_code`` or ``error`` as extra
    fields (rendered as JSON by
    :class:`retrychain.utils.structured_logging.StructuredFormatter`).
    Neither the request nor the response is altered.

    Placed outside the retry layer, it observes the logical call: the
    elapsed time covers every attempt and backoff wait, and the outcome
    is the one returned to the caller.

    Args:
        logger: Logger to write to. Defaults to this module's logger.
        level: Level for calls that returned a response.
        error_level: Level for calls that raised.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.middleware import LoggingInterceptor
        >>> transport = LoggingInterceptor()(httpx.HTTPTransport())

        ```
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        level: int = logging.INFO,
        error_level: int = logging.WARNING,
    ) -> None:
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.level = level
        self.error_level = error_level

    def __call__(self, transport: Any) -> LoggingTransport:
        return LoggingTransport(
            transport, logger=self.logger, level=self.level, error_level=self.error_level
        )
