r"""Structured logging utilities for machine-readable log output.

The logging interceptor attaches its fields (method, URL, elapsed time,
status code or error) to the log record through ``extra``. With the
default formatter they only show up in the message; with
:class:`StructuredFormatter` every record is rendered as one JSON object
carrying those fields, which suits log aggregation systems.

Example:
    Enable structured logging for retrychain:

    ```python
    import logging
    from retrychain.utils.structured_logging import StructuredFormatter

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter())

    logger = logging.getLogger("retrychain")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    ```

    Tag every record emitted while serving one logical operation:

    ```python
    from retrychain.utils.structured_logging import correlation_scope

    with correlation_scope("job-42"):
        client.get("https://api.example.com/data")
    ```
"""

from __future__ import annotations

__all__ = [
    "StructuredFormatter",
    "clear_correlation_id",
    "correlation_scope",
    "get_correlation_id",
    "log_structured",
    "set_correlation_id",
]

import contextvars
import json
import logging
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "retrychain_correlation_id", default=None
)

# Attributes every LogRecord has; anything else came from ``extra``
_RESERVED_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


def get_correlation_id() -> str | None:
    """Get the correlation ID of the current context, or ``None``."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID for the current context.

    The ID is stored in a context variable, so it is isolated between
    threads and between asyncio tasks.

    Example:
        ```pycon
        >>> from retrychain.utils.structured_logging import (
        ...     get_correlation_id,
        ...     set_correlation_id,
        ... )
        >>> set_correlation_id("request-456")
        >>> get_correlation_id()
        'request-456'

        ```
    """
    _correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id.set(None)


@contextmanager
def correlation_scope(correlation_id: str) -> Generator[None, None, None]:
    """Set a correlation ID for the duration of a ``with`` block.

    The previous value is restored on exit.
    """
    reset_token = _correlation_id.set(correlation_id)
    try:
        yield
    finally:
        _correlation_id.reset(reset_token)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Standard fields in the JSON output:
        - timestamp: ISO 8601 UTC timestamp with milliseconds
        - level: Log level name
        - logger: Logger name
        - message: Log message
        - correlation_id: Correlation ID, when one is set
        - exception: Formatted traceback, when present

    Fields passed through ``extra`` are copied as-is. Values that are not
    JSON serializable are rendered with ``str()``.

    Example:
        ```pycon
        >>> import logging
        >>> from io import StringIO
        >>> from retrychain.utils.structured_logging import StructuredFormatter
        >>> stream = StringIO()
        >>> handler = logging.StreamHandler(stream)
        >>> handler.setFormatter(StructuredFormatter())
        >>> logger = logging.getLogger("structured_doctest")
        >>> logger.addHandler(handler)
        >>> logger.setLevel(logging.INFO)
        >>> logger.info("GET https://example.com", extra={"status_code": 200})
        >>> '"status_code": 200' in stream.getvalue()
        True

        ```
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id is not None:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        log_data.update(
            {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}
        )
        return json.dumps(log_data, default=str)

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: ARG002
        return (
            time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created))
            + f".{int(record.msecs):03d}Z"
        )


def log_structured(
    logger: logging.Logger,
    level: int,
    message: str,
    **extra: Any,
) -> None:
    """Log a message with structured data.

    Args:
        logger: Logger to use.
        level: Log level (e.g., logging.INFO).
        message: Log message.
        **extra: Additional structured fields to include in the record.
    """
    if logger.isEnabledFor(level):
        logger.log(level, message, extra=extra)
