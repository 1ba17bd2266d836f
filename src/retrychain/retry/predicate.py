r"""Retry predicates deciding whether an outcome warrants another
attempt.

A retry predicate receives the outcome of one attempt as a
``(response, error)`` pair, exactly one of which is ``None``, and
returns ``True`` to retry.
"""

from __future__ import annotations

__all__ = ["RetryPredicate", "default_retry_if", "is_retryable_status"]

from collections.abc import Callable

import httpx

RetryPredicate = Callable[[httpx.Response | None, Exception | None], bool]


def is_retryable_status(status_code: int) -> bool:
    """Return ``True`` for server errors (>= 500) and 429 Too Many
    Requests.

    Example:
        ```pycon
        >>> from retrychain.retry import is_retryable_status
        >>> is_retryable_status(503)
        True
        >>> is_retryable_status(429)
        True
        >>> is_retryable_status(404)
        False

        ```
    """
    return status_code >= 500 or status_code == 429


def default_retry_if(response: httpx.Response | None, error: Exception | None) -> bool:
    """Default retry predicate.

    Retries transport-level failures (connection errors, timeouts,
    protocol errors: the ``httpx.TransportError`` family) independently of
    HTTP semantics, and responses whose status is >= 500 or exactly 429.
    Everything else, including other 4xx statuses, 2xx/3xx statuses and
    exceptions outside the transport family, is final.

    Args:
        response: The response of the attempt, or ``None`` if it failed.
        error: The exception raised by the attempt, or ``None``.

    Returns:
        ``True`` if the attempt should be retried.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.retry import default_retry_if
        >>> default_retry_if(None, httpx.ConnectError("connection refused"))
        True
        >>> default_retry_if(httpx.Response(500), None)
        True
        >>> default_retry_if(httpx.Response(404), None)
        False

        ```
    """
    if error is not None:
        return isinstance(error, httpx.TransportError)
    if response is None:
        return False
    return is_retryable_status(response.status_code)
