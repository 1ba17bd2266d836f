r"""Shared core logic for retry executors.

This module provides helper functions used by both the synchronous and
asynchronous retry transports. They cover the steps of one retry
iteration that do not depend on the I/O model: the pre-attempt
cancellation check, request preparation, and outcome reporting.
"""

from __future__ import annotations

__all__ = [
    "cancellation_error",
    "check_cancelled",
    "describe_outcome",
    "prepare_attempt",
]

import logging
from typing import TYPE_CHECKING

from retrychain.cancellation import apply_deadline
from retrychain.exceptions import DeadlineExceededError
from retrychain.retry.body import prepare_body

if TYPE_CHECKING:
    import httpx

    from retrychain.cancellation import CancellationToken
    from retrychain.exceptions import RequestCancelledError

logger: logging.Logger = logging.getLogger(__name__)


def cancellation_error(request: httpx.Request, token: CancellationToken) -> RequestCancelledError:
    """Return the error describing why ``token`` ended the call.

    Args:
        request: The request being executed.
        token: A token whose wait reported cancellation.

    Returns:
        The token's cancellation error. A wait bounded by the deadline
        can resolve a hair before the monotonic clock reaches it, in
        which case a ``DeadlineExceededError`` is returned.
    """
    return token.error(request) or DeadlineExceededError(request=request)


def check_cancelled(request: httpx.Request, token: CancellationToken | None, attempt: int) -> None:
    """Raise the cancellation error if ``token`` already fired.

    Args:
        request: The request about to be sent.
        token: The request's cancellation token, if any.
        attempt: Current attempt number (0-indexed).

    Raises:
        RequestCancelledError: If the token was cancelled.
        DeadlineExceededError: If the token's deadline elapsed.
    """
    if token is None or not token.cancelled:
        return
    logger.debug(
        f"{request.method} request to {request.url} cancelled before attempt {attempt + 1}"
    )
    raise cancellation_error(request, token)


def prepare_attempt(
    request: httpx.Request,
    token: CancellationToken | None,
    attempt: int,
    max_retries: int,
) -> None:
    """Prepare ``request`` for one attempt.

    Installs a fresh body when a body supplier is attached, rejects
    single-use bodies when retries are enabled, and bounds the httpx
    timeouts by the remaining deadline.
    """
    prepare_body(request, attempt, max_retries)
    apply_deadline(request, token)


def describe_outcome(response: httpx.Response | None, error: Exception | None) -> str:
    """Return a short human-readable description of an attempt's
    outcome.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.retry.executor_core import describe_outcome
        >>> describe_outcome(httpx.Response(503), None)
        'status 503'
        >>> describe_outcome(None, httpx.ConnectError("refused"))
        'ConnectError: refused'

        ```
    """
    if error is not None:
        return f"{type(error).__name__}: {error}"
    if response is not None:
        return f"status {response.status_code}"
    return "no outcome"
