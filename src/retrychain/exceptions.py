r"""Exceptions raised by the request pipeline.

Transport failures are reported with httpx's own exception hierarchy
(``httpx.TransportError`` and its subclasses). The classes below cover
the conditions the pipeline itself introduces: cancellation, deadlines,
and request bodies that cannot be sent more than once.

Note that a non-2xx response is not an error at this layer. It is
returned to the caller as a normal ``httpx.Response``.
"""

from __future__ import annotations

__all__ = ["DeadlineExceededError", "RequestCancelledError", "UnreplayableBodyError"]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx


class RequestCancelledError(RuntimeError):
    r"""Raised when the cancellation token attached to a request fires.

    A cancellation error is never retried. It terminates any in-progress
    backoff wait and propagates to the caller immediately.

    Args:
        message: A descriptive error message.
        request: The request that was cancelled, if known.

    Example:
        ```pycon
        >>> from retrychain.exceptions import RequestCancelledError
        >>> raise RequestCancelledError("request cancelled")
        Traceback (most recent call last):
            ...
        retrychain.exceptions.RequestCancelledError: request cancelled

        ```
    """

    def __init__(self, message: str = "request cancelled", request: httpx.Request | None = None) -> None:
        super().__init__(message)
        self.request = request


class DeadlineExceededError(RequestCancelledError):
    r"""Raised when the deadline of a cancellation token has elapsed."""

    def __init__(
        self, message: str = "request deadline exceeded", request: httpx.Request | None = None
    ) -> None:
        super().__init__(message, request=request)


class UnreplayableBodyError(ValueError):
    r"""Raised when a retry-enabled request carries a single-use body.

    Retrying requires a body that can be produced again for each attempt.
    Bodies built from bytes (``content=``, ``json=``, ``data=``) are
    replayable; streaming bodies need a body supplier attached with
    :func:`retrychain.retry.with_body_supplier`.
    """

    def __init__(self, request: httpx.Request) -> None:
        super().__init__(
            f"{request.method} request to {request.url} has a single-use streaming body "
            "and cannot be retried; attach a body supplier or read the body first"
        )
        self.request = request
