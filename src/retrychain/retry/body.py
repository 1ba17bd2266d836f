r"""Request body lifecycle across retry attempts.

A request body is consumed by the attempt that sends it. For a retry to
send the same body again, the body must be replayable:

- bodies httpx builds from bytes (``content=b"..."``, ``json=``,
  ``data={...}``) and empty bodies are held in an ``httpx.ByteStream``
  and can be iterated any number of times;
- any other stream is single-use, and must be produced fresh for each
  attempt by a body supplier attached with :func:`with_body_supplier`.

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain.retry import with_body_supplier
    >>> def chunks():
    ...     yield b"hello "
    ...     yield b"world"
    ...
    >>> request = httpx.Request("POST", "https://example.com/upload", content=chunks())
    >>> request = with_body_supplier(request, lambda: b"hello world")

    ```
"""

from __future__ import annotations

__all__ = [
    "BODY_SUPPLIER_EXTENSION",
    "BodySupplier",
    "get_body_supplier",
    "is_replayable",
    "prepare_body",
    "with_body_supplier",
]

import logging
from collections.abc import Callable
from typing import Union

import httpx

from retrychain.cancellation import copy_request
from retrychain.exceptions import UnreplayableBodyError

logger: logging.Logger = logging.getLogger(__name__)

# Key under which the supplier is stored in ``httpx.Request.extensions``
BODY_SUPPLIER_EXTENSION = "body_supplier"

BodySupplier = Callable[[], Union[bytes, httpx.SyncByteStream, httpx.AsyncByteStream]]


def get_body_supplier(request: httpx.Request) -> BodySupplier | None:
    return request.extensions.get(BODY_SUPPLIER_EXTENSION)


def with_body_supplier(request: httpx.Request, supplier: BodySupplier) -> httpx.Request:
    r"""Return a copy of ``request`` whose body is produced by
    ``supplier``.

    The supplier is invoked once per attempt, including the first one,
    and must return either ``bytes`` or a fresh byte stream.
    """
    return copy_request(request, **{BODY_SUPPLIER_EXTENSION: supplier})


def is_replayable(request: httpx.Request) -> bool:
    r"""Return ``True`` if the request body can be sent more than once."""
    return get_body_supplier(request) is not None or isinstance(request.stream, httpx.ByteStream)


def prepare_body(request: httpx.Request, attempt: int, max_retries: int) -> None:
    r"""Install a fresh body on ``request`` before an attempt.

    Args:
        request: The request about to be sent.
        attempt: The attempt index (0-indexed).
        max_retries: The configured maximum number of retries.

    Raises:
        UnreplayableBodyError: If retries are enabled and the request
            carries a single-use stream without a body supplier. This is
            raised before the first attempt, so the body is never consumed.
    """
    supplier = get_body_supplier(request)
    if supplier is None:
        if attempt == 0 and max_retries > 0 and not is_replayable(request):
            raise UnreplayableBodyError(request)
        return

    body = supplier()
    if isinstance(body, bytes):
        request.stream = httpx.ByteStream(body)
        request.headers["Content-Length"] = str(len(body))
        request.headers.pop("Transfer-Encoding", None)
        # httpx caches in-memory bodies in _content; keep it in step with the stream
        request._content = body
    else:
        request.stream = body
        vars(request).pop("_content", None)
    logger.debug(f"Supplied a fresh body for {request.method} {request.url} (attempt {attempt + 1})")
