r"""Cooperative cancellation tokens carried alongside each request.

A :class:`CancellationToken` is attached to an ``httpx.Request`` through
its ``extensions`` mapping. The pipeline checks it at two points of each
retry iteration: before an attempt is issued, and while waiting for the
backoff delay. The wait is a race between a timer and the token's
cancellation signal, and resolves to whichever fires first.

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain.cancellation import CancellationToken, get_cancellation, with_cancellation
    >>> token = CancellationToken(timeout=5.0)
    >>> request = with_cancellation(httpx.Request("GET", "https://example.com"), token)
    >>> get_cancellation(request) is token
    True
    >>> token.cancel("shutting down")
    >>> token.cancelled
    True

    ```
"""

from __future__ import annotations

__all__ = [
    "CANCELLATION_EXTENSION",
    "CancellationToken",
    "apply_deadline",
    "copy_request",
    "get_cancellation",
    "with_cancellation",
]

import asyncio
import logging
import threading
import time
from typing import TYPE_CHECKING, Any

import httpx

from retrychain.core.validation import validate_timeout
from retrychain.exceptions import DeadlineExceededError, RequestCancelledError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType
    from typing import Self

logger: logging.Logger = logging.getLogger(__name__)

# Key under which the token is stored in ``httpx.Request.extensions``
CANCELLATION_EXTENSION = "cancellation"

_TIMEOUT_KEYS = ("connect", "read", "write", "pool")


def _earliest(first: float | None, second: float | None) -> float | None:
    if first is None:
        return second
    if second is None:
        return first
    return min(first, second)


class CancellationToken:
    r"""Cancellation signal with an optional deadline.

    The token is thread-safe. It can be cancelled explicitly with
    :meth:`cancel`, or implicitly when its deadline elapses. A token
    derived with :meth:`child` inherits the parent's deadline (the
    shorter deadline governs) and is cancelled when the parent is.

    Args:
        timeout: Optional number of seconds after which the token's
            deadline elapses. Must be > 0 if provided.
        parent: Optional parent token.

    Example:
        ```pycon
        >>> from retrychain.cancellation import CancellationToken
        >>> parent = CancellationToken()
        >>> with parent.child(timeout=1.0) as child:
        ...     parent.cancel()
        ...     child.cancelled
        ...
        True

        ```
    """

    def __init__(self, timeout: float | None = None, *, parent: CancellationToken | None = None) -> None:
        if timeout is not None:
            validate_timeout(timeout)
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._reason: str | None = None
        self._parent = parent

        own_deadline = time.monotonic() + timeout if timeout is not None else None
        self._deadline = _earliest(own_deadline, parent.deadline if parent is not None else None)

        self._parent_callback: Callable[[], None] | None = None
        if parent is not None:
            self._parent_callback = self._on_parent_cancelled
            parent.add_callback(self._parent_callback)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__qualname__}(cancelled={self.cancelled}, "
            f"remaining={self.remaining()})"
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
    def deadline(self) -> float | None:
        r"""The deadline as a ``time.monotonic()`` value, or ``None``."""
        return self._deadline

    @property
    def reason(self) -> str | None:
        r"""The reason given to :meth:`cancel`, if any."""
        return self._reason

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        r"""``True`` if the token was cancelled or its deadline elapsed."""
        return self._event.is_set() or self.deadline_exceeded

    def remaining(self) -> float | None:
        r"""Return the seconds left before the deadline.

        Returns:
            The remaining time (never negative), or ``None`` if the
            token has no deadline.
        """
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def cancel(self, reason: str | None = None) -> None:
        r"""Cancel the token and every token derived from it.

        Cancelling an already cancelled token is a no-op.

        Args:
            reason: Optional description used in the raised error.
        """
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        logger.debug(f"Cancellation token cancelled (reason={reason!r})")
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> None:
        r"""Register a callable invoked once when the token is cancelled.

        The callback runs immediately if the token is already cancelled.
        Deadline expiry does not invoke callbacks; waiters bound their
        wait by :meth:`remaining` instead.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remove_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def error(self, request: httpx.Request | None = None) -> RequestCancelledError | None:
        r"""Return the cancellation error matching the token state.

        Args:
            request: Optional request attached to the error.

        Returns:
            ``RequestCancelledError`` if the token was cancelled,
            ``DeadlineExceededError`` if the deadline elapsed, or ``None``.
        """
        if self._event.is_set():
            return RequestCancelledError(self._reason or "request cancelled", request=request)
        if self.deadline_exceeded:
            return DeadlineExceededError(request=request)
        return None

    def raise_if_cancelled(self, request: httpx.Request | None = None) -> None:
        r"""Raise the cancellation error if the token is cancelled.

        Raises:
            RequestCancelledError: If the token was cancelled.
            DeadlineExceededError: If the deadline elapsed.
        """
        error = self.error(request)
        if error is not None:
            raise error

    def wait(self, timeout: float) -> bool:
        r"""Block for up to ``timeout`` seconds or until cancellation.

        Args:
            timeout: The number of seconds to wait.

        Returns:
            ``True`` if the token was cancelled (or its deadline elapsed)
            before the timer fired, otherwise ``False``.
        """
        delay, bounded_by_deadline = self._bound(timeout)
        if self._event.wait(delay):
            return True
        return bounded_by_deadline or self.cancelled

    async def wait_async(self, timeout: float) -> bool:
        r"""Asynchronous counterpart of :meth:`wait`.

        Cancelling the token from another thread wakes the waiting task
        through ``loop.call_soon_threadsafe``. The callback is removed on
        every exit path.
        """
        if self._event.is_set():
            return True
        delay, bounded_by_deadline = self._bound(timeout)
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def _resolve() -> None:
            if not future.done():
                future.set_result(None)

        def _wake() -> None:
            loop.call_soon_threadsafe(_resolve)

        self.add_callback(_wake)
        try:
            await asyncio.wait_for(future, timeout=delay)
        except asyncio.TimeoutError:
            return bounded_by_deadline or self.cancelled
        finally:
            self.remove_callback(_wake)
        return True

    def child(self, timeout: float | None = None) -> CancellationToken:
        r"""Derive a token bounded by ``timeout`` and by this token.

        The derived token must be closed (or used as a context manager)
        to detach it from this token.
        """
        return CancellationToken(timeout, parent=self)

    def close(self) -> None:
        r"""Detach the token from its parent."""
        if self._parent is not None and self._parent_callback is not None:
            self._parent.remove_callback(self._parent_callback)
        self._parent_callback = None

    def _on_parent_cancelled(self) -> None:
        self.cancel(self._parent.reason if self._parent is not None else None)

    def _bound(self, timeout: float) -> tuple[float, bool]:
        remaining = self.remaining()
        if remaining is not None and remaining <= timeout:
            return remaining, True
        return max(0.0, timeout), False


def get_cancellation(request: httpx.Request) -> CancellationToken | None:
    r"""Return the cancellation token attached to a request, if any."""
    return request.extensions.get(CANCELLATION_EXTENSION)


def copy_request(request: httpx.Request, **extensions: Any) -> httpx.Request:
    r"""Return a shallow copy of a request with updated extensions.

    The copy shares the original request's body stream.

    Args:
        request: The request to copy.
        **extensions: Extension entries added to (or replacing) the
            original request's extensions.
    """
    return httpx.Request(
        method=request.method,
        url=request.url,
        headers=request.headers,
        stream=request.stream,
        extensions={**request.extensions, **extensions},
    )


def with_cancellation(request: httpx.Request, token: CancellationToken) -> httpx.Request:
    r"""Return a copy of ``request`` carrying ``token``."""
    return copy_request(request, **{CANCELLATION_EXTENSION: token})


def apply_deadline(request: httpx.Request, token: CancellationToken | None) -> None:
    r"""Clamp the request's httpx timeouts to the token's deadline.

    httpx transports read per-request timeouts from
    ``request.extensions["timeout"]``. Bounding them by the remaining
    deadline lets the base transport honour the deadline for its own
    blocking I/O.

    Example:
        ```pycon
        >>> import httpx
        >>> from retrychain.cancellation import CancellationToken, apply_deadline
        >>> request = httpx.Request("GET", "https://example.com")
        >>> apply_deadline(request, CancellationToken(timeout=0.5))
        >>> request.extensions["timeout"]["read"] <= 0.5
        True

        ```
    """
    if token is None:
        return
    remaining = token.remaining()
    if remaining is None:
        return
    timeouts = dict(request.extensions.get("timeout", {}))
    for key in _TIMEOUT_KEYS:
        current = timeouts.get(key)
        timeouts[key] = remaining if current is None else min(current, remaining)
    request.extensions["timeout"] = timeouts
