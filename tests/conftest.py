from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import Mock, patch

import httpx
import pytest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator

URL = "https://example.com/resource"


class TrackingStream(httpx.SyncByteStream, httpx.AsyncByteStream):
    """Response body stream counting how many times it is closed."""

    def __init__(self, body: bytes = b"") -> None:
        self.body = body
        self.close_count = 0

    def __iter__(self) -> Iterator[bytes]:
        yield self.body

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self.body

    def close(self) -> None:
        self.close_count += 1

    async def aclose(self) -> None:
        self.close_count += 1


@pytest.fixture
def mock_sleep() -> Iterator[Mock]:
    """Patch time.sleep to make tests run faster."""
    with patch("time.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def mock_asleep() -> Iterator[Mock]:
    """Patch asyncio.sleep to make tests run faster."""
    with patch("asyncio.sleep", return_value=None) as mock:
        yield mock


@pytest.fixture
def url() -> str:
    return URL


@pytest.fixture
def make_request() -> Callable[..., httpx.Request]:
    """Return a factory of requests to the test URL."""

    def _make(method: str = "GET", **kwargs: object) -> httpx.Request:
        return httpx.Request(method, URL, **kwargs)

    return _make


@pytest.fixture
def streaming_response() -> Callable[[int], httpx.Response]:
    """Return a factory of responses whose body close is tracked."""

    def _make(status_code: int, body: bytes = b"") -> httpx.Response:
        return httpx.Response(status_code, stream=TrackingStream(body))

    return _make


@pytest.fixture
def scripted_transport() -> Callable[..., tuple[httpx.MockTransport, Mock]]:
    """Return a factory of mock transports replaying a script of
    outcomes.

    Each item of the script is either an ``httpx.Response`` returned by
    the transport or an exception raised by it. The returned ``Mock`` is
    the handler, so ``handler.call_count`` is the number of attempts.
    """

    def _make(*outcomes: httpx.Response | Exception) -> tuple[httpx.MockTransport, Mock]:
        handler = Mock(side_effect=list(outcomes))
        return httpx.MockTransport(handler), handler

    return _make
