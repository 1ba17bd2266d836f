r"""Unit tests for the synchronous retry transport."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING
from unittest.mock import Mock

import httpx
import pytest

from retrychain.backoff import BaseBackoffStrategy
from retrychain.cancellation import CancellationToken, with_cancellation
from retrychain.exceptions import DeadlineExceededError, RequestCancelledError, UnreplayableBodyError
from retrychain.retry import RetryPolicy, RetryTransport, with_body_supplier

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


def fixed_strategy(delay: float) -> Mock:
    return Mock(spec=BaseBackoffStrategy, calculate=Mock(return_value=delay))


def chunks() -> Iterator[bytes]:
    yield b"chunk"


######################################
#     Tests for retry outcomes       #
######################################


def test_retry_transport_success_first_attempt(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test successful request on first attempt."""
    transport, handler = scripted_transport(httpx.Response(200, content=b"ok"))
    response = RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(make_request())
    assert response.status_code == 200
    assert handler.call_count == 1
    mock_sleep.assert_not_called()


def test_retry_transport_exhausts_retries_on_transport_error(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that max_retries + 1 attempts are made and the last error raised."""
    errors = [httpx.ConnectError(f"refused {i}") for i in range(4)]
    transport, handler = scripted_transport(*errors)
    retry = RetryTransport(transport, RetryPolicy(max_retries=3))
    with pytest.raises(httpx.ConnectError) as exc_info:
        retry.handle_request(make_request())
    assert exc_info.value is errors[-1]
    assert handler.call_count == 4
    assert mock_sleep.call_count == 3


def test_retry_transport_retries_server_errors_then_succeeds(
    scripted_transport: Callable,
    make_request: Callable,
    streaming_response: Callable,
    mock_sleep: Mock,
) -> None:
    """Test that discarded responses are closed before retrying."""
    first, second = streaming_response(503), streaming_response(503)
    last = streaming_response(200, b"done")
    transport, handler = scripted_transport(first, second, last)
    response = RetryTransport(transport, RetryPolicy(max_retries=2)).handle_request(make_request())
    assert response is last
    assert handler.call_count == 3
    assert first.stream.close_count == 1
    assert second.stream.close_count == 1
    assert last.stream.close_count == 0
    assert response.read() == b"done"
    assert mock_sleep.call_count == 2


def test_retry_transport_returns_last_retryable_response_open(
    scripted_transport: Callable,
    make_request: Callable,
    streaming_response: Callable,
    mock_sleep: Mock,
) -> None:
    """Test that the last response is returned unclosed."""
    responses = [streaming_response(503), streaming_response(503, b"unavailable")]
    transport, handler = scripted_transport(*responses)
    response = RetryTransport(transport, RetryPolicy(max_retries=1)).handle_request(make_request())
    assert response is responses[-1]
    assert response.status_code == 503
    assert response.stream.close_count == 0
    assert response.read() == b"unavailable"
    assert handler.call_count == 2
    assert mock_sleep.call_count == 1


def test_retry_transport_retries_429(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that 429 Too Many Requests is retried."""
    transport, handler = scripted_transport(httpx.Response(429), httpx.Response(200))
    response = RetryTransport(transport, RetryPolicy(max_retries=1)).handle_request(make_request())
    assert response.status_code == 200
    assert handler.call_count == 2


@pytest.mark.parametrize("status_code", [200, 201, 301, 400, 404])
def test_retry_transport_does_not_retry_final_status(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock, status_code: int
) -> None:
    """Test that final statuses are returned immediately."""
    transport, handler = scripted_transport(httpx.Response(status_code))
    response = RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(make_request())
    assert response.status_code == status_code
    assert handler.call_count == 1
    mock_sleep.assert_not_called()


def test_retry_transport_does_not_retry_non_transport_error(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that non-transport errors are raised immediately."""
    transport, handler = scripted_transport(ValueError("bad value"))
    with pytest.raises(ValueError, match=r"bad value"):
        RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(make_request())
    assert handler.call_count == 1
    mock_sleep.assert_not_called()


def test_retry_transport_zero_retries_single_attempt(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that max_retries=0 makes exactly one attempt."""
    transport, handler = scripted_transport(httpx.Response(503))
    response = RetryTransport(transport, RetryPolicy(max_retries=0)).handle_request(make_request())
    assert response.status_code == 503
    assert handler.call_count == 1
    mock_sleep.assert_not_called()


def test_retry_transport_custom_predicate(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test retrying with a custom predicate."""
    retry_if = Mock(side_effect=lambda response, error: response.status_code == 404)
    transport, handler = scripted_transport(httpx.Response(404), httpx.Response(500))
    policy = RetryPolicy(max_retries=3, retry_if=retry_if)
    response = RetryTransport(transport, policy).handle_request(make_request())
    assert response.status_code == 500
    assert handler.call_count == 2
    assert retry_if.call_count == 2


def test_retry_transport_predicate_evaluated_on_last_attempt(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that the predicate sees every outcome."""
    retry_if = Mock(return_value=True)
    transport, _ = scripted_transport(httpx.Response(500), httpx.Response(500))
    policy = RetryPolicy(max_retries=1, retry_if=retry_if)
    RetryTransport(transport, policy).handle_request(make_request())
    assert retry_if.call_count == 2


def test_retry_transport_sleeps_backoff_delays(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that the backoff delay is slept between attempts."""
    strategy = fixed_strategy(0.5)
    transport, _ = scripted_transport(httpx.Response(500), httpx.Response(500), httpx.Response(200))
    policy = RetryPolicy(max_retries=2, backoff_strategy=strategy)
    RetryTransport(transport, policy).handle_request(make_request())
    assert [c.args for c in strategy.calculate.call_args_list] == [(0,), (1,)]
    assert [c.args for c in mock_sleep.call_args_list] == [(0.5,), (0.5,)]


def test_retry_transport_logs_retries(
    scripted_transport: Callable,
    make_request: Callable,
    mock_sleep: Mock,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test the debug record emitted before retrying."""
    transport, _ = scripted_transport(httpx.Response(503), httpx.Response(200))
    with caplog.at_level(logging.DEBUG, logger="retrychain.retry.executor"):
        RetryTransport(transport, RetryPolicy(max_retries=1)).handle_request(make_request())
    assert "will retry (status 503)" in caplog.text
    assert "[attempt 1/2]" in caplog.text


#########################################
#     Tests for request bodies          #
#########################################


def test_retry_transport_replays_in_memory_body(
    make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that an in-memory body is sent on every attempt."""
    bodies = []
    responses = iter([httpx.Response(500), httpx.Response(500), httpx.Response(200)])

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(request.content)
        return next(responses)

    retry = RetryTransport(httpx.MockTransport(handler), RetryPolicy(max_retries=2))
    retry.handle_request(make_request("POST", content=b"payload"))
    assert bodies == [b"payload", b"payload", b"payload"]


def test_retry_transport_rejects_single_use_body(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that a single-use body is rejected before any attempt."""
    transport, handler = scripted_transport(httpx.Response(200))
    with pytest.raises(UnreplayableBodyError):
        RetryTransport(transport, RetryPolicy(max_retries=2)).handle_request(
            make_request("POST", content=chunks())
        )
    handler.assert_not_called()


def test_retry_transport_single_use_body_without_retries(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that a single-use body is sent when retries are disabled."""
    transport, handler = scripted_transport(httpx.Response(200))
    response = RetryTransport(transport, RetryPolicy(max_retries=0)).handle_request(
        make_request("POST", content=chunks())
    )
    assert response.status_code == 200
    assert handler.call_count == 1


def test_retry_transport_invokes_body_supplier_per_attempt(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that the body supplier is called once per attempt."""
    supplier = Mock(return_value=b"fresh")
    transport, handler = scripted_transport(httpx.Response(503), httpx.Response(503), httpx.Response(201))
    request = with_body_supplier(make_request("POST", content=chunks()), supplier)
    response = RetryTransport(transport, RetryPolicy(max_retries=2)).handle_request(request)
    assert response.status_code == 201
    assert handler.call_count == 3
    assert supplier.call_count == 3


#####################################
#     Tests for cancellation        #
#####################################


def test_retry_transport_pre_cancelled_makes_no_attempt(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that a cancelled token prevents any attempt."""
    transport, handler = scripted_transport(httpx.Response(200))
    token = CancellationToken()
    token.cancel("caller gave up")
    request = with_cancellation(make_request(), token)
    with pytest.raises(RequestCancelledError, match=r"caller gave up") as exc_info:
        RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(request)
    assert exc_info.value.request is request
    handler.assert_not_called()


def test_retry_transport_expired_deadline_makes_no_attempt(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that an elapsed deadline prevents any attempt."""
    transport, handler = scripted_transport(httpx.Response(200))
    token = CancellationToken(timeout=0.001)
    time.sleep(0.01)
    with pytest.raises(DeadlineExceededError):
        RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(
            with_cancellation(make_request(), token)
        )
    handler.assert_not_called()


def test_retry_transport_cancel_during_backoff(
    scripted_transport: Callable, make_request: Callable, streaming_response: Callable
) -> None:
    """Test that cancellation interrupts the backoff wait."""
    response = streaming_response(503)
    transport, handler = scripted_transport(response, httpx.Response(200))
    policy = RetryPolicy(max_retries=3, min_backoff=5.0, max_backoff=5.0)
    token = CancellationToken()
    timer = threading.Timer(0.05, token.cancel)
    timer.start()
    start = time.monotonic()
    try:
        with pytest.raises(RequestCancelledError):
            RetryTransport(transport, policy).handle_request(with_cancellation(make_request(), token))
    finally:
        timer.cancel()
    assert time.monotonic() - start < 2.0
    assert handler.call_count == 1
    assert response.stream.close_count == 1


def test_retry_transport_deadline_during_backoff(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that the deadline interrupts the backoff wait."""
    transport, handler = scripted_transport(httpx.ConnectError("refused"), httpx.Response(200))
    policy = RetryPolicy(max_retries=3, min_backoff=5.0, max_backoff=5.0)
    token = CancellationToken(timeout=0.1)
    start = time.monotonic()
    with pytest.raises(DeadlineExceededError):
        RetryTransport(transport, policy).handle_request(with_cancellation(make_request(), token))
    assert time.monotonic() - start < 2.0
    assert handler.call_count == 1


def test_retry_transport_token_wait_without_cancellation(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test retrying with a token that never fires."""
    transport, handler = scripted_transport(httpx.Response(503), httpx.Response(200))
    policy = RetryPolicy(max_retries=1, min_backoff=0.001, max_backoff=0.001)
    request = with_cancellation(make_request(), CancellationToken(timeout=5.0))
    response = RetryTransport(transport, policy).handle_request(request)
    assert response.status_code == 200
    assert handler.call_count == 2


def test_retry_transport_error_after_cancellation_is_not_retried(make_request: Callable) -> None:
    """Test that an error raised after cancellation ends the call."""
    token = CancellationToken()
    handler = Mock()

    def cancel_and_fail(request: httpx.Request) -> httpx.Response:
        handler(request)
        token.cancel("stop")
        raise httpx.ReadError("connection reset")

    retry = RetryTransport(httpx.MockTransport(cancel_and_fail), RetryPolicy(max_retries=3))
    with pytest.raises(RequestCancelledError, match=r"stop") as exc_info:
        retry.handle_request(with_cancellation(make_request(), token))
    assert isinstance(exc_info.value.__cause__, httpx.ReadError)
    assert handler.call_count == 1


def test_retry_transport_propagates_inner_cancellation(
    scripted_transport: Callable, make_request: Callable
) -> None:
    """Test that cancellation errors from the inner transport are not retried."""
    error = DeadlineExceededError()
    transport, handler = scripted_transport(error, httpx.Response(200))
    with pytest.raises(DeadlineExceededError) as exc_info:
        RetryTransport(transport, RetryPolicy(max_retries=3)).handle_request(make_request())
    assert exc_info.value is error
    assert handler.call_count == 1


def test_retry_transport_applies_deadline_to_timeouts(make_request: Callable) -> None:
    """Test that httpx timeouts are bounded by the deadline."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.extensions["timeout"])
        return httpx.Response(200)

    request = with_cancellation(
        make_request(extensions={"timeout": {"connect": 30.0, "read": 30.0, "write": 30.0, "pool": 30.0}}),
        CancellationToken(timeout=1.0),
    )
    RetryTransport(httpx.MockTransport(handler), RetryPolicy()).handle_request(request)
    assert all(value <= 1.0 for value in seen[0].values())


###############################
#     Tests for lifecycle     #
###############################


def test_retry_transport_close() -> None:
    """Test that closing closes the wrapped transport."""
    inner = Mock(spec=httpx.BaseTransport)
    RetryTransport(inner, RetryPolicy()).close()
    inner.close.assert_called_once_with()


def test_retry_transport_in_client(scripted_transport: Callable, url: str, mock_sleep: Mock) -> None:
    """Test the retry transport inside an httpx.Client."""
    transport, handler = scripted_transport(httpx.Response(502), httpx.Response(200, json={"ok": True}))
    with httpx.Client(transport=RetryTransport(transport, RetryPolicy(max_retries=2))) as client:
        response = client.get(url)
    assert response.json() == {"ok": True}
    assert handler.call_count == 2


def test_retry_transport_repr() -> None:
    """Test the representation of RetryTransport."""
    assert repr(RetryTransport(Mock(spec=httpx.BaseTransport), RetryPolicy())).startswith(
        "RetryTransport(transport="
    )


def test_retry_transport_always_true_predicate_bounds_attempts(
    scripted_transport: Callable, make_request: Callable, mock_sleep: Mock
) -> None:
    """Test that an always-true predicate still stops after max_retries +
    1 attempts."""
    errors = [httpx.ConnectError(f"refused {i}") for i in range(3)]
    transport, handler = scripted_transport(*errors)
    policy = RetryPolicy(max_retries=2, retry_if=lambda response, error: True)
    with pytest.raises(httpx.ConnectError) as exc_info:
        RetryTransport(transport, policy).handle_request(make_request())
    assert exc_info.value is errors[-1]
    assert handler.call_count == 3
