r"""Unit tests for structured logging utilities."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from unittest.mock import Mock

import pytest

from retrychain.utils import (
    StructuredFormatter,
    clear_correlation_id,
    correlation_scope,
    get_correlation_id,
    log_structured,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> None:
    clear_correlation_id()


def make_record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("retrychain.test", logging.INFO, __file__, 1, message, None, None)
    record.__dict__.update(extra)
    return record


#######################################
#     Tests for correlation IDs       #
#######################################


def test_correlation_id_default() -> None:
    """Test that no correlation ID is set by default."""
    assert get_correlation_id() is None


def test_set_and_clear_correlation_id() -> None:
    """Test setting and clearing the correlation ID."""
    set_correlation_id("request-1")
    assert get_correlation_id() == "request-1"
    clear_correlation_id()
    assert get_correlation_id() is None


def test_correlation_scope_restores_previous() -> None:
    """Test that a correlation scope restores the previous ID."""
    set_correlation_id("outer")
    with correlation_scope("inner"):
        assert get_correlation_id() == "inner"
    assert get_correlation_id() == "outer"


def test_correlation_scope_restores_on_error() -> None:
    """Test that the previous ID is restored when the block raises."""
    with pytest.raises(RuntimeError), correlation_scope("job-42"):
        raise RuntimeError("boom")
    assert get_correlation_id() is None


@pytest.mark.asyncio
async def test_correlation_id_isolated_between_tasks() -> None:
    """Test that asyncio tasks do not share correlation IDs."""

    async def worker(name: str) -> str | None:
        with correlation_scope(name):
            await asyncio.sleep(0.01)
            return get_correlation_id()

    assert await asyncio.gather(worker("a"), worker("b")) == ["a", "b"]


#########################################
#     Tests for StructuredFormatter     #
#########################################


def test_structured_formatter_standard_fields() -> None:
    """Test the standard fields of the JSON output."""
    data = json.loads(StructuredFormatter().format(make_record("GET done")))
    assert data["level"] == "INFO"
    assert data["logger"] == "retrychain.test"
    assert data["message"] == "GET done"
    assert data["timestamp"].endswith("Z")
    assert "correlation_id" not in data


def test_structured_formatter_extra_fields() -> None:
    """Test that extra fields are copied to the output."""
    record = make_record(method="GET", status_code=200, elapsed_ms=12.5)
    data = json.loads(StructuredFormatter().format(record))
    assert data["method"] == "GET"
    assert data["status_code"] == 200
    assert data["elapsed_ms"] == 12.5
    assert "args" not in data
    assert "levelno" not in data


def test_structured_formatter_non_serializable_extra() -> None:
    """Test that non-serializable values are rendered as strings."""
    data = json.loads(StructuredFormatter().format(make_record(url=object())))
    assert data["url"].startswith("<object object")


def test_structured_formatter_correlation_id() -> None:
    """Test that the correlation ID is included when set."""
    with correlation_scope("trace-7"):
        data = json.loads(StructuredFormatter().format(make_record()))
    assert data["correlation_id"] == "trace-7"


def test_structured_formatter_exception() -> None:
    """Test that exception tracebacks are included."""
    try:
        raise ValueError("bad value")
    except ValueError:
        record = logging.LogRecord(
            "retrychain.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
        )
    data = json.loads(StructuredFormatter().format(record))
    assert "ValueError: bad value" in data["exception"]


####################################
#     Tests for log_structured     #
####################################


def test_log_structured_passes_extra() -> None:
    """Test that fields are passed to the logger as extra."""
    logger = Mock(spec=logging.Logger, isEnabledFor=Mock(return_value=True))
    log_structured(logger, logging.INFO, "message", method="GET")
    logger.log.assert_called_once_with(logging.INFO, "message", extra={"method": "GET"})


def test_log_structured_skips_disabled_level() -> None:
    """Test that nothing is logged below the logger level."""
    logger = Mock(spec=logging.Logger, isEnabledFor=Mock(return_value=False))
    log_structured(logger, logging.DEBUG, "message", method="GET")
    logger.log.assert_not_called()


def test_log_structured_with_caplog(caplog: pytest.LogCaptureFixture) -> None:
    """Test the record produced by log_structured."""
    logger = logging.getLogger("retrychain.structured")
    with caplog.at_level(logging.INFO, logger="retrychain.structured"):
        log_structured(logger, logging.INFO, "POST done", status_code=201)
    assert caplog.records[0].status_code == 201
