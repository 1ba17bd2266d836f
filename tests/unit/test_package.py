r"""Unit tests for the package entry point and exceptions."""

from __future__ import annotations

import httpx
import pytest

import retrychain
from retrychain import DeadlineExceededError, RequestCancelledError, UnreplayableBodyError


def test_version() -> None:
    """Test that the package exposes a version string."""
    assert isinstance(retrychain.__version__, str)
    assert retrychain.__version__


@pytest.mark.parametrize("name", retrychain.__all__)
def test_public_api(name: str) -> None:
    """Test that every public name is importable from the package."""
    assert hasattr(retrychain, name)


def test_request_cancelled_error() -> None:
    """Test the default message and attached request."""
    request = httpx.Request("GET", "https://example.com")
    error = RequestCancelledError(request=request)
    assert str(error) == "request cancelled"
    assert error.request is request


def test_deadline_exceeded_error_is_a_cancellation() -> None:
    """Test that a deadline error is a cancellation error."""
    error = DeadlineExceededError()
    assert isinstance(error, RequestCancelledError)
    assert str(error) == "request deadline exceeded"
    assert error.request is None


def test_unreplayable_body_error() -> None:
    """Test the message of UnreplayableBodyError."""
    request = httpx.Request("POST", "https://example.com/upload")
    error = UnreplayableBodyError(request)
    assert isinstance(error, ValueError)
    assert "POST request to https://example.com/upload" in str(error)
    assert error.request is request
