r"""Unit tests for parameter validation."""

from __future__ import annotations

import httpx
import pytest

from retrychain.core.validation import (
    validate_backoff_params,
    validate_retry_params,
    validate_timeout,
)

######################################
#     Tests for validate_timeout     #
######################################


@pytest.mark.parametrize("timeout", [0.001, 1, 10.0])
def test_validate_timeout_valid(timeout: float) -> None:
    """Test that positive timeouts are accepted."""
    validate_timeout(timeout)


def test_validate_timeout_httpx_timeout() -> None:
    """Test that httpx.Timeout objects are accepted."""
    validate_timeout(httpx.Timeout(5.0))


@pytest.mark.parametrize("timeout", [0, 0.0, -1, -0.5])
def test_validate_timeout_invalid(timeout: float) -> None:
    """Test that non-positive timeouts are rejected."""
    with pytest.raises(ValueError, match=r"timeout must be > 0"):
        validate_timeout(timeout)


#############################################
#     Tests for validate_backoff_params     #
#############################################


def test_validate_backoff_params_valid() -> None:
    """Test valid backoff parameters."""
    validate_backoff_params(0.1, 5.0)
    validate_backoff_params(0.0, 0.0)
    validate_backoff_params(1.0, 1.0, jitter=1.0)


def test_validate_backoff_params_negative_min() -> None:
    """Test that a negative min_backoff is rejected."""
    with pytest.raises(ValueError, match=r"min_backoff must be >= 0, got -0.1"):
        validate_backoff_params(-0.1, 5.0)


def test_validate_backoff_params_max_below_min() -> None:
    """Test that max_backoff below min_backoff is rejected."""
    with pytest.raises(ValueError, match=r"max_backoff must be >= min_backoff \(2.0\), got 1.0"):
        validate_backoff_params(2.0, 1.0)


@pytest.mark.parametrize("jitter", [-0.01, 1.01])
def test_validate_backoff_params_invalid_jitter(jitter: float) -> None:
    """Test that jitter outside [0, 1] is rejected."""
    with pytest.raises(ValueError, match=r"jitter must be within \[0, 1\]"):
        validate_backoff_params(0.1, 5.0, jitter=jitter)


###########################################
#     Tests for validate_retry_params     #
###########################################


@pytest.mark.parametrize("max_retries", [0, 1, 10])
def test_validate_retry_params_valid(max_retries: int) -> None:
    """Test that non-negative max_retries is accepted."""
    validate_retry_params(max_retries, min_backoff=0.1, max_backoff=5.0)


def test_validate_retry_params_negative_max_retries() -> None:
    """Test that negative max_retries is rejected."""
    with pytest.raises(ValueError, match=r"max_retries must be >= 0, got -1"):
        validate_retry_params(-1)


def test_validate_retry_params_checks_backoff() -> None:
    """Test that backoff bounds are validated too."""
    with pytest.raises(ValueError, match=r"min_backoff must be >= 0"):
        validate_retry_params(3, min_backoff=-1.0, max_backoff=1.0)
