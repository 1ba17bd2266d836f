r"""Interceptors ("middleware") wrapping one transport into another.

This package provides the interceptor abstraction and the built-in
interceptors for logging, metrics, and per-request timeouts.
"""

from __future__ import annotations

__all__ = [
    "ERROR_STATUS",
    "AsyncFunctionTransport",
    "FunctionTransport",
    "InterceptingTransport",
    "Interceptor",
    "LoggingInterceptor",
    "MetricsInterceptor",
    "MetricsSink",
    "ObservingTransport",
    "RequestMetric",
    "TimeoutInterceptor",
    "Transport",
    "async_interceptor",
    "interceptor",
]

from retrychain.middleware.base import (
    AsyncFunctionTransport,
    FunctionTransport,
    InterceptingTransport,
    Interceptor,
    ObservingTransport,
    Transport,
    async_interceptor,
    interceptor,
)
from retrychain.middleware.logging_interceptor import LoggingInterceptor
from retrychain.middleware.metrics import ERROR_STATUS, MetricsInterceptor, MetricsSink, RequestMetric
from retrychain.middleware.timeout import TimeoutInterceptor
