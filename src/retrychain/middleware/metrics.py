r"""Metrics interceptor.

The interceptor measures each call and hands a :class:`RequestMetric`
to a sink. The sink is supplied by the application (a Prometheus
histogram, a StatsD client, an in-memory buffer...) and only has to
implement :class:`MetricsSink`.

Example:
    ```pycon
    >>> import httpx
    >>> from retrychain.middleware import MetricsInterceptor, RequestMetric
    >>> class PrintSink:
    ...     def record(self, metric: RequestMetric) -> None:
    ...         print(metric.service, metric.method, metric.status)
    ...
    >>> transport = MetricsInterceptor("billing", PrintSink())(
    ...     httpx.MockTransport(lambda request: httpx.Response(204))
    ... )
    >>> _ = transport.handle_request(httpx.Request("DELETE", "https://example.com/items/1"))
    billing DELETE 204

    ```
"""

from __future__ import annotations

__all__ = ["ERROR_STATUS", "MetricsInterceptor", "MetricsSink", "MetricsTransport", "RequestMetric"]

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from retrychain.middleware.base import ObservingTransport

# Status recorded when the call raised instead of returning a response
ERROR_STATUS = "error"


@dataclass(frozen=True)
class RequestMetric:
    """Measurement of one call.

    Attributes:
        service: The service name given to the interceptor.
        method: The HTTP method.
        host: The target host.
        status: The numeric status code as a string, or ``"error"``.
        duration: Duration of the call in seconds.
    """

    service: str
    method: str
    host: str
    status: str
    duration: float


@runtime_checkable
class MetricsSink(Protocol):
    """Destination of request metrics."""

    def record(self, metric: RequestMetric) -> None: ...


class MetricsTransport(ObservingTransport):
    """Transport delivering one :class:`RequestMetric` per call to a
    sink."""

    def __init__(self, transport: Any, service_name: str, sink: MetricsSink) -> None:
        super().__init__(transport)
        self.service_name = service_name
        self.sink = sink

    def observe(
        self,
        request: httpx.Request,
        response: httpx.Response | None,
        error: Exception | None,  # noqa: ARG002
        elapsed: float,
    ) -> None:
        status = ERROR_STATUS if response is None else str(response.status_code)
        self.sink.record(
            RequestMetric(
                service=self.service_name,
                method=request.method,
                host=request.url.host,
                status=status,
                duration=elapsed,
            )
        )


class MetricsInterceptor:
    """Interceptor recording duration and status of every call.

    Args:
        service_name: Name tagging every metric, usually the name of the
            remote service.
        sink: Object receiving the metrics.

    Raises:
        TypeError: If ``sink`` does not implement ``record``.
    """

    def __init__(self, service_name: str, sink: MetricsSink) -> None:
        if not isinstance(sink, MetricsSink):
            msg = f"sink must implement record(metric), got {type(sink).__qualname__}"
            raise TypeError(msg)
        self.service_name = service_name
        self.sink = sink

    def __call__(self, transport: Any) -> MetricsTransport:
        return MetricsTransport(transport, service_name=self.service_name, sink=self.sink)
