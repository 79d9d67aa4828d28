"""Prometheus metrics definitions and helpers.

Provides metric definitions for the proxy endpoint and its upstream calls.
"""

from typing import Callable, Optional

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CollectorRegistry,
)


class ProxyMetrics:
    """Proxy service metrics."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize proxy metrics.

        Args:
            registry: Prometheus registry to use (a private one if omitted)
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        # Inbound requests
        self.http_requests = Counter(
            "proxy_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=self.registry,
        )

        # Inbound request duration
        self.http_request_duration = Histogram(
            "proxy_http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry,
        )

        # Upstream calls by classification outcome
        self.upstream_requests = Counter(
            "proxy_upstream_requests_total",
            "Total upstream requests by outcome",
            ["transport", "outcome"],
            registry=self.registry,
        )

        # Upstream call duration
        self.upstream_request_duration = Histogram(
            "proxy_upstream_request_duration_seconds",
            "Time spent waiting for the upstream site",
            ["transport"],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
            registry=self.registry,
        )


def get_metrics_handler(registry: CollectorRegistry) -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(registry)

    return metrics_handler
