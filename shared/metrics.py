"""
Shared metrics configuration for the Earthdata Search Access Layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Metrics collector bound to its own registry."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # One registry per collector
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["catalog_requests_total"] = Counter(
            "catalog_requests_total",
            "Requests proxied to the catalog",
            ["resource", "status_code"],
            registry=self.registry
        )

        self._metrics["catalog_request_duration_seconds"] = Histogram(
            "catalog_request_duration_seconds",
            "Catalog request duration in seconds",
            ["resource"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record an inbound HTTP request."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_catalog_request(self, resource: str, status_code: int, duration: float):
        """Record a request proxied to the catalog."""
        self._metrics["catalog_requests_total"].labels(
            resource=resource,
            status_code=str(status_code)
        ).inc()
        self._metrics["catalog_request_duration_seconds"].labels(resource=resource).observe(duration)

    def record_error(self, error_type: str):
        """Record an error."""
        self._metrics["errors_total"].labels(error_type=error_type).inc()

    def render(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Create a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
