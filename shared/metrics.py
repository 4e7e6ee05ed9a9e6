"""
Shared metrics configuration for the token cache harness.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, start_http_server, CollectorRegistry
from typing import Dict, Any, Optional
import threading


# Accessor round trips are sub-millisecond against the in-memory store
ACCESSOR_BUCKETS = (
    0.00001, 0.000025, 0.00005, 0.0001, 0.00025, 0.0005,
    0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0,
)


class MetricsCollector:
    """Centralized metrics collector for the harness."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up harness metrics."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # Accessor metrics
        self._metrics["token_cache_accessor_operations_total"] = Counter(
            "token_cache_accessor_operations_total",
            "Total cache accessor operations",
            ["operation", "result"],
            registry=self.registry
        )

        self._metrics["token_cache_accessor_duration_seconds"] = Histogram(
            "token_cache_accessor_duration_seconds",
            "Cache accessor store round trip in seconds",
            ["operation"],
            buckets=ACCESSOR_BUCKETS,
            registry=self.registry
        )

        # Harness metrics
        self._metrics["token_cache_operation_duration_seconds"] = Histogram(
            "token_cache_operation_duration_seconds",
            "Per-token client call duration in seconds",
            ["phase"],
            buckets=ACCESSOR_BUCKETS,
            registry=self.registry
        )

        self._metrics["token_cache_phase_duration_seconds"] = Gauge(
            "token_cache_phase_duration_seconds",
            "Wall-clock duration of a benchmark phase in seconds",
            ["phase"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def record_accessor_operation(self, operation: str, result: str, duration: float):
        """Record a cache accessor call."""
        with self._lock:
            self._metrics["token_cache_accessor_operations_total"].labels(
                operation=operation,
                result=result
            ).inc()

            self._metrics["token_cache_accessor_duration_seconds"].labels(
                operation=operation
            ).observe(duration)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

    def sample_value(self, metric_name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read a sample back from the registry."""
        return self.registry.get_sample_value(metric_name, labels or {})


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for the harness."""
    return MetricsCollector(service_name, registry)

