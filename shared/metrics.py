"""
Prometheus metrics for the Media Lifecycle API.
"""

from typing import Dict, List, Optional, Tuple
import threading

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


SERVICE_VERSION = "1.0.0"

# name -> (help text, label names)
COUNTERS: Dict[str, Tuple[str, List[str]]] = {
    "http_requests_total": ("HTTP requests by route and status", ["method", "endpoint", "status_code"]),
    "health_check_total": ("Health check outcomes", ["status"]),
    "token_validations_total": ("Bearer token verifications by outcome", ["status"]),
    "jwks_fetch_total": ("Key set downloads from the discovery endpoint", ["status"]),
    "status_cache_requests_total": ("Status cache hits, misses and backend errors", ["result"]),
}

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class MetricsCollector:
    """Metrics of one service instance.

    Each collector owns its registry, so several apps in one process (tests
    build one per case) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()

        self._info = Info("service", "Service build information", registry=self.registry)
        self._info.info({"service": service_name, "version": SERVICE_VERSION})

        self._counters: Dict[str, Counter] = {
            name: Counter(name, help_text, labels, registry=self.registry)
            for name, (help_text, labels) in COUNTERS.items()
        }
        self._latency = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency by route",
            ["method", "endpoint"],
            buckets=LATENCY_BUCKETS,
            registry=self.registry
        )

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Count a handled request and observe its latency."""
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=str(status_code))
        self._latency.labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a known counter; unknown names are ignored."""
        counter = self._counters.get(metric_name)
        if counter is None:
            return
        with self._lock:
            counter.labels(**labels).inc()

    def get_counter_value(self, metric_name: str, **labels) -> float:
        """Current value of a labelled counter (0 when never incremented)."""
        return self.registry.get_sample_value(metric_name, labels) or 0.0

    def render(self) -> bytes:
        """Registry contents in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
