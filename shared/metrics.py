"""
Shared metrics configuration for the admin console data layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for a console process."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so isolated consoles never collide
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache and synchronization metrics."""
        self._metrics["cache_fetches_total"] = Counter(
            "cache_fetches_total",
            "Total cache fetches by outcome",
            ["endpoint", "result"],
            registry=self.registry
        )

        self._metrics["cache_dedup_total"] = Counter(
            "cache_dedup_total",
            "Fetches collapsed into an in-flight request",
            ["endpoint"],
            registry=self.registry
        )

        self._metrics["cache_invalidations_total"] = Counter(
            "cache_invalidations_total",
            "Tag invalidations fired by successful mutations",
            ["tag"],
            registry=self.registry
        )

        self._metrics["cache_evictions_total"] = Counter(
            "cache_evictions_total",
            "Cache entries evicted after retention",
            registry=self.registry
        )

        self._metrics["mutations_total"] = Counter(
            "mutations_total",
            "Total mutations by outcome",
            ["endpoint", "result"],
            registry=self.registry
        )

        self._metrics["cache_entries"] = Gauge(
            "cache_entries",
            "Number of live cache entries",
            registry=self.registry
        )

        self._metrics["fetch_duration_seconds"] = Histogram(
            "fetch_duration_seconds",
            "Fetch duration in seconds",
            ["endpoint"],
            registry=self.registry
        )

    def sample(self, metric_name: str, **labels) -> float:
        """Read the current value of a metric sample (0.0 when absent)."""
        value = self.registry.get_sample_value(metric_name, labels or None)
        return value or 0.0

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        if labels:
            metric = metric.labels(**labels)
        metric.observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a console process."""
    return MetricsCollector(service_name, registry)
