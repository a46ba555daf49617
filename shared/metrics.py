"""
Prometheus metrics for the Tenant Billing Rules service.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Info


# name -> (description, label names)
HTTP_COUNTERS: Dict[str, Tuple[str, Sequence[str]]] = {
    "http_requests_total": ("Total HTTP requests", ("method", "endpoint", "status_code")),
    "health_check_total": ("Total health check requests", ("status",)),
    "errors_total": ("Total errors", ("error_type", "service")),
}

BILLING_COUNTERS: Dict[str, Tuple[str, Sequence[str]]] = {
    "billing_calculations_total": ("Total billing calculations", ("status",)),
    "rule_trigger_evaluations_total": ("Total rule trigger evaluations", ("event", "triggered")),
    "rule_executions_total": ("Total rule action executions", ("action", "status")),
    "rule_execution_log_failures_total": ("Execution history writes that failed", ("action",)),
    "rule_tests_total": ("Total rule simulations", ("outcome",)),
}

HISTOGRAMS: Dict[str, Tuple[str, Sequence[str]]] = {
    "http_request_duration_seconds": ("HTTP request duration in seconds", ("method", "endpoint")),
    "billing_calculation_duration_seconds": ("Billing calculation duration in seconds", ()),
}


class MetricsCollector:
    """Metrics for one service, registered on the collector's own registry."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        for name, (description, labels) in {**HTTP_COUNTERS, **BILLING_COUNTERS}.items():
            self._metrics[name] = Counter(name, description, labels, registry=self.registry)
        for name, (description, labels) in HISTOGRAMS.items():
            self._metrics[name] = Histogram(name, description, labels, registry=self.registry)

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        self._metrics["errors_total"].labels(error_type=error_type, service=service or self.service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric; unknown names are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        (metric.labels(**labels) if labels else metric).inc()

    def observe(self, metric_name: str, value: float, **labels):
        """Record a histogram observation; unknown names are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is None:
            return
        (metric.labels(**labels) if labels else metric).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
