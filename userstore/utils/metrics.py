"""Prometheus metrics for user repository operations."""

from prometheus_client import Counter, Histogram

user_repo_latency_ms = Histogram(
    "user_repo_latency_ms",
    "User repository operation latency in milliseconds",
    ["operation", "outcome"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500],
)

user_repo_errors_total = Counter(
    "user_repo_errors_total",
    "Total user repository errors",
    ["operation", "code"],
)


class PrometheusRepoMetrics:
    """Prometheus-based repository metrics implementation."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record operation latency."""
        user_repo_latency_ms.labels(operation=operation, outcome=outcome).observe(latency_ms)

    def inc_error(self, operation: str, code: str) -> None:
        """Increment error counter."""
        user_repo_errors_total.labels(operation=operation, code=code).inc()
