"""Prometheus metrics for wizard commits, validation and uploads."""

from prometheus_client import Counter, Histogram

# Commit metrics
wizard_commit_latency_ms = Histogram(
    "wizard_commit_latency_ms",
    "Step commit latency in milliseconds",
    ["step", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 15000],
)

wizard_commit_errors_total = Counter(
    "wizard_commit_errors_total",
    "Total step commit errors",
    ["step", "reason"],
)

wizard_validation_failures_total = Counter(
    "wizard_validation_failures_total",
    "Total step validation failures",
    ["step", "code"],
)

media_uploads_total = Counter(
    "media_uploads_total",
    "Total image uploads by outcome",
    ["outcome"],
)


class PrometheusCommitMetrics:
    """Prometheus-based commit metrics implementation."""

    def record_latency(self, step: str, outcome: str, latency_ms: float) -> None:
        """Record commit latency."""
        wizard_commit_latency_ms.labels(step=step, outcome=outcome).observe(latency_ms)

    def inc_error(self, step: str, reason: str) -> None:
        """Increment error counter."""
        wizard_commit_errors_total.labels(step=step, reason=reason).inc()


def record_validation_failure(step: str, code: str) -> None:
    """Count a blocked step."""
    wizard_validation_failures_total.labels(step=step, code=code).inc()


def record_upload(outcome: str) -> None:
    """Count one image upload."""
    media_uploads_total.labels(outcome=outcome).inc()
