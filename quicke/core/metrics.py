"""Prometheus metrics for the fan-out core."""

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest

# --- Metrics ---

APP_INFO = Info("quicke", "Quicke fan-out core info")
APP_INFO.info({"version": "0.1.0", "name": "quicke"})

DISPATCH_OUTCOMES = Counter(
    "dispatch_outcomes_total",
    "Terminal dispatcher job outcomes",
    ["status"],
)

DISPATCH_RETRIES = Counter(
    "dispatch_retries_total",
    "Dispatcher job retries scheduled",
)

DISPATCH_ACTIVE = Gauge(
    "dispatch_active_jobs",
    "Dispatcher jobs currently executing",
)

PROVIDER_LATENCY = Histogram(
    "provider_request_duration_seconds",
    "Provider call duration in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120],
)


def metrics_payload() -> bytes:
    """Render all registered metrics in the Prometheus text format."""
    return generate_latest()
