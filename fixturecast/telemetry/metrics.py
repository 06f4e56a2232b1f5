"""
Prometheus metrics for the prediction pipeline.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- provider:   "api_football", "gemini", "deepseek"
- endpoint:   "fixtures", "fixtures/statistics"
- status:     "ok", "error", "rate_limited", ...
- kind:       ProviderErrorKind values
- tier:       "primary", "alternate", "cross_provider"
- job:        "predictions", "scores"

Match ids, team names and dates must never be used as labels; log them instead.
"""

import time
import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# FIXTURE PROVIDER METRICS
# =============================================================================

fixture_requests_total = Counter(
    "fixturecast_fixture_requests_total",
    "Total requests to the fixture provider",
    ["endpoint", "status"],
)

fixture_latency_ms = Histogram(
    "fixturecast_fixture_latency_ms",
    "Fixture provider request latency in milliseconds",
    ["endpoint"],
    buckets=[50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000],
)

# =============================================================================
# PREDICTION PROVIDER METRICS
# =============================================================================

llm_requests_total = Counter(
    "fixturecast_llm_requests_total",
    "Total prediction provider calls",
    ["provider", "status"],
)

llm_latency_ms = Histogram(
    "fixturecast_llm_latency_ms",
    "Prediction provider latency in milliseconds",
    ["provider"],
    buckets=[250, 500, 1000, 2500, 5000, 10000, 20000, 60000],
)

llm_retries_total = Counter(
    "fixturecast_llm_retries_total",
    "Retried prediction attempts by error kind",
    ["provider", "kind"],
)

predictions_generated_total = Counter(
    "fixturecast_predictions_generated_total",
    "Predictions generated by tier",
    ["provider", "tier"],
)

prediction_failures_total = Counter(
    "fixturecast_prediction_failures_total",
    "Matches whose prediction failed after every tier",
    ["kind"],
)

# =============================================================================
# WAVE CONTROLLER METRICS
# =============================================================================

wave_concurrency = Gauge(
    "fixturecast_wave_concurrency",
    "Current wave concurrency",
)

wave_delay_ms = Gauge(
    "fixturecast_wave_delay_ms",
    "Current inter-wave delay in milliseconds",
)

circuit_breaks_total = Counter(
    "fixturecast_circuit_breaks_total",
    "Circuit breaker trips caused by consecutive rate limiting",
)

# =============================================================================
# ACCURACY & JOB METRICS
# =============================================================================

accuracy_overall_pct = Gauge(
    "fixturecast_accuracy_overall_pct",
    "Overall weighted accuracy of the most recently scored day",
)

accuracy_brier = Gauge(
    "fixturecast_accuracy_brier",
    "Mean multi-class Brier score of the most recently scored day",
)

job_runs_total = Counter(
    "fixturecast_job_runs_total",
    "Scheduled job executions",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "fixturecast_job_duration_ms",
    "Scheduled job duration in milliseconds",
    ["job"],
    buckets=[1000, 5000, 15000, 60000, 180000, 600000, 1800000],
)

job_last_success_timestamp = Gauge(
    "fixturecast_job_last_success_timestamp",
    "Unix time of the last successful job run",
    ["job"],
)


# =============================================================================
# HELPERS
# =============================================================================


def record_fixture_request(endpoint: str, status: str, latency_ms: float) -> None:
    """Record a fixture provider request."""
    try:
        fixture_requests_total.labels(endpoint=endpoint, status=status).inc()
        fixture_latency_ms.labels(endpoint=endpoint).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record fixture request metric: {e}")


def record_llm_request(provider: str, status: str, latency_ms: float) -> None:
    """
    Record a prediction provider call.

    Args:
        provider: "gemini" or "deepseek"
        status: "ok" or a ProviderErrorKind value
        latency_ms: End-to-end latency in milliseconds
    """
    try:
        llm_requests_total.labels(provider=provider, status=status).inc()
        if latency_ms > 0:
            llm_latency_ms.labels(provider=provider).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record LLM request metric: {e}")


def record_llm_retry(provider: str, kind: str) -> None:
    try:
        llm_retries_total.labels(provider=provider, kind=kind).inc()
    except Exception as e:
        logger.warning(f"Failed to record LLM retry metric: {e}")


def record_prediction_generated(provider: str, tier: str) -> None:
    try:
        predictions_generated_total.labels(provider=provider, tier=tier).inc()
    except Exception as e:
        logger.warning(f"Failed to record prediction metric: {e}")


def record_prediction_failure(kind: str) -> None:
    try:
        prediction_failures_total.labels(kind=kind).inc()
    except Exception as e:
        logger.warning(f"Failed to record prediction failure metric: {e}")


def set_wave_state(concurrency: int, delay_ms: float) -> None:
    """Update wave controller gauges."""
    try:
        wave_concurrency.set(concurrency)
        wave_delay_ms.set(delay_ms)
    except Exception as e:
        logger.warning(f"Failed to set wave state metric: {e}")


def record_circuit_break() -> None:
    try:
        circuit_breaks_total.inc()
    except Exception as e:
        logger.warning(f"Failed to record circuit break metric: {e}")


def set_accuracy_metrics(overall_pct, brier) -> None:
    """Publish the latest day's accuracy. None values are left untouched."""
    try:
        if overall_pct is not None:
            accuracy_overall_pct.set(overall_pct)
        if brier is not None:
            accuracy_brier.set(brier)
    except Exception as e:
        logger.warning(f"Failed to set accuracy metrics: {e}")


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (predictions, scores)
        status: "ok" or "error"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "ok":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
