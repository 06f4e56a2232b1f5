"""Observability: Prometheus metrics and Sentry error tracking."""

from fixturecast.telemetry.metrics import (
    get_metrics_text,
    record_circuit_break,
    record_fixture_request,
    record_job_run,
    record_llm_request,
    record_llm_retry,
    record_prediction_failure,
    record_prediction_generated,
    set_accuracy_metrics,
    set_wave_state,
)
from fixturecast.telemetry.sentry import init_sentry, sentry_job_context

__all__ = [
    "get_metrics_text",
    "record_circuit_break",
    "record_fixture_request",
    "record_job_run",
    "record_llm_request",
    "record_llm_retry",
    "record_prediction_failure",
    "record_prediction_generated",
    "set_accuracy_metrics",
    "set_wave_state",
    "init_sentry",
    "sentry_job_context",
]
