"""Prometheus metrics definitions."""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

http_request_duration = Histogram(
    "http_request_duration_seconds",
    "Duration of HTTP requests in seconds",
    labelnames=["method", "endpoint", "status_code"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "endpoint", "status_code"],
)

flows_started_total = Counter(
    "lessonflow_flows_started_total",
    "Lesson flows started",
    labelnames=["edit_mode"],
)

stage_transitions_total = Counter(
    "lessonflow_stage_transitions_total",
    "Lesson flow stage transitions",
    labelnames=["from_stage", "to_stage"],
)

validation_failures_total = Counter(
    "lessonflow_validation_failures_total",
    "Actions blocked by validation",
    labelnames=["stage"],
)

backend_requests_total = Counter(
    "lessonflow_backend_requests_total",
    "Calls to the hosted backend",
    labelnames=["operation", "outcome"],
)

backend_request_duration = Histogram(
    "lessonflow_backend_request_duration_seconds",
    "Duration of hosted backend calls in seconds",
    labelnames=["operation"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

reflections_completed_total = Counter(
    "lessonflow_reflections_completed_total",
    "Reflections saved, by save kind",
    labelnames=["kind"],
)


def get_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST
