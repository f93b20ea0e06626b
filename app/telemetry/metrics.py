"""Prometheus metrics definitions and helpers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests processed",
    ("method", "route", "status"),
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ("method", "route"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

ERROR_COUNTER = Counter(
    "app_internal_errors_total",
    "Number of requests ending in internal server error responses",
    ("method", "route"),
)

SESSION_TRANSITIONS = Counter(
    "task_session_transitions_total",
    "Task session state changes applied",
    ("action", "to_status"),
)

RECORDINGS_PROCESSED = Counter(
    "recordings_processed_total",
    "Recording processing attempts by outcome",
    ("outcome",),
)

TRANSCODE_LATENCY = Histogram(
    "transcode_duration_seconds",
    "Wall time spent in the transcoder per recording",
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

FOLDER_ALLOCATIONS = Counter(
    "folder_allocations_total",
    "Archival folder numbers handed out by the allocator",
)


def observe_request(
    method: str,
    route: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record metrics for a completed HTTP request."""

    safe_route = route or "unknown"
    safe_method = method or "UNKNOWN"
    observed_duration = duration_seconds if duration_seconds >= 0 else 0

    REQUEST_COUNT.labels(
        method=safe_method,
        route=safe_route,
        status=str(status_code),
    ).inc()
    REQUEST_LATENCY.labels(method=safe_method, route=safe_route).observe(
        observed_duration
    )

    if status_code >= 500:
        ERROR_COUNTER.labels(method=safe_method, route=safe_route).inc()


def record_transition(action: str, to_status: str) -> None:
    SESSION_TRANSITIONS.labels(action=action, to_status=to_status).inc()


def record_processing(outcome: str) -> None:
    """Count a processing attempt; outcome is processed, reused or failed."""

    RECORDINGS_PROCESSED.labels(outcome=outcome).inc()


def observe_transcode(duration_seconds: float) -> None:
    TRANSCODE_LATENCY.observe(max(duration_seconds, 0.0))


def increment_folder_allocations() -> None:
    FOLDER_ALLOCATIONS.inc()
