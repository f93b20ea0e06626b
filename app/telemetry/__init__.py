"""Telemetry helpers and metrics."""

from .metrics import (
    ERROR_COUNTER,
    FOLDER_ALLOCATIONS,
    RECORDINGS_PROCESSED,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SESSION_TRANSITIONS,
    TRANSCODE_LATENCY,
    increment_folder_allocations,
    observe_request,
    observe_transcode,
    record_processing,
    record_transition,
)

__all__ = [
    "ERROR_COUNTER",
    "FOLDER_ALLOCATIONS",
    "RECORDINGS_PROCESSED",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SESSION_TRANSITIONS",
    "TRANSCODE_LATENCY",
    "increment_folder_allocations",
    "observe_request",
    "observe_transcode",
    "record_processing",
    "record_transition",
]
