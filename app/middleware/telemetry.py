"""Prometheus instrumentation for HTTP requests."""

from __future__ import annotations

import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.telemetry import observe_request

UNINSTRUMENTED_PATHS = frozenset({"/metrics", "/health"})


class TelemetryMiddleware(BaseHTTPMiddleware):
    """Record count and latency per route template, skipping the health and metrics endpoints."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        if request.url.path in UNINSTRUMENTED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            observe_request(
                request.method,
                self._route_template(request),
                status_code,
                time.perf_counter() - start_time,
            )

    @staticmethod
    def _route_template(request: Request) -> str:
        # Unmatched paths collapse into one label to bound cardinality.
        route = request.scope.get("route")
        return getattr(route, "path", None) or "unmatched"
