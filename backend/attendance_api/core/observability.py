"""
Prometheus instrumentation for the attendance API.

This module sets up:
- HTTP request/exception counters and latency histogram
- Domain counters for the sync pipeline
- The /metrics endpoint
"""

from __future__ import annotations

import re
import time

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

# Prometheus metrics
http_requests_total = Counter(
    "http_server_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

http_request_duration_seconds = Histogram(
    "http_server_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

http_exceptions_total = Counter(
    "http_server_exceptions_total",
    "Total unhandled exceptions",
    ["method", "path", "exception_type"]
)

attendance_events_ingested_total = Counter(
    "attendance_events_ingested_total",
    "Events received through sync, by outcome",
    ["result"]
)

attendance_sessions_created_total = Counter(
    "attendance_sessions_created_total",
    "Sessions created by the matcher",
    ["kind"]
)

attendance_midnight_closures_total = Counter(
    "attendance_midnight_closures_total",
    "Previous-day sessions closed by an OUT on the following date"
)

attendance_rejected_checkins_total = Counter(
    "attendance_rejected_checkins_total",
    "IN events refused because a previous-day session was still open"
)

attendance_sync_retries_total = Counter(
    "attendance_sync_retries_total",
    "Sync pipeline re-runs after a session number conflict"
)

attendance_sync_failures_total = Counter(
    "attendance_sync_failures_total",
    "Sync batches that did not commit",
    ["reason"]
)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Middleware to collect Prometheus metrics for all requests."""

    async def dispatch(self, request: Request, call_next) -> Response:
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request.url.path)

        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            http_exceptions_total.labels(
                method=method,
                path=path,
                exception_type=type(e).__name__
            ).inc()
            http_requests_total.labels(method=method, path=path, status=500).inc()
            http_request_duration_seconds.labels(method=method, path=path).observe(duration)
            raise

        duration = time.perf_counter() - start_time
        http_requests_total.labels(
            method=method,
            path=path,
            status=response.status_code
        ).inc()
        http_request_duration_seconds.labels(
            method=method,
            path=path
        ).observe(duration)
        return response

    def _normalize_path(self, path: str) -> str:
        """Replace numeric IDs in path with placeholder to reduce cardinality."""
        normalized = re.sub(r'/\d+', '/{id}', path)
        parts = normalized.split('/')[:5]
        return '/'.join(parts)


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint handler."""
    return PlainTextResponse(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )
