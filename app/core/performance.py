"""
Timing for service operations and HTTP requests.

Both feed Prometheus histograms; operations also log their duration so
a slow upload can be traced back to its organization.
"""

import time
from typing import Any, Callable

from fastapi import Request

from app.config import settings
from app.core.logging_config import get_logger
from app.core.metrics import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
    operation_duration_seconds,
)

logger = get_logger(__name__)


class PerformanceMonitor:
    """
    Time a block of service work.

    Usage:
        async with PerformanceMonitor("file_upload", organization_id=org_id):
            ...
    """

    def __init__(self, operation_name: str, **tags: Any):
        self.operation_name = operation_name
        self.tags = tags
        self._started: float | None = None
        self.duration_ms: float | None = None

    async def __aenter__(self) -> "PerformanceMonitor":
        self._started = time.perf_counter()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.perf_counter() - self._started
        self.duration_ms = round(elapsed * 1000, 2)
        outcome = "ok" if exc_type is None else "error"
        operation_duration_seconds.labels(
            operation=self.operation_name, outcome=outcome
        ).observe(elapsed)

        if exc_type is not None:
            # Domain errors (quota, not found) are expected; keep them quiet
            logger.info(
                "operation_failed",
                operation=self.operation_name,
                duration_ms=self.duration_ms,
                error_type=exc_type.__name__,
                **self.tags,
            )
        elif self.duration_ms > settings.slow_request_threshold_ms:
            logger.warning(
                "slow_operation",
                operation=self.operation_name,
                duration_ms=self.duration_ms,
                **self.tags,
            )
        else:
            logger.debug(
                "operation_completed",
                operation=self.operation_name,
                duration_ms=self.duration_ms,
                **self.tags,
            )


def _endpoint_label(request: Request) -> str:
    # Route template, not the raw path: file and folder ids would explode cardinality
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


async def track_http_metrics(request: Request, call_next: Callable):
    """Count requests and observe their latency per route template."""
    method = request.method
    http_requests_in_progress.labels(method=method, endpoint="all").inc()

    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        endpoint = _endpoint_label(request)
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
            time.perf_counter() - started
        )
        http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=status_code
        ).inc()
        http_requests_in_progress.labels(method=method, endpoint="all").dec()
