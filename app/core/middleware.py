"""
Request context middleware.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.core.context import clear_request_context, set_request_context
from app.core.logging_config import get_logger

logger = get_logger(__name__)

# Probe and scrape traffic is logged at debug level
QUIET_PATHS = ("/health", "/metrics")


def client_ip_for(request: Request) -> str | None:
    """
    Caller address recorded in audit entries and used for IP rate limits.

    With ``trust_forwarded_for`` the first X-Forwarded-For hop wins.
    """
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    return request.client.host if request.client else None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlates log lines and audit entries with the request.

    An incoming X-Request-ID is kept, otherwise one is generated; both
    it and the processing time are echoed as response headers. The
    authenticated user and organization are filled in later by the auth
    dependency.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        client_ip = client_ip_for(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip
        request.state.user_id = None
        request.state.organization_id = None
        set_request_context(request_id=request_id, client_ip=client_ip)

        try:
            return await self._timed(request, call_next, request_id)
        finally:
            clear_request_context()

    async def _timed(self, request: Request, call_next: Callable, request_id: str) -> Response:
        quiet = request.url.path.startswith(QUIET_PATHS)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                error=str(e),
                exc_info=True,
            )
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        if duration_ms > settings.slow_request_threshold_ms:
            log = logger.warning
        else:
            log = logger.debug if quiet else logger.info
        log(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            user_id=request.state.user_id,
            organization_id=request.state.organization_id,
        )
        return response
