"""
Fixed-window rate limiting backed by Redis.

Fails open: if Redis is unavailable requests are let through.
"""

from dataclasses import dataclass

from fastapi import HTTPException, Request, status

from app.config import settings
from app.core.cache import cache_manager
from app.core.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit rule."""

    requests: int     # Max requests
    window: int       # Time window in seconds
    key_prefix: str   # Key prefix for namespacing


RATE_LIMITS = {
    "default": RateLimitConfig(requests=settings.rate_limit_per_minute, window=60, key_prefix="rl"),
    "auth": RateLimitConfig(requests=settings.rate_limit_auth_per_minute, window=60, key_prefix="rl_auth"),
    "upload": RateLimitConfig(requests=settings.rate_limit_per_minute, window=60, key_prefix="rl_upload"),
}


async def check_rate_limit(
    identifier: str,
    limit_type: str = "default",
) -> dict:
    """
    Count a request for ``identifier`` in the current window.

    Returns:
        Dict with limit, remaining and reset

    Raises:
        HTTPException: 429 if rate limit exceeded
    """
    config = RATE_LIMITS.get(limit_type, RATE_LIMITS["default"])
    unlimited = {"limit": config.requests, "remaining": config.requests, "reset": 0}

    if not settings.rate_limit_enabled or not cache_manager.available:
        return unlimited

    key = f"{identifier}:{limit_type}"

    try:
        current_count, ttl = await cache_manager.hit_window(config.key_prefix, key, config.window)
    except Exception as e:
        logger.error("rate_limit_check_failed", error=str(e))
        return unlimited

    if current_count > config.requests:
        logger.warning(
            "rate_limit_exceeded",
            identifier=identifier,
            limit_type=limit_type,
            current=current_count,
            limit=config.requests,
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests. Please try again later.",
            headers={
                "X-RateLimit-Limit": str(config.requests),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(ttl),
                "Retry-After": str(max(ttl, 0)),
            },
        )

    return {
        "limit": config.requests,
        "remaining": max(0, config.requests - current_count),
        "reset": ttl,
    }


def rate_limit(limit_type: str = "default", by: str = "user"):
    """
    Rate limiting dependency factory.

    Args:
        limit_type: Rate limit tier (default, auth, upload)
        by: How to identify the requester (user, ip)

    Usage:
        @router.post("/login", dependencies=[Depends(rate_limit("auth", by="ip"))])
        async def login(...):
            ...
    """
    async def dependency(request: Request) -> dict:
        client_ip = getattr(request.state, "client_ip", None) or "unknown"
        if by == "user":
            identifier = getattr(request.state, "user_id", None) or client_ip
        else:
            identifier = client_ip

        return await check_rate_limit(identifier, limit_type)

    return dependency
