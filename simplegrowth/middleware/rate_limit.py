"""Rate limiting middleware using slowapi.

Limits are applied per client IP. Storage defaults to in-process memory; point
``RATE_LIMIT_STORAGE_URI`` at Redis to share counters between workers.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from simplegrowth.config import settings

logger = logging.getLogger(__name__)

# Named limits, applied with @limiter.limit(LIMITS["login"])
LIMITS = {
    "auth": settings.RATE_LIMIT_AUTH,
    "login": settings.RATE_LIMIT_LOGIN,
    "signup": settings.RATE_LIMIT_SIGNUP,
    "password_reset": settings.RATE_LIMIT_PASSWORD_RESET,
    "api": settings.RATE_LIMIT_DEFAULT,
    "ai": settings.RATE_LIMIT_AI,
    "webhook": settings.RATE_LIMIT_WEBHOOK,
}

DEFAULT_RETRY_AFTER = 60


def get_client_ip(request: Request) -> str:
    """Client IP, honouring reverse-proxy headers."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    if request.client and request.client.host:
        return request.client.host
    return "anonymous"


limiter = Limiter(
    key_func=get_client_ip,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    enabled=settings.RATE_LIMIT_ENABLED,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    limit = getattr(exc, "limit", None)
    item = getattr(limit, "limit", None)
    if item is None:
        return DEFAULT_RETRY_AFTER
    return int(item.get_expiry())


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return a JSON 429 with a Retry-After header."""
    retry_after = _retry_after_seconds(exc)
    logger.warning(f"Rate limit exceeded for {get_client_ip(request)} on {request.url.path}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests",
            "message": "Please wait before making another request",
            "retry_after": retry_after,
        },
        headers={"Retry-After": str(retry_after)},
    )


def setup_rate_limiting(app):
    """Configure rate limiting for the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)
