"""Request rate limiting (slowapi).

A global limit covers the whole API; auth endpoints carry a tighter
per-route limit via ``@limiter.limit(settings.AUTH_RATE_LIMIT)``.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from taskhub.core.config import settings

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.API_RATE_LIMIT],
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "message": f"Too many requests, please try again later ({exc.detail})",
        },
    )
