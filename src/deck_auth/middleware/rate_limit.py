"""Rate limiting middleware — Redis-based fixed window per minute.

Learn: Each IP gets a counter key like "deck:rl:{ip}:{bucket}:{minute}".
Token verification, signup, account creation and password reset share
a stricter bucket, since those are the endpoints worth brute-forcing.

Skips rate limiting entirely if Redis is unavailable (e.g., in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from deck_auth.cache import get_redis
from deck_auth.errors import ErrorKind, status_for

logger = structlog.get_logger()

AUTH_SUFFIXES = ("/verify-token", "/signup", "/create-account", "/change-pass")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_auth = request.url.path.endswith(AUTH_SUFFIXES)
        rpm = self.auth_rpm if is_auth else self.default_rpm

        window = int(time.time() // 60)
        bucket = "auth" if is_auth else "api"
        key = f"deck:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            # Redis error — don't block the request
            logger.warning("deck.rate_limit_unavailable", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("deck.rate_limited", client_ip=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=status_for(ErrorKind.RATE_LIMITED),
                content={"success": False, "message": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
