"""
Rate Limiting Middleware

Token bucket rate limiting in Redis. Vendor dashboards are limited per
vendor (with per-vendor overrides); everything else (login, customer
and admin routes) is limited per client IP.

PRODUCTION NOTES:
- Redis down means no rate limiting (fail open)
- The Lipila webhook is excluded so gateway retries are never throttled
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from typing import Optional, Tuple
import redis
import time
import logging
from shiteni.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

EXCLUDED_PATHS = (
    "/docs",
    "/redoc",
    "/openapi.json",
    "/health",
    "/api/v1/webhooks",
)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Token bucket rate limiter per vendor (or per client IP).
    """

    def __init__(self, app, redis_client: Optional[redis.Redis] = None):
        super().__init__(app)
        self.enabled = settings.RATE_LIMIT_ENABLED
        self.redis_available = False
        self.redis_client = redis_client

        if not self.enabled:
            logger.info("Rate limiting disabled by configuration")
            return

        if self.redis_client is None:
            self.redis_client = redis.from_url(
                settings.REDIS_URL,
                decode_responses=True,
                socket_connect_timeout=5
            )
        try:
            self.redis_client.ping()
            self.redis_available = True
            logger.info("Redis connection established for rate limiting")
        except (redis.ConnectionError, redis.TimeoutError) as e:
            logger.error(f"Redis connection failed: {e}")

    async def dispatch(self, request: Request, call_next):
        """Apply rate limiting per vendor or client."""

        if not self.enabled or request.url.path.startswith(EXCLUDED_PATHS):
            return await call_next(request)

        if not self.redis_available:
            logger.debug("Rate limiting skipped - Redis unavailable")
            return await call_next(request)

        vendor = getattr(request.state, "vendor", None)
        allowed, retry_after = self._check_rate_limit(
            self._bucket_key(request, vendor),
            (vendor.rate_limit_per_minute if vendor else None) or settings.RATE_LIMIT_PER_MINUTE,
            (vendor.rate_limit_burst if vendor else None) or settings.RATE_LIMIT_BURST,
        )

        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {self._bucket_key(request, vendor)}",
                extra={"vendor_id": vendor.id if vendor else None}
            )
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Rate limit exceeded",
                    "retry_after": retry_after
                },
                headers={"Retry-After": str(retry_after)}
            )

        return await call_next(request)

    @staticmethod
    def _bucket_key(request: Request, vendor) -> str:
        if vendor is not None:
            return f"rate_limit:vendor:{vendor.id}"
        client_host = request.client.host if request.client else "unknown"
        return f"rate_limit:ip:{client_host}"

    def _check_rate_limit(self, key: str, rate_limit: int, burst: int) -> Tuple[bool, int]:
        """
        Check if request is allowed under rate limit.

        Returns: (allowed, retry_after_seconds)

        Token bucket:
        - Bucket holds at most `burst` tokens
        - Tokens refill at rate_limit per minute
        - Each request consumes one token
        """
        key_timestamp = f"{key}:timestamp"

        try:
            current_tokens = self.redis_client.get(key)
            last_update = self.redis_client.get(key_timestamp)

            now = time.time()

            if current_tokens is None:
                # First request - initialize bucket
                self.redis_client.setex(key, 60, burst - 1)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            current_tokens = float(current_tokens)
            last_update = float(last_update) if last_update else now

            elapsed = now - last_update
            tokens_to_add = elapsed * (rate_limit / 60.0)
            new_tokens = min(burst, current_tokens + tokens_to_add)

            if new_tokens >= 1:
                new_tokens -= 1
                self.redis_client.setex(key, 60, new_tokens)
                self.redis_client.setex(key_timestamp, 60, now)
                return True, 0

            tokens_needed = 1 - new_tokens
            retry_after = int((tokens_needed / (rate_limit / 60.0)) + 1)
            return False, retry_after

        except redis.RedisError as e:
            logger.error(f"Redis error in rate limiting: {e}")
            return True, 0
