"""Redis-backed rate limiter."""
import logging
import time
from typing import Tuple
import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)

UPLOAD_PATHS = ("/zones/upload",)


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Rate limiter using Redis sorted sets as sliding windows.

    Two tiers:
    - Per IP: every request counts against a generous per-minute limit
    - Per IP and upload path: CSV imports get a much tighter limit

    Requests are let through when Redis is unavailable.
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 50000,
        requests_per_minute_upload: int = 30,
        window_seconds: int = 60
    ):
        """
        Initialize Redis-backed rate limiter.

        Args:
            app: FastAPI application
            redis_client: Redis connection
            requests_per_minute_ip: Max requests per IP per minute
            requests_per_minute_upload: Max CSV uploads per IP per minute
            window_seconds: Sliding window size in seconds
        """
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_upload = requests_per_minute_upload
        self.window_seconds = window_seconds

    def _check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int
    ) -> Tuple[bool, int]:
        """
        Check rate limit using Redis sorted set (sliding window).

        Algorithm:
        1. Remove timestamps older than window
        2. Count requests in window
        3. Add current request
        4. Set TTL

        Args:
            key: Redis key for this limit (e.g., "rate:ip:192.168.1.1")
            limit: Maximum requests allowed
            window: Time window in seconds

        Returns:
            Tuple of (is_allowed, current_count)
        """
        try:
            current_time = time.time()
            window_start = current_time - window

            pipe = self.redis.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {str(current_time): current_time})
            pipe.expire(key, window + 1)
            results = pipe.execute()

            # Count before the current request was added
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error(f"Redis rate limit error: {e}")
            # Fail open
            return True, 0

    def _reject(self, limit_type: str, client_ip: str, limit: int) -> JSONResponse:
        rate_limit_exceeded_counter.add(1, {"limit_type": limit_type})
        logger.warning("Rate limit exceeded", extra={
            "limit_type": limit_type,
            "client_ip": client_ip,
            "limit": limit
        })
        return JSONResponse(
            status_code=429,
            content={
                "success": False,
                "error": f"Rate limit exceeded. Maximum {limit} requests per minute."
            },
            headers={"Retry-After": str(self.window_seconds)}
        )

    async def dispatch(self, request: Request, call_next):
        """
        Process request with Redis-backed rate limiting.

        Returns:
            Response, or 429 if rate limited
        """
        client_ip = request.client.host if request.client else "unknown"
        if "x-forwarded-for" in request.headers:
            client_ip = request.headers["x-forwarded-for"].split(",")[0].strip()

        ip_allowed, _ = self._check_rate_limit(
            f"rate:ip:{client_ip}",
            self.requests_per_minute_ip,
            self.window_seconds
        )
        if not ip_allowed:
            return self._reject("ip", client_ip, self.requests_per_minute_ip)

        if request.method == "POST" and request.url.path in UPLOAD_PATHS:
            upload_allowed, _ = self._check_rate_limit(
                f"rate:upload:{client_ip}",
                self.requests_per_minute_upload,
                self.window_seconds
            )
            if not upload_allowed:
                return self._reject("upload", client_ip, self.requests_per_minute_upload)

        response = await call_next(request)

        self._detect_suspicious_activity(response.status_code, client_ip)

        return response

    def _record(self, key: str, window: int) -> int:
        current_time = time.time()
        self.redis.zadd(key, {str(current_time): current_time})
        self.redis.expire(key, window + 1)
        return self.redis.zcount(key, current_time - window, current_time)

    def _detect_suspicious_activity(self, status_code: int, client_ip: str) -> None:
        """
        Flag clients that keep getting errors back.

        Patterns:
        - Endpoint scanning: 10+ 404s in 5 minutes
        - Abuse: 20+ 4xx errors in 5 minutes
        """
        if not 400 <= status_code < 500:
            return

        window = 300
        try:
            if status_code == 404:
                count = self._record(f"suspicious:404:{client_ip}", window)
                if count >= 10:
                    suspicious_activity_counter.add(1, {"type": "endpoint_scanning"})
                    logger.warning("Suspicious activity: endpoint scanning", extra={
                        "client_ip": client_ip,
                        "count": count
                    })

            count = self._record(f"suspicious:4xx:{client_ip}", window)
            if count >= 20:
                suspicious_activity_counter.add(1, {"type": "abuse"})
                logger.warning("Suspicious activity: repeated client errors", extra={
                    "client_ip": client_ip,
                    "count": count
                })

        except redis.RedisError as e:
            logger.error(f"Error detecting suspicious activity: {e}")
