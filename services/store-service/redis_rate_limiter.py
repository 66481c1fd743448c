"""Redis-backed rate limiter."""
import hashlib
import logging
import time
from typing import Optional, Tuple
import redis
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from monitoring import rate_limit_exceeded_counter, suspicious_activity_counter

logger = logging.getLogger(__name__)


class RedisRateLimiter(BaseHTTPMiddleware):
    """
    Rate limiter using Redis for distributed rate limiting.

    Counters live in Redis so limits hold across restarts and across
    every replica of the service. Each window is a sorted set of request
    timestamps trimmed on every hit, with a TTL for cleanup.

    Two tiers:
    - Per IP: high limit, since many shoppers can share an address
    - Per bearer token: lower limit for a single authenticated session
    """

    def __init__(
        self,
        app,
        redis_client: redis.Redis,
        requests_per_minute_ip: int = 50000,
        requests_per_minute_user: int = 5000,
        window_seconds: int = 60
    ):
        """
        Initialize Redis-backed rate limiter.

        Args:
            app: FastAPI application
            redis_client: Redis connection
            requests_per_minute_ip: Max requests per IP per window
            requests_per_minute_user: Max requests per session per window
            window_seconds: Sliding window size in seconds
        """
        super().__init__(app)
        self.redis = redis_client
        self.requests_per_minute_ip = requests_per_minute_ip
        self.requests_per_minute_user = requests_per_minute_user
        self.window_seconds = window_seconds

    def _check_rate_limit(
        self,
        key: str,
        limit: int,
        window: int
    ) -> Tuple[bool, int]:
        """
        Check rate limit using a Redis sorted set (sliding window).

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

            # Count before this request was added
            count = results[1]
            return count < limit, count + 1

        except redis.RedisError as e:
            logger.error(f"Redis rate limit error: {e}")
            # Fail open: allow request if Redis is unavailable
            return True, 0

    def _too_many_requests(self, limit_type: str, limit: int) -> JSONResponse:
        return JSONResponse(
            status_code=429,
            content={"message": f"Rate limit exceeded for {limit_type}. Maximum {limit} requests per minute."},
            headers={"Retry-After": str(self.window_seconds)}
        )

    @staticmethod
    def _session_key(request: Request) -> Optional[str]:
        auth_header = request.headers.get("authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        token = auth_header.split(" ", 1)[1]
        # Never store raw tokens in Redis
        return hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]

    async def dispatch(self, request: Request, call_next):
        """
        Process request with Redis-backed dual-tier rate limiting.

        Returns:
            Response or 429 if rate limited
        """
        client_ip = request.client.host if request.client else "unknown"
        if "x-forwarded-for" in request.headers:
            client_ip = request.headers["x-forwarded-for"].split(",")[0].strip()

        session_key = self._session_key(request)

        # --- IP-based rate limiting ---
        ip_allowed, ip_count = self._check_rate_limit(
            f"rate:ip:{client_ip}",
            self.requests_per_minute_ip,
            self.window_seconds
        )

        if not ip_allowed:
            rate_limit_exceeded_counter.add(1, {"limit_type": "ip"})
            logger.warning("Rate limit exceeded for IP", extra={
                "client_ip": client_ip,
                "requests_in_window": ip_count,
                "limit": self.requests_per_minute_ip
            })
            return self._too_many_requests("IP", self.requests_per_minute_ip)

        # --- Session-based rate limiting ---
        if session_key:
            user_allowed, user_count = self._check_rate_limit(
                f"rate:session:{session_key}",
                self.requests_per_minute_user,
                self.window_seconds
            )

            if not user_allowed:
                rate_limit_exceeded_counter.add(1, {"limit_type": "user"})
                logger.warning("Rate limit exceeded for session", extra={
                    "client_ip": client_ip,
                    "requests_in_window": user_count,
                    "limit": self.requests_per_minute_user
                })
                return self._too_many_requests("user", self.requests_per_minute_user)

        response = await call_next(request)

        self._detect_suspicious_activity(request, response, client_ip)

        return response

    def _detect_suspicious_activity(self, request: Request, response, client_ip: str) -> None:
        """
        Detect suspicious activity patterns using Redis.

        Patterns:
        - Credential stuffing: 5+ failed auths in 5 minutes
        - Endpoint scanning: 10+ 404s in 5 minutes
        - Abuse: 20+ 4xx errors in 5 minutes
        """
        patterns = []
        if response.status_code == 401:
            patterns.append(("401", 5, "credential_stuffing"))
        if response.status_code == 404:
            patterns.append(("404", 10, "endpoint_scanning"))
        if 400 <= response.status_code < 500:
            patterns.append(("4xx", 20, "abuse"))

        if not patterns:
            return

        try:
            current_time = time.time()
            window = 300

            for suffix, threshold, activity_type in patterns:
                key = f"suspicious:{suffix}:{client_ip}"
                self.redis.zadd(key, {str(current_time): current_time})
                self.redis.expire(key, window + 1)

                count = self.redis.zcount(key, current_time - window, current_time)
                if count >= threshold:
                    suspicious_activity_counter.add(1, {"type": activity_type})
                    logger.warning("Suspicious activity detected", extra={
                        "type": activity_type,
                        "client_ip": client_ip,
                        "endpoint": request.url.path,
                        "count": count
                    })

        except redis.RedisError as e:
            logger.error(f"Error detecting suspicious activity: {e}")
