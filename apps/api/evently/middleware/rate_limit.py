from __future__ import annotations

import time
from typing import Callable

import structlog
from fastapi import Request
from redis import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from evently.core.config import Settings
from evently.redis_client import get_redis

logger = structlog.get_logger(__name__)


def parse_rate(rate: str) -> tuple[int, int]:
    """
    Parse formats like:
      - "60/minute"
      - "120/hour"
      - "10/second"
    Returns: (limit, window_seconds)
    """
    raw = rate.strip().lower()
    if "/" not in raw:
        raise ValueError(f"Invalid rate format: {rate}")

    limit_str, window_str = raw.split("/", 1)
    limit = int(limit_str)

    window_str = window_str.strip()
    if window_str in {"sec", "second", "seconds"}:
        return limit, 1
    if window_str in {"min", "minute", "minutes"}:
        return limit, 60
    if window_str in {"hour", "hours"}:
        return limit, 3600
    if window_str in {"day", "days"}:
        return limit, 86400

    raise ValueError(f"Invalid rate window: {window_str}")


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window limiter keyed on client IP, method and path, counted in Redis."""

    def __init__(
        self,
        app: ASGIApp,
        config: Settings,
        redis_factory: Callable[[], Redis] | None = None,
    ) -> None:
        super().__init__(app)
        self._config = config
        self._redis_factory = redis_factory or (lambda: get_redis(config.redis_url))
        self._exempt_paths = set(config.rate_limit_exempt_paths)

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self._config.rate_limit_enabled:
            return await call_next(request)

        if request.method == "OPTIONS":
            return await call_next(request)

        path = request.url.path
        if path in self._exempt_paths:
            return await call_next(request)

        try:
            limit, window_seconds = parse_rate(self._config.rate_limit_default)
        except ValueError:
            # Misconfigured rate => fail open
            return await call_next(request)

        now = int(time.time())
        bucket = now // window_seconds
        client_ip = _client_ip(request)
        key = f"rl:{client_ip}:{request.method}:{path}:{window_seconds}:{bucket}"

        try:
            r = self._redis_factory()
            count = int(r.incr(key))
            if count == 1:
                r.expire(key, window_seconds)
        except RedisError as exc:
            # Fail open if Redis is unavailable
            logger.warning("rate_limit_unavailable", error=str(exc))
            return await call_next(request)

        remaining = max(0, limit - count)
        reset = (bucket + 1) * window_seconds

        if count > limit:
            logger.info("rate_limited", client_ip=client_ip, path=path, count=count)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "message": "Too many requests, please try again later",
                    "code": "RATE_LIMITED",
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset),
                    "Retry-After": str(max(0, reset - now)),
                },
            )

        response = await call_next(request)
        response.headers.setdefault("X-RateLimit-Limit", str(limit))
        response.headers.setdefault("X-RateLimit-Remaining", str(remaining))
        response.headers.setdefault("X-RateLimit-Reset", str(reset))
        return response
