"""Rate limiting middleware for FastAPI/Starlette applications.

This module wires a rate limiting adapter into the HTTP pipeline.

Per request:
- ``limiter.should_skip(request)`` → forward unchanged
- otherwise identify + check (a blocking Redis round trip, run in the
  threadpool) → 429 when restricted, forward when allowed

Errors raised while checking are logged and re-raised. The middleware never
fails open or closed on its own; the surrounding application decides.
"""

from __future__ import annotations

import logging
from typing import Mapping

import redis
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.status import HTTP_429_TOO_MANY_REQUESTS
from starlette.types import ASGIApp

from redilimit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitVerdict
from redilimit.adapters.rate_limit.sliding_window import RedisSlidingWindowRateLimiter
from redilimit.core.config import RateLimitSettings
from redilimit.core.logging import key_hash

logger = logging.getLogger(__name__)

LIMIT_HTTP_CODE = HTTP_429_TOO_MANY_REQUESTS


def build_rate_limiter(
    rate_limit_settings: RateLimitSettings,
    redis_client: redis.Redis,
) -> AbstractRateLimiter:
    """Create the sliding window limiter described by ``rate_limit_settings``.

    Loads the Lua script into Redis, so Redis must be reachable at startup.

    Args:
        rate_limit_settings: Rate, window, header and key prefix.
        redis_client: Shared Redis client.

    Returns:
        AbstractRateLimiter: Ready-to-use limiter.
    """
    limiter = RedisSlidingWindowRateLimiter(
        redis_client,
        rate=rate_limit_settings.requests,
        window_seconds=rate_limit_settings.window_seconds,
        header_name=rate_limit_settings.header_name,
        key_prefix=rate_limit_settings.key_prefix,
    )
    logger.info(
        "rate_limiter.created",
        extra={
            "limiter": type(limiter).__name__,
            "limit": rate_limit_settings.requests,
            "window_s": rate_limit_settings.window_seconds,
            "header_name": rate_limit_settings.header_name,
        },
    )
    return limiter


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Short-circuit restricted requests with a 429 response."""

    def __init__(
        self,
        app: ASGIApp,
        limiter: AbstractRateLimiter,
        *,
        include_headers: bool = True,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Attach ``limiter`` to the pipeline.

        Args:
            app: Next ASGI application in the stack.
            limiter: Limiter deciding applicability and verdicts.
            include_headers: Add Retry-After / X-RateLimit-Limit on 429.
            headers: Extra headers always sent with a 429 response.
        """
        super().__init__(app)
        self.limiter = limiter
        self.include_headers = include_headers
        self.headers = dict(headers or {})

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self.limiter.should_skip(request):
            return await call_next(request)

        try:
            identifier = self.limiter.identify(request)
            verdict = await run_in_threadpool(self.limiter.check, identifier)
        except Exception as exc:
            logger.error(
                "rate_limit.check_failed",
                extra={
                    "limiter": type(self.limiter).__name__,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "request_path": request.url.path,
                },
            )
            raise

        if verdict.restricted:
            return self.restrict(verdict)

        return await call_next(request)

    def restrict(self, verdict: RateLimitVerdict) -> Response:
        """Build the terminal rate limited response for ``verdict``."""
        retry_after = verdict.retry_after_seconds or 0
        message = f"Rate limit exceeded, try again in {retry_after} seconds"

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": type(self.limiter).__name__,
                "key_hash": key_hash(verdict.identifier),
                "limit": verdict.limit,
                "window_s": verdict.window_seconds,
                "retry_after_s": retry_after,
            },
        )

        headers = dict(self.headers)
        if self.include_headers:
            headers["Retry-After"] = str(retry_after)
            headers["X-RateLimit-Limit"] = str(verdict.limit)

        return PlainTextResponse(message, status_code=LIMIT_HTTP_CODE, headers=headers)
