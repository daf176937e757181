"""Application factory for the FastAPI app.

Centralizes app construction (logging, middleware, handlers, routers) so
tests and deployments pass configuration in explicitly instead of mutating
globals.
"""

from __future__ import annotations

import redis
from fastapi import FastAPI

from redilimit.adapters.rate_limit.base import AbstractRateLimiter
from redilimit.adapters.redis.factory import create_redis_client
from redilimit.api.routes import health_router
from redilimit.core.config import Settings, settings as default_settings
from redilimit.core.exception_handlers import setup_exception_handlers
from redilimit.core.logging import configure_logging
from redilimit.core.middleware import build_request_id_middleware
from redilimit.core.rate_limit import RateLimitMiddleware, build_rate_limiter


def create_app(
    app_settings: Settings | None = None,
    *,
    redis_client: redis.Redis | None = None,
    limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-derived ones.
        redis_client: Shared Redis client; built from settings when omitted.
        limiter: Pre-built limiter; built from settings when omitted.

    Returns:
        Configured FastAPI app with middleware, handlers and routers.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title=cfg.app.name,
        description=(
            "Sliding window rate limiting backed by an atomic Redis Lua script. "
            "Requests carrying the configured identifying header are limited per "
            "identifier; restricted requests receive 429 Too Many Requests."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
    )

    if cfg.rate_limit.enabled:
        if limiter is None:
            redis_client = redis_client or create_redis_client(cfg.redis)
            limiter = build_rate_limiter(cfg.rate_limit, redis_client)
        app.add_middleware(
            RateLimitMiddleware,
            limiter=limiter,
            include_headers=cfg.rate_limit.include_headers,
        )

    app.state.redis = redis_client
    app.state.limiter = limiter

    # Added last so it wraps the limiter and its logs carry the request id
    app.middleware("http")(build_request_id_middleware(cfg.log.request_id_header))

    setup_exception_handlers(app)

    app.include_router(health_router)

    return app
