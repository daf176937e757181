from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.concurrency import run_in_threadpool

router = APIRouter(tags=["Health"])

logger = logging.getLogger(__name__)


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: the limiter is useless without its Redis store.

    Returns:
        JSONResponse: 200 when Redis answers PING, 503 otherwise.
    """

    redis_client = getattr(request.app.state, "redis", None)
    if redis_client is None:
        return JSONResponse({"status": "ok", "redis": "disabled"})

    try:
        await run_in_threadpool(redis_client.ping)
    except RedisError as exc:
        logger.warning(
            "health.redis_unavailable",
            extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        return JSONResponse(
            {"status": "degraded", "redis": "unavailable"},
            status_code=503,
        )

    return JSONResponse({"status": "ok", "redis": "ok"})
