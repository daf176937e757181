"""Factory for the shared Redis store client."""

import logging

import redis

from redilimit.core.config import RedisSettings

logger = logging.getLogger(__name__)


def create_redis_client(redis_settings: RedisSettings) -> redis.Redis:
    """Build a synchronous Redis client from explicit settings.

    redis-py opens pooled connections lazily on the first command, so this
    never touches the network. The returned client is thread-safe and meant to
    be shared by every limiter created from the same settings.

    Args:
        redis_settings: Host, port, db, credentials and timeouts.

    Returns:
        redis.Redis: Configured client instance.
    """
    logger.info(
        "redis.client_created",
        extra={
            "redis_host": redis_settings.host,
            "redis_port": redis_settings.port,
            "redis_db": redis_settings.db,
        },
    )
    return redis.Redis(
        host=redis_settings.host,
        port=redis_settings.port,
        db=redis_settings.db,
        password=redis_settings.password,
        socket_timeout=redis_settings.socket_timeout_seconds,
        socket_connect_timeout=redis_settings.socket_connect_timeout_seconds,
    )
