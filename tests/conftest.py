"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Redis is replaced by fakeredis (with Lua support) so the real admission
script runs without a server; every test gets its own isolated store.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("REDIS_HOST", "localhost")

from typing import Callable

import fakeredis
import pytest

from redilimit.adapters.rate_limit.sliding_window import RedisSlidingWindowRateLimiter


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    """Isolated in-memory Redis with Lua scripting."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer())


@pytest.fixture
def make_limiter(redis_client: fakeredis.FakeRedis) -> Callable[..., RedisSlidingWindowRateLimiter]:
    """Build sliding window limiters bound to the fake store."""

    def _make(**overrides) -> RedisSlidingWindowRateLimiter:
        kwargs = {"rate": 3, "window_seconds": 60}
        kwargs.update(overrides)
        return RedisSlidingWindowRateLimiter(redis_client, **kwargs)

    return _make
