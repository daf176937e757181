"""Integration tests for the assembled application."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from redilimit.adapters.rate_limit.sliding_window import RedisSlidingWindowRateLimiter
from redilimit.core.app_factory import create_app
from redilimit.core.config import LogSettings, RateLimitSettings, Settings
from redilimit.core.rate_limit import build_rate_limiter

AUTH_HEADERS = {"Authorization": "bearer auth_token"}


def _settings(**rate_limit) -> Settings:
    return Settings(
        rate_limit=RateLimitSettings(**{"requests": 2, "window_seconds": 60, **rate_limit}),
        log=LogSettings(level="WARNING", format="plain"),
    )


@pytest.fixture
def client(redis_client) -> TestClient:
    return TestClient(create_app(_settings(), redis_client=redis_client))


def test_build_rate_limiter_uses_settings(redis_client) -> None:
    limiter = build_rate_limiter(
        RateLimitSettings(requests=7, window_seconds=30, header_name="X-Client-Token"),
        redis_client,
    )

    assert isinstance(limiter, RedisSlidingWindowRateLimiter)
    assert limiter.rate == 7
    assert limiter.window_seconds == 30
    assert limiter.header_name == "X-Client-Token"


def test_health_is_limited_only_with_header(client: TestClient) -> None:
    for _ in range(4):
        assert client.get("/health").status_code == 200

    statuses = [client.get("/health", headers=AUTH_HEADERS).status_code for _ in range(3)]
    assert statuses == [200, 200, 429]


def test_rate_limited_response_carries_request_id(client: TestClient) -> None:
    for _ in range(2):
        client.get("/health", headers=AUTH_HEADERS)

    response = client.get("/health", headers={**AUTH_HEADERS, "X-Request-ID": "req-429"})

    assert response.status_code == 429
    assert response.headers["X-Request-ID"] == "req-429"


def test_keys_use_configured_prefix(redis_client) -> None:
    app = create_app(_settings(key_prefix="test:"), redis_client=redis_client)
    TestClient(app).get("/health", headers=AUTH_HEADERS)

    keys = redis_client.keys("*")
    assert len(keys) == 1
    assert keys[0].startswith(b"test:")


def test_disabled_rate_limit_skips_redis() -> None:
    redis_client = MagicMock()
    client = TestClient(create_app(_settings(enabled=False), redis_client=redis_client))

    for _ in range(5):
        assert client.get("/health", headers=AUTH_HEADERS).status_code == 200
    redis_client.script_load.assert_not_called()


def test_startup_fails_when_redis_unreachable() -> None:
    redis_client = MagicMock()
    redis_client.script_load.side_effect = RedisConnectionError("connection refused")

    with pytest.raises(RedisConnectionError):
        create_app(_settings(), redis_client=redis_client)


def test_store_failure_during_request_returns_500(redis_client) -> None:
    client = TestClient(
        create_app(_settings(), redis_client=redis_client),
        raise_server_exceptions=False,
    )

    with patch.object(redis_client, "evalsha", side_effect=RedisConnectionError("down")):
        response = client.get("/health", headers=AUTH_HEADERS)

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "internal_server_error"


def test_readiness_reports_redis(client: TestClient) -> None:
    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "redis": "ok"}


def test_readiness_degraded_when_redis_down(redis_client) -> None:
    app = create_app(_settings(), redis_client=redis_client)
    client = TestClient(app)
    app.state.redis = MagicMock()
    app.state.redis.ping.side_effect = RedisConnectionError("down")

    response = client.get("/health/ready")

    assert response.status_code == 503
    assert response.json() == {"status": "degraded", "redis": "unavailable"}


def test_readiness_without_rate_limiting() -> None:
    app = create_app(_settings(enabled=False))
    response = TestClient(app).get("/health/ready")

    assert response.status_code == 200
    assert response.json()["redis"] == "disabled"
