"""Tests for the rate limit middleware contract."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from starlette.requests import Request

from redilimit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitVerdict
from redilimit.core.rate_limit import RateLimitMiddleware

AUTH_HEADERS = {"Authorization": "bearer auth_token"}


class StubLimiter(AbstractRateLimiter):
    """Limiter applying to requests with an Authorization header."""

    def __init__(self, retry_after: int | None = None) -> None:
        self.check_mock = MagicMock(side_effect=self._verdict)
        self.retry_after = retry_after

    def should_skip(self, request: Request) -> bool:
        return "Authorization" not in request.headers

    def identify(self, request: Request) -> str:
        return "fingerprint"

    def check(self, identifier: str, now: int | None = None) -> RateLimitVerdict:
        return self.check_mock(identifier, now)

    def _verdict(self, identifier: str, now: int | None) -> RateLimitVerdict:
        return RateLimitVerdict(
            allowed=self.retry_after is None,
            identifier=identifier,
            limit=3,
            window_seconds=60,
            retry_after_seconds=self.retry_after,
        )


def _build_app(limiter: AbstractRateLimiter, **middleware_kwargs) -> FastAPI:
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, limiter=limiter, **middleware_kwargs)

    @app.get("/ok")
    def ok() -> dict:
        return {"status": "OK"}

    return app


class TestAllowed:
    def test_allowed_request_passes_through(self) -> None:
        limiter = StubLimiter()
        client = TestClient(_build_app(limiter))

        response = client.get("/ok", headers=AUTH_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"status": "OK"}
        limiter.check_mock.assert_called_once_with("fingerprint", None)

    def test_skipped_request_never_checks(self) -> None:
        limiter = StubLimiter(retry_after=30)
        client = TestClient(_build_app(limiter))

        response = client.get("/ok")

        assert response.status_code == 200
        limiter.check_mock.assert_not_called()

    def test_base_limiter_never_skips(self) -> None:
        limiter = StubLimiter()
        request = Request({"type": "http", "method": "GET", "path": "/", "headers": []})

        assert AbstractRateLimiter.should_skip(limiter, request) is False


class TestRestricted:
    def test_restricted_request_gets_429(self) -> None:
        client = TestClient(_build_app(StubLimiter(retry_after=1)))

        response = client.get("/ok", headers=AUTH_HEADERS)

        assert response.status_code == 429
        assert response.text == "Rate limit exceeded, try again in 1 seconds"
        assert response.headers["Retry-After"] == "1"
        assert response.headers["X-RateLimit-Limit"] == "3"

    def test_rate_limit_headers_can_be_disabled(self) -> None:
        client = TestClient(_build_app(StubLimiter(retry_after=5), include_headers=False))

        response = client.get("/ok", headers=AUTH_HEADERS)

        assert response.status_code == 429
        assert "Retry-After" not in response.headers

    def test_caller_supplied_headers_are_sent(self) -> None:
        client = TestClient(
            _build_app(StubLimiter(retry_after=5), headers={"X-Limited-By": "redilimit"})
        )

        response = client.get("/ok", headers=AUTH_HEADERS)

        assert response.status_code == 429
        assert response.headers["X-Limited-By"] == "redilimit"

    def test_restriction_is_logged_without_identifier(self, caplog: pytest.LogCaptureFixture) -> None:
        client = TestClient(_build_app(StubLimiter(retry_after=5)))

        with caplog.at_level(logging.WARNING, logger="redilimit.core.rate_limit"):
            client.get("/ok", headers=AUTH_HEADERS)

        records = [r for r in caplog.records if r.getMessage() == "rate_limit.exceeded"]
        assert len(records) == 1
        assert records[0].retry_after_s == 5
        assert records[0].key_hash != "fingerprint"


class TestErrors:
    def test_store_errors_are_logged_and_reraised(self, caplog: pytest.LogCaptureFixture) -> None:
        limiter = StubLimiter()
        limiter.check_mock.side_effect = RedisConnectionError("connection refused")
        client = TestClient(_build_app(limiter))

        with caplog.at_level(logging.ERROR, logger="redilimit.core.rate_limit"):
            with pytest.raises(RedisConnectionError):
                client.get("/ok", headers=AUTH_HEADERS)

        records = [r for r in caplog.records if r.getMessage() == "rate_limit.check_failed"]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert records[0].error_type == "ConnectionError"


class TestWithRedisLimiter:
    """The middleware in front of the real sliding window script."""

    def test_rate_plus_one_request_is_rejected(self, make_limiter) -> None:
        client = TestClient(_build_app(make_limiter(rate=2, window_seconds=60)))

        statuses = [client.get("/ok", headers=AUTH_HEADERS).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    def test_retry_delay_comes_from_script(self, make_limiter) -> None:
        client = TestClient(_build_app(make_limiter(rate=1, window_seconds=60)))
        client.get("/ok", headers=AUTH_HEADERS)

        response = client.get("/ok", headers=AUTH_HEADERS)

        assert response.status_code == 429
        assert response.text == "Rate limit exceeded, try again in 60 seconds"
        assert response.headers["Retry-After"] == "60"

    def test_distinct_credentials_are_limited_separately(self, make_limiter) -> None:
        client = TestClient(_build_app(make_limiter(rate=1, window_seconds=60)))

        assert client.get("/ok", headers={"Authorization": "token-a"}).status_code == 200
        assert client.get("/ok", headers={"Authorization": "token-a"}).status_code == 429
        assert client.get("/ok", headers={"Authorization": "token-b"}).status_code == 200

    def test_requests_without_header_are_never_limited(self, make_limiter, redis_client) -> None:
        client = TestClient(_build_app(make_limiter(rate=1, window_seconds=60)))

        statuses = [client.get("/ok").status_code for _ in range(5)]

        assert statuses == [200] * 5
        assert redis_client.dbsize() == 0
