"""Redis sliding window rate limiter.

Each identifier owns two keys:
- ``<prefix><identifier>``: list of admitted request timestamps (the window)
- ``<prefix><identifier>_limit``: block flag whose TTL is the time left

The read-prune-decide-write cycle runs inside Redis as one Lua script
(``lua/sliding_window.lua``), so concurrent requests from any number of
processes never observe a torn window. Nothing is cached client-side.
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Any, Callable

import redis
from starlette.requests import Request

from redilimit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitVerdict
from redilimit.adapters.rate_limit.scripts import LuaScriptRegistry
from redilimit.core.errors import ValidationAppError
from redilimit.core.logging import key_hash

logger = logging.getLogger(__name__)

BLOCK_SUFFIX = "_limit"
SCRIPT_NAME = "sliding_window"


def _require_positive_int(field: str, value: Any) -> int:
    # bool is an int subclass; True would silently mean 1
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationAppError(
            code="invalid_rate_limit_config",
            message=f"{field} must be an integer",
            details={"field": field, "expected": "int", "actual_value": repr(value)},
        )
    if value < 1:
        raise ValidationAppError(
            code="invalid_rate_limit_config",
            message=f"{field} must be >= 1",
            details={"field": field, "expected": ">= 1", "actual_value": value},
        )
    return value


def _require_str(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationAppError(
            code="invalid_rate_limit_config",
            message=f"{field} must be a string",
            details={"field": field, "expected": "str", "actual_value": repr(value)},
        )
    return value


class RedisSlidingWindowRateLimiter(AbstractRateLimiter):
    """Allow at most ``rate`` requests per rolling ``window_seconds``.

    Requests are keyed by a SHA-256 fingerprint of a designated header
    (``Authorization`` by default); requests without the header are skipped.
    Once a window saturates, the identifier is blocked for a full window.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        *,
        rate: int,
        window_seconds: int,
        header_name: str = "Authorization",
        key_prefix: str = "ratelimit:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Validate configuration and load the admission script into Redis.

        Args:
            redis_client: Shared Redis client.
            rate: Maximum number of requests per window.
            window_seconds: Sliding window length in seconds.
            header_name: Request header identifying the subject.
            key_prefix: Namespace for the Redis keys written by the script.
            clock: Time source returning UNIX time in seconds.

        Raises:
            ValidationAppError: If rate/window are not positive integers or
                header_name/key_prefix are not strings.
            redis.exceptions.RedisError: If the script cannot be loaded.
        """
        self._rate = _require_positive_int("rate", rate)
        self._window_seconds = _require_positive_int("window_seconds", window_seconds)
        self._header_name = _require_str("header_name", header_name)
        self._key_prefix = _require_str("key_prefix", key_prefix)
        self._clock = clock

        self._scripts = LuaScriptRegistry(redis_client, SCRIPT_NAME)
        self._scripts.ensure_loaded()

    @property
    def rate(self) -> int:
        return self._rate

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    @property
    def header_name(self) -> str:
        return self._header_name

    @property
    def scripts(self) -> LuaScriptRegistry:
        return self._scripts

    def window_key(self, identifier: str) -> str:
        return f"{self._key_prefix}{identifier}"

    def block_key(self, identifier: str) -> str:
        return f"{self._key_prefix}{identifier}{BLOCK_SUFFIX}"

    def should_skip(self, request: Request) -> bool:
        """Skip requests that do not carry the designated header."""
        return self._header_name not in request.headers

    def identify(self, request: Request) -> str:
        """Fingerprint the header value so the raw credential is never stored."""
        return hashlib.sha256(request.headers[self._header_name].encode()).hexdigest()

    def run_script(self, identifier: str, window_seconds: int, rate: int, now: int) -> int | None:
        """Execute the admission script for ``identifier``.

        Returns:
            None when admitted, otherwise seconds until the block lifts.
        """
        return self._scripts.invoke(
            keys=(self.window_key(identifier), self.block_key(identifier)),
            args=(window_seconds, rate, now),
        )

    def check(self, identifier: str, now: int | None = None) -> RateLimitVerdict:
        """Run one admission check for ``identifier``.

        Args:
            identifier: Fingerprinted key (see :meth:`identify`).
            now: Unix timestamp; defaults to ``int(clock())``.

        Returns:
            RateLimitVerdict; restricted only for a strictly positive script reply.
        """
        if now is None:
            now = int(self._clock())

        revoke_in = self.run_script(identifier, self._window_seconds, self._rate, now)

        if revoke_in is not None and int(revoke_in) > 0:
            return RateLimitVerdict(
                allowed=False,
                identifier=identifier,
                limit=self._rate,
                window_seconds=self._window_seconds,
                retry_after_seconds=int(revoke_in),
            )

        logger.debug(
            "rate_limit.allowed",
            extra={"key_hash": key_hash(identifier), "limit": self._rate},
        )
        return RateLimitVerdict(
            allowed=True,
            identifier=identifier,
            limit=self._rate,
            window_seconds=self._window_seconds,
        )
