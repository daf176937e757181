"""Rate limiting adapters.

This package holds the limiter abstraction used by the HTTP middleware and
its Redis-backed sliding window implementation, whose admission algorithm
runs as a Lua script inside Redis.
"""

from redilimit.adapters.rate_limit.base import AbstractRateLimiter, RateLimitVerdict
from redilimit.adapters.rate_limit.scripts import LuaScriptRegistry
from redilimit.adapters.rate_limit.sliding_window import RedisSlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "LuaScriptRegistry",
    "RateLimitVerdict",
    "RedisSlidingWindowRateLimiter",
]
