"""Redis-backed sliding window rate limiting middleware."""

__version__ = "0.1.0"
