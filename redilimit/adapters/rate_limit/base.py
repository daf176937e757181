"""Rate limiter interfaces.

The HTTP layer depends on this abstraction (not the concrete implementation):
the middleware only asks a limiter whether a request applies, which key it
maps to, and what the verdict for that key is.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from starlette.requests import Request


@dataclass(frozen=True)
class RateLimitVerdict:
    """Result of a single admission check.

    Attributes:
        allowed: Whether the request may continue down the pipeline.
        identifier: Fingerprinted key the check was made for.
        limit: Max requests per window.
        window_seconds: Length of the sliding window.
        retry_after_seconds: Seconds until the restriction lifts (None when allowed).
    """

    allowed: bool
    identifier: str
    limit: int
    window_seconds: int
    retry_after_seconds: int | None = None

    @property
    def restricted(self) -> bool:
        return not self.allowed


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    def should_skip(self, request: Request) -> bool:
        """Return True when this limiter does not apply to ``request``.

        Evaluated on every request, so implementations must be cheap and free
        of side effects. The base limiter applies to everything.
        """
        return False

    @abstractmethod
    def identify(self, request: Request) -> str:
        """Derive the rate limit identifier for ``request``."""
        raise NotImplementedError

    @abstractmethod
    def check(self, identifier: str, now: int | None = None) -> RateLimitVerdict:
        """Record one request for ``identifier`` and return the verdict.

        Args:
            identifier: Key produced by :meth:`identify`.
            now: Unix timestamp in seconds; defaults to the limiter's clock.

        Returns:
            RateLimitVerdict describing whether the request is admitted.
        """
        raise NotImplementedError
