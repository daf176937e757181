"""Lua script registry for atomic rate limit algorithms.

Scripts live next to this module under ``lua/<name>.lua``. They are
loaded once with ``SCRIPT LOAD`` and then invoked by SHA1 with ``EVALSHA`` so
the full source is not resent on every request.

Redis forgets loaded scripts on restart or ``SCRIPT FLUSH``. When that
happens ``EVALSHA`` answers NOSCRIPT; the registry reloads the source and
retries exactly once. A second NOSCRIPT, or any other error, propagates.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, Sequence

import redis
from redis.exceptions import NoScriptError

logger = logging.getLogger(__name__)

SCRIPTS_DIR = Path(__file__).resolve().parent / "lua"


def fingerprint(source: str) -> str:
    """Return the SHA1 hex digest Redis uses to reference ``source``."""
    return hashlib.sha1(source.encode()).hexdigest()


class LuaScriptRegistry:
    """Keep one Lua script loaded in Redis and invoke it by reference."""

    def __init__(
        self,
        redis_client: redis.Redis,
        script_name: str,
        *,
        scripts_dir: Path = SCRIPTS_DIR,
    ) -> None:
        self._redis = redis_client
        self._script_name = script_name
        self._script_path = scripts_dir / f"{script_name}.lua"
        self._sha: str | None = None

    @property
    def sha(self) -> str | None:
        """Current invocation reference, ``None`` until loaded."""
        return self._sha

    @property
    def script_path(self) -> Path:
        return self._script_path

    def ensure_loaded(self) -> str:
        """Read the script, submit it to Redis and return its SHA1.

        Raises:
            OSError: If the script file cannot be read.
            redis.exceptions.RedisError: If Redis is unreachable or rejects it.
        """
        source = self._script_path.read_text(encoding="utf-8")
        self._redis.script_load(source)
        self._sha = fingerprint(source)

        logger.info(
            "lua_script.loaded",
            extra={"script": self._script_name, "sha": self._sha},
        )
        return self._sha

    def invoke(self, keys: Sequence[str], args: Sequence[Any]) -> Any:
        """Run the script atomically with ``EVALSHA``.

        Args:
            keys: Redis keys touched by the script (``KEYS``).
            args: Positional arguments (``ARGV``).

        Returns:
            The raw script reply.
        """
        sha = self._sha or self.ensure_loaded()
        try:
            return self._redis.evalsha(sha, len(keys), *keys, *args)
        except NoScriptError:
            logger.warning(
                "lua_script.reloading",
                extra={"script": self._script_name, "sha": sha},
            )

        sha = self.ensure_loaded()
        return self._redis.evalsha(sha, len(keys), *keys, *args)
