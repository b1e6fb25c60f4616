"""Response cache: JSON entries on disk with a per-entry TTL.

Each key is stored as ``<sha256(key)>.json`` holding
``{"value": ..., "expiresAt": <epoch seconds>}``. Expired entries read as
misses and are left in place until the next write overwrites them.
Substrate failures are logged and degrade to "no cache".
"""

from __future__ import annotations

import hashlib
import json
import time
from pathlib import Path
from typing import Any, Callable

from loguru import logger


class ResponseCache:
    """Read-through / write-through cache for expensive external calls."""

    def __init__(self, cache_dir: str | Path, clock: Callable[[], float] = time.time) -> None:
        self._dir = Path(cache_dir).expanduser()
        self._clock = clock

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    def get(self, key: str) -> Any:
        """Return the cached value for ``key``, or None on miss/expiry/error."""
        path = self._path(key)
        try:
            if not path.exists():
                return None
            entry = json.loads(path.read_text(encoding="utf-8"))
            if entry.get("expiresAt", 0) <= self._clock():
                return None
            return entry.get("value")
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        entry = {"value": value, "expiresAt": self._clock() + ttl_seconds}
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            self._path(key).write_text(json.dumps(entry), encoding="utf-8")
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")
