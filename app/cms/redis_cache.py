"""Redis-backed cache with the same interface as ``TTLCache``.

Shared across processes, so invalidations performed by one replica are seen
by all of them. Values are stored as JSON. Any Redis or decode error is
logged and treated as a miss: the database stays the source of truth and a
cache outage only costs performance.
"""

import json
import logging
from typing import Any, Optional

import redis

logger = logging.getLogger("cms.cache")


class RedisCache:
    def __init__(self, client, default_ttl: int = 600, prefix: str = "cms:") -> None:
        if not isinstance(default_ttl, int) or default_ttl <= 0:
            raise ValueError(f"default_ttl must be a positive integer, got {default_ttl!r}")
        self._r = client
        self.default_ttl = default_ttl
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, default_ttl: int = 600, prefix: str = "cms:") -> "RedisCache":
        return cls(redis.from_url(url), default_ttl=int(default_ttl), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        try:
            raw = self._r.get(self._key(key))
        except redis.RedisError as e:
            logger.warning("redis get failed key=%s error=%s", key, e)
            return default
        if raw is None:
            logger.debug("cache miss key=%s", key)
            return default
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("undecodable cache value key=%s error=%s", key, e)
            return default

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not ttl or ttl <= 0:
            ttl = self.default_ttl
        try:
            raw = json.dumps(value, default=str)
            self._r.setex(self._key(key), int(ttl), raw)
        except (redis.RedisError, TypeError, ValueError) as e:
            logger.warning("redis set failed key=%s error=%s", key, e)
            return
        logger.info("cached key=%s ttl=%s", key, ttl)

    def delete(self, key: str) -> None:
        try:
            self._r.delete(self._key(key))
        except redis.RedisError as e:
            logger.warning("redis delete failed key=%s error=%s", key, e)
            return
        logger.info("deleted cache key=%s", key)

    def flush(self) -> None:
        # only our prefix; the redis db may be shared with other apps
        try:
            keys = list(self._r.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self._r.delete(*keys)
        except redis.RedisError as e:
            logger.warning("redis flush failed error=%s", e)
            return
        logger.info("cache flushed (%d entries)", len(keys))

    def stats(self) -> dict:
        try:
            n = sum(1 for _ in self._r.scan_iter(match=f"{self.prefix}*"))
        except redis.RedisError:
            n = None
        return {"keys": n, "backend": "redis"}

    def close(self) -> None:
        try:
            self._r.close()
        except redis.RedisError:
            pass
