"""Process-local TTL cache used as a read-through cache in front of Postgres.

Entries expire a fixed number of seconds after they are written. Expired
entries are dropped lazily on access and, when the sweeper thread is running,
every ``check_period`` seconds. This is a per-process cache: replicas do not
see each other's invalidations, so each one may serve data up to one TTL old
after a write it did not perform itself. Use the Redis backend
(``app.cms.redis_cache``) when that window is not acceptable.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger("cms.cache")

DEFAULT_TTL = 600

_MISSING = object()


class TTLCache:
    """Expiring key/value map guarded by a single lock."""

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        check_period: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not isinstance(default_ttl, (int, float)) or default_ttl <= 0:
            raise ValueError(f"default_ttl must be a positive number, got {default_ttl!r}")
        if check_period is None:
            check_period = default_ttl * 0.2
        if check_period <= 0:
            raise ValueError(f"check_period must be positive, got {check_period!r}")
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        self._store: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            ent = self._store.get(key)
            if ent is not None:
                value, expires_at = ent
                if self._clock() < expires_at:
                    self._hits += 1
                    logger.debug("cache hit key=%s", key)
                    return value
                del self._store[key]
            self._misses += 1
        logger.debug("cache miss key=%s", key)
        return default

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        # a missing or non-positive ttl falls back to the default
        if not ttl or ttl <= 0:
            ttl = self.default_ttl
        with self._lock:
            self._store[key] = (value, self._clock() + ttl)
        logger.info("cached key=%s ttl=%s", key, ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)
        logger.info("deleted cache key=%s", key)

    def flush(self) -> None:
        with self._lock:
            n = len(self._store)
            self._store.clear()
        logger.info("cache flushed (%d entries)", n)

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, exp) in self._store.items() if exp <= now]
            for k in expired:
                del self._store[k]
        if expired:
            logger.debug("swept %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> dict:
        with self._lock:
            return {
                "keys": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "backend": "memory",
            }

    def counters(self) -> tuple:
        """(hits, misses) so far; cheaper than stats() for per-request deltas."""
        with self._lock:
            return self._hits, self._misses

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="cms-cache-sweeper", daemon=True
        )
        self._sweeper.start()

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.check_period):
            try:
                self.purge_expired()
            except Exception:
                logger.exception("cache sweep failed")

    def close(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None


def get_or_load(cache, key: str, loader: Callable[[], Any], ttl: Optional[float] = None) -> Any:
    """Return the cached value for ``key`` or compute, cache and return it.

    ``None`` from the loader means "not found" and is not cached.
    """
    value = cache.get(key, _MISSING)
    if value is not _MISSING:
        return value
    value = loader()
    if value is not None:
        cache.set(key, value, ttl=ttl)
    return value


def build_cache(settings):
    """Construct the cache backend selected by ``settings``."""
    if settings.backend == "redis":
        from app.cms.redis_cache import RedisCache

        return RedisCache.from_url(
            settings.redis_url, default_ttl=settings.default_ttl, prefix=settings.prefix
        )
    cache = TTLCache(default_ttl=settings.default_ttl, check_period=settings.check_period)
    cache.start_sweeper()
    return cache
