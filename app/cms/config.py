"""Environment-driven settings.

Values are read at call time so tests can ``monkeypatch.setenv``.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _num(name: str, default=None):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw) if "." in raw else int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class CacheSettings:
    default_ttl: int = 600
    check_period: Optional[float] = None
    backend: str = "memory"
    redis_url: Optional[str] = None
    prefix: str = "cms:"

    def __post_init__(self):
        if self.default_ttl <= 0:
            raise ValueError(f"CMS_CACHE_TTL must be positive, got {self.default_ttl}")
        if self.check_period is not None and self.check_period <= 0:
            raise ValueError(f"CMS_CACHE_CHECK_PERIOD must be positive, got {self.check_period}")
        if self.backend not in ("memory", "redis"):
            raise ValueError(f"CMS_CACHE_BACKEND must be 'memory' or 'redis', got {self.backend!r}")
        if self.backend == "redis" and not self.redis_url:
            raise ValueError("CMS_CACHE_BACKEND=redis requires REDIS_URL")

    @classmethod
    def from_env(cls) -> "CacheSettings":
        return cls(
            default_ttl=_num("CMS_CACHE_TTL", 600),
            check_period=_num("CMS_CACHE_CHECK_PERIOD"),
            backend=os.getenv("CMS_CACHE_BACKEND", "memory").lower(),
            redis_url=os.getenv("REDIS_URL") or None,
            prefix=os.getenv("CMS_CACHE_PREFIX", "cms:"),
        )


def api_key() -> Optional[str]:
    return os.environ.get("CMS_API_KEY") or None
