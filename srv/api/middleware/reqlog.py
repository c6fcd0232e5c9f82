import os
import time
import uuid
import json
import logging
from typing import Callable, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger("cms.request")


def _cache_counters(request: Request) -> Optional[tuple]:
    # only the in-process cache keeps counters; redis reports "-"
    cache = getattr(request.app.state, "cache", None)
    counters = getattr(cache, "counters", None)
    return counters() if counters else None


def _cache_delta(before, after) -> str:
    # approximate under concurrent requests, counters are process-wide
    if before is None or after is None:
        return "-"
    return f"{after[0] - before[0]}h/{after[1] - before[1]}m"


def _emit(ctx: dict):
    fmt = os.getenv("CMS_REQLOG_FORMAT", "text").lower()
    if fmt == "json":
        try:
            logger.info(json.dumps(ctx, default=str))
        except (TypeError, ValueError):
            logger.info("log_json_error=%s fallback_text=%s", ctx.get("error", ""), ctx)
        return
    line = (
        "req={req} {method} {path}?{query} -> {status} "
        "{dur_ms:.1f}ms bytes={bytes} cache={cache}"
    ).format(**ctx)
    if ctx.get("error"):
        logger.error("%s error=%s", line, ctx["error"])
    else:
        logger.info(line)


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One line per request: timing, correlation id (X-Request-ID) and cache hits/misses it caused."""

    async def dispatch(self, request: Request, call_next: Callable):
        start = time.perf_counter()
        req_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        before = _cache_counters(request)
        ctx = {
            "ts": time.time(),
            "req": req_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or "-",
            "status": 500,
            "bytes": "-",
            "cache": "-",
            "error": None,
        }
        try:
            response = await call_next(request)
        except Exception as e:
            ctx["error"] = str(e)
            raise
        else:
            ctx["status"] = response.status_code
            ctx["bytes"] = response.headers.get("content-length", "-")
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            ctx["dur_ms"] = (time.perf_counter() - start) * 1000.0
            ctx["cache"] = _cache_delta(before, _cache_counters(request))
            _emit(ctx)
            if ctx["error"]:
                logger.exception("stacktrace for req=%s", req_id)
