from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI

from app.cms.cache import build_cache
from app.cms.config import CacheSettings
import app.cms.db as db
from app.cms.tasks import DetachedTasks
from srv.api import comments, posts
from srv.api.auth import require_api_key
from srv.api.deps import get_cache
from srv.api.logging_setup import configure_logging
from srv.api.middleware.reqlog import RequestLogMiddleware

logger = logging.getLogger(__name__)


def create_app(cache=None, tasks=None) -> FastAPI:
    """Build the API with one cache and one task runner for the process lifetime.

    Tests pass their own ``cache``/``tasks``; otherwise both are built from the
    environment, and a bad cache configuration fails here rather than per request.
    """
    configure_logging()
    if cache is None:
        settings = CacheSettings.from_env()
        cache = build_cache(settings)
        logger.info(
            "cache backend=%s default_ttl=%s", settings.backend, settings.default_ttl
        )
    if tasks is None:
        tasks = DetachedTasks()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        tasks.shutdown(wait=True)
        close = getattr(cache, "close", None)
        if close is not None:
            close()

    app = FastAPI(title="CMS API", lifespan=lifespan)
    app.state.cache = cache
    app.state.tasks = tasks
    app.add_middleware(RequestLogMiddleware)

    app.include_router(posts.router)
    app.include_router(comments.router)

    @app.get("/")
    def root():
        return {"message": "Welcome to the CMS API"}

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/health")
    def health():
        # simple DB check
        try:
            with db.pg() as conn, conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return {"ok": True}
        except Exception as e:
            return {"ok": False, "error": str(e)}

    @app.get("/cache/stats", dependencies=[Depends(require_api_key)])
    def cache_stats(cache=Depends(get_cache)):
        return cache.stats()

    return app
