"""Detached side effects that must not hold up a response.

Work submitted here runs on a small thread pool with no ordering guarantee
relative to the HTTP response. Failures are logged with a traceback and
never reach the caller.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

logger = logging.getLogger("cms.tasks")


class DetachedTasks:
    def __init__(self, max_workers: int = 4) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cms-task")

    def spawn(self, fn: Callable, *args, name: str | None = None, **kwargs) -> Future:
        label = name or getattr(fn, "__name__", repr(fn))
        fut = self._pool.submit(fn, *args, **kwargs)

        def _done(f: Future):
            exc = f.exception()
            if exc is not None:
                logger.error(
                    "detached task %s failed: %s", label, exc, exc_info=(type(exc), exc, exc.__traceback__)
                )

        fut.add_done_callback(_done)
        return fut

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)
