import os
import logging
from logging.handlers import RotatingFileHandler


def _mk_handler(path):
    h = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=5, encoding="utf-8")
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    h.setFormatter(fmt)
    h.setLevel(logging.INFO)
    return h


def _attach(logger_name, path, tag):
    lg = logging.getLogger(logger_name)
    if not any(
        isinstance(h, RotatingFileHandler) and getattr(h, "_cms_tag", "") == tag
        for h in lg.handlers
    ):
        h = _mk_handler(path)
        h._cms_tag = tag
        lg.addHandler(h)
    lg.setLevel(logging.INFO)
    lg.propagate = True  # still print to console


def configure_logging(log_dir=None):
    """Attach rotating file handlers under CMS_LOG_DIR. Safe to call repeatedly.

    Without a log directory only the logger levels are set and records go to
    whatever the root logger / uvicorn prints to.
    """
    log_dir = log_dir or os.environ.get("CMS_LOG_DIR")
    if not log_dir:
        for name in ("cms.request", "cms.cache", "cms.tasks"):
            logging.getLogger(name).setLevel(logging.INFO)
        return
    os.makedirs(log_dir, exist_ok=True)

    # cms.request -> requests logfile
    _attach("cms.request", os.path.join(log_dir, "cms-requests.log"), "req")
    # cache hits/misses/invalidations and detached task failures
    _attach("cms.cache", os.path.join(log_dir, "cms-cache.log"), "cache")
    _attach("cms.tasks", os.path.join(log_dir, "cms-app.log"), "tasks")
    # uvicorn + app errors -> general logfile
    _attach("uvicorn.error", os.path.join(log_dir, "cms-uvicorn.log"), "uvicorn")
    _attach("uvicorn.access", os.path.join(log_dir, "cms-access.log"), "access")
