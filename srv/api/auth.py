import logging

from fastapi import Header, HTTPException, Request
from typing import Optional

from app.cms.config import api_key

logger = logging.getLogger("cms.request")


def require_api_key(request: Request, x_api_key: Optional[str] = Header(None)):
    """FastAPI dependency guarding the cache-invalidating writes and the moderation reads.

    Open when CMS_API_KEY is unset (dev mode). Otherwise the X-API-Key header
    or the 'cms_api_key' cookie must match; the key is read per call so tests
    can monkeypatch it. Rejections are logged without the offered value.
    """
    expected = api_key()
    if not expected:
        return True
    offered = x_api_key or request.cookies.get("cms_api_key")
    if offered == expected or request.cookies.get("cms_api_key") == expected:
        return True
    logger.warning(
        "api key rejected method=%s path=%s reason=%s client=%s",
        request.method,
        request.url.path,
        "mismatch" if offered else "missing",
        request.client.host if request.client else "-",
    )
    raise HTTPException(status_code=401, detail="Invalid or missing API key")
