import re


def generate_slug(text: str) -> str:
    """URL-friendly slug: lowercase ascii words joined by single hyphens."""
    s = re.sub(r"[^a-z0-9\s-]", "", (text or "").lower())
    return re.sub(r"[\s-]+", "-", s).strip("-")


def paginate(page=1, limit=10):
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        limit = 10
    if limit > 100:
        limit = 100
    if limit < 1:
        limit = 10
    if page < 1:
        page = 1
    return page, limit, (page - 1) * limit


def success_response(data, message: str = "Success") -> dict:
    return {"success": True, "message": message, "data": data}


def error_response(message: str, errors=None) -> dict:
    resp = {"success": False, "message": message}
    if errors:
        resp["errors"] = errors
    return resp
