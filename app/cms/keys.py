"""Cache key builders.

Every cached view has exactly one builder here; callers never concatenate
key strings themselves, so a read path and its invalidation path cannot
drift apart.
"""

ALL_SYSTEM_COMMENTS = "all_system_comments"


def _as_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"invalid id for cache key: {value!r}")


def post_key(slug: str) -> str:
    if not slug:
        raise ValueError("post slug required for cache key")
    return f"post_{slug}"


def posts_list_key(page: int, limit: int, status: str) -> str:
    return f"posts_{_as_id(page)}_{_as_id(limit)}_{status}"


def post_comments_key(post_id) -> str:
    return f"comments_post_{_as_id(post_id)}"
