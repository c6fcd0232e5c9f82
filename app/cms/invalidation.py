"""Which cache entries each write must drop.

Call these only after the database write has succeeded. List and aggregate
keys are dropped by every write that can change their membership or order;
a narrow ``delete`` is used only where the affected keys are fully known at
the call site, otherwise the whole cache is flushed.
"""

from app.cms.keys import ALL_SYSTEM_COMMENTS, post_comments_key


def post_created(cache) -> None:
    cache.flush()


def post_updated(cache) -> None:
    # slug may have changed, and list pages, detail pages and stats all embed post fields
    cache.flush()


def post_deleted(cache) -> None:
    cache.flush()


def comment_created(cache, post_id) -> None:
    cache.delete(post_comments_key(post_id))
    cache.delete(ALL_SYSTEM_COMMENTS)


def comment_status_changed(cache) -> None:
    # full flush, not just the two comment-list keys
    cache.flush()


def comment_deleted(cache) -> None:
    cache.flush()
