from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from typing import List, Optional

import app.cms.db as db
from app.cms import invalidation, posts
from app.cms.cache import get_or_load
from app.cms.helpers import generate_slug, paginate, success_response
from app.cms.keys import post_key, posts_list_key
from srv.api.auth import require_api_key
from srv.api.deps import get_cache, get_tasks

router = APIRouter(prefix="/api/v1/posts", tags=["posts"])


class PostIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category_id: int
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    status: str = "draft"
    author_id: Optional[int] = None
    featured_image: Optional[str] = None
    is_featured: bool = False
    allow_comments: bool = True
    reading_time: int = 0
    published_at: Optional[str] = None
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    meta_keywords: Optional[str] = None
    tags: Optional[List[int]] = None


def _record_view(post_id: int) -> None:
    with db.pg() as conn:
        posts.increment_views(conn, post_id)


@router.get("")
def list_posts(
    page: int = Query(1),
    limit: int = Query(10),
    status: str = Query("published"),
    cache=Depends(get_cache),
):
    # each distinct status is its own cache entry, so only known ones get one
    if status != "all" and status not in posts.STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"status must be one of: all, {', '.join(posts.STATUSES)}",
        )
    page, limit, offset = paginate(page, limit)

    def load():
        with db.pg() as conn:
            return posts.find_all(conn, status=status, limit=limit, offset=offset)

    rows = get_or_load(cache, posts_list_key(page, limit, status), load)
    return success_response(rows)


@router.get("/{slug}")
def get_post(slug: str, cache=Depends(get_cache), tasks=Depends(get_tasks)):
    """Single post by slug, served from cache when possible.

    A database hit also schedules a view-count increment in the background;
    cache hits do not count as views.
    """
    loaded = []

    def load():
        with db.pg() as conn:
            row = posts.find_by_slug(conn, slug)
        if row is not None:
            loaded.append(row["post_id"])
        return row

    post = get_or_load(cache, post_key(slug), load)
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    if loaded:
        tasks.spawn(_record_view, loaded[0], name="increment_views")
    return success_response(post)


@router.post("", status_code=201, dependencies=[Depends(require_api_key)])
def create_post(body: PostIn, request: Request, cache=Depends(get_cache)):
    data = body.model_dump()
    data["slug"] = data.get("slug") or generate_slug(body.title)
    try:
        with db.pg() as conn, conn.transaction():
            post = posts.create(conn, data, author_id=body.author_id)
            posts.log_activity(
                conn,
                user_id=body.author_id,
                action="CREATE_POST",
                entity_type="post",
                entity_id=post["post_id"],
                description=f'Created new post: "{post["title"]}"',
                ip_address=request.client.host if request.client else None,
                user_agent=request.headers.get("user-agent"),
            )
    except posts.SlugTaken:
        raise HTTPException(status_code=400, detail="A post with this slug already exists.")
    except posts.UnknownTag as e:
        raise HTTPException(status_code=400, detail=f"Unknown tag id: {e.tag_id}")
    invalidation.post_created(cache)
    return success_response(post, "Post created successfully")


@router.put("/{post_id}", dependencies=[Depends(require_api_key)])
def update_post(post_id: int, body: PostIn, cache=Depends(get_cache)):
    data = body.model_dump()
    # a new title always regenerates the slug
    data["slug"] = generate_slug(body.title)
    try:
        with db.pg() as conn, conn.transaction():
            post = posts.update(conn, post_id, data)
    except posts.SlugTaken:
        raise HTTPException(status_code=400, detail="A post with this slug already exists.")
    except posts.UnknownTag as e:
        raise HTTPException(status_code=400, detail=f"Unknown tag id: {e.tag_id}")
    if post is None:
        raise HTTPException(status_code=404, detail="Post not found")
    invalidation.post_updated(cache)
    return success_response(post, "Post updated successfully")


@router.delete("/{post_id}", dependencies=[Depends(require_api_key)])
def delete_post(post_id: int, cache=Depends(get_cache)):
    with db.pg() as conn:
        found = posts.delete(conn, post_id)
    if not found:
        raise HTTPException(status_code=404, detail="Post not found")
    invalidation.post_deleted(cache)
    return success_response(None, "Post deleted successfully")


@router.post("/{post_id}/view")
def record_view(post_id: int):
    with db.pg() as conn:
        posts.increment_views(conn, post_id)
    return success_response(None, "View recorded successfully")


@router.post("/{post_id}/like")
def like_post(post_id: int):
    with db.pg() as conn:
        posts.increment_likes(conn, post_id)
    return success_response(None, "Post liked successfully")
