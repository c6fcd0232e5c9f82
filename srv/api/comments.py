from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Optional

import app.cms.db as db
from app.cms import comments, invalidation
from app.cms.cache import get_or_load
from app.cms.helpers import success_response
from app.cms.keys import ALL_SYSTEM_COMMENTS, post_comments_key
from srv.api.auth import require_api_key
from srv.api.deps import get_cache

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])

# the moderation list churns faster than anything else
ALL_COMMENTS_TTL = 300


class CommentIn(BaseModel):
    post_id: int
    content: str = Field(..., min_length=1)
    parent_id: Optional[int] = None
    user_id: Optional[int] = None


class StatusIn(BaseModel):
    status: str


@router.get("", dependencies=[Depends(require_api_key)])
def list_all_comments(cache=Depends(get_cache)):
    def load():
        with db.pg() as conn:
            return comments.find_all(conn)

    rows = get_or_load(cache, ALL_SYSTEM_COMMENTS, load, ttl=ALL_COMMENTS_TTL)
    return success_response(rows)


@router.get("/post/{post_id}")
def list_post_comments(post_id: int, cache=Depends(get_cache)):
    def load():
        with db.pg() as conn:
            return comments.find_by_post(conn, post_id)

    rows = get_or_load(cache, post_comments_key(post_id), load)
    return success_response(rows)


@router.post("", status_code=201)
def create_comment(body: CommentIn, request: Request, cache=Depends(get_cache)):
    content = body.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")
    with db.pg() as conn:
        comment = comments.create(
            conn,
            post_id=body.post_id,
            content=content,
            user_id=body.user_id,
            parent_id=body.parent_id,
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    invalidation.comment_created(cache, body.post_id)
    return success_response(comment, "Comment submitted successfully")


@router.patch("/{comment_id}", dependencies=[Depends(require_api_key)])
@router.patch("/{comment_id}/status", dependencies=[Depends(require_api_key)])
def update_comment_status(comment_id: int, body: StatusIn, cache=Depends(get_cache)):
    if body.status not in comments.STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"status must be one of: {', '.join(comments.STATUSES)}",
        )
    with db.pg() as conn:
        comment = comments.update_status(conn, comment_id, body.status)
    if comment is None:
        raise HTTPException(status_code=404, detail="Comment not found")
    invalidation.comment_status_changed(cache)
    return success_response(comment, f"Comment status updated to {body.status}")


@router.delete("/{comment_id}", dependencies=[Depends(require_api_key)])
def delete_comment(comment_id: int, cache=Depends(get_cache)):
    with db.pg() as conn:
        found = comments.delete(conn, comment_id)
    if not found:
        raise HTTPException(status_code=404, detail="Comment not found")
    invalidation.comment_deleted(cache)
    return success_response(None, "Comment deleted successfully")
