import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from chance.api.serializers import serialize_comment, serialize_heartbeat
from chance.database import get_db
from chance.dependencies import get_current_user, get_optional_user
from chance.models.heartbeat import HEARTBEAT_MAX_LENGTH
from chance.models.user import User
from chance.services import heartbeats as heartbeat_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/heartbeat", tags=["heartbeat"])


class HeartbeatCreate(BaseModel):
    content: str = Field(min_length=1, max_length=HEARTBEAT_MAX_LENGTH)
    visibility: Literal["public", "private"] = "public"
    image: Optional[str] = Field(default=None, max_length=500)
    video: Optional[str] = Field(default=None, max_length=500)


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=HEARTBEAT_MAX_LENGTH)


class ShareRequest(BaseModel):
    share_type: Literal["instagram", "whatsapp", "linkedin", "twitter", "download", "copy"]


@router.get("/")
def get_all_heartbeats(
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[datetime] = None,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Public heartbeats, newest first. Pass back next_cursor for the next page."""
    rows, next_cursor = heartbeat_service.list_heartbeats(db, limit=limit, cursor=cursor, user=user)
    return {
        "heartbeats": [serialize_heartbeat(*row) for row in rows],
        "next_cursor": next_cursor.isoformat() if next_cursor else None,
    }


@router.post("/", status_code=201)
def create_heartbeat(
    data: HeartbeatCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    heartbeat = heartbeat_service.create_heartbeat(
        db,
        user,
        content=data.content,
        visibility=data.visibility,
        image_url=data.image,
        video_url=data.video,
    )
    return serialize_heartbeat(heartbeat, 0, 0)


@router.get("/{heartbeat_id}")
def get_heartbeat(
    heartbeat_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return serialize_heartbeat(*heartbeat_service.get_heartbeat_detail(db, heartbeat_id, user))


@router.delete("/{heartbeat_id}")
def delete_heartbeat(
    heartbeat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        heartbeat_service.delete_heartbeat(db, heartbeat_id, user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error deleting heartbeat %s", heartbeat_id)
        raise HTTPException(status_code=500, detail="Failed to delete heartbeat")


# --- Like Endpoints ---

@router.post("/{heartbeat_id}/like")
def toggle_like(
    heartbeat_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Toggle like status for a heartbeat"""
    liked, total_likes = heartbeat_service.toggle_like(db, heartbeat_id, user)
    return {"liked": liked, "total_likes": total_likes}


# --- Comment Endpoints ---

@router.get("/{heartbeat_id}/comments")
def get_comments(
    heartbeat_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Get all comments for a heartbeat, newest first"""
    return [
        serialize_comment(comment, liked)
        for comment, liked in heartbeat_service.list_comments(db, heartbeat_id, user)
    ]


@router.post("/{heartbeat_id}/comments", status_code=201)
def create_comment(
    heartbeat_id: int,
    data: CommentCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        comment = heartbeat_service.add_comment(db, heartbeat_id, user, data.content)
        return serialize_comment(comment)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error creating comment on heartbeat %s", heartbeat_id)
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create comment")


@router.delete("/comments/{comment_id}")
def delete_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    heartbeat_service.delete_comment(db, comment_id, user)
    return {"success": True}


@router.post("/comments/{comment_id}/like")
def toggle_comment_like(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Toggle like status for a comment"""
    liked, total_likes = heartbeat_service.toggle_comment_like(db, comment_id, user)
    return {"liked": liked, "total_likes": total_likes}


# --- Sharing ---

@router.post("/{heartbeat_id}/share")
def share_heartbeat(
    heartbeat_id: int,
    data: ShareRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    share_url = heartbeat_service.record_share(db, heartbeat_id, data.share_type, user)
    return {"share_url": share_url}
