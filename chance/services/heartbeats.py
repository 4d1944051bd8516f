import logging
import os
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from chance.errors import NotFoundError, ValidationError
from chance.models.comment_like import CommentLike
from chance.models.heartbeat import Heartbeat, HEARTBEAT_MAX_LENGTH
from chance.models.heartbeat_comment import HeartbeatComment
from chance.models.heartbeat_like import HeartbeatLike
from chance.models.project import VISIBILITIES
from chance.models.sharing_log import SharingLog, SHARE_TYPES
from chance.models.user import User
from chance.services import storage
from chance.services.access import ensure_admin, ensure_owner

logger = logging.getLogger(__name__)

BASE_URL = os.getenv("BASE_URL", "http://localhost:3000")


def _validate_content(content: str | None, field: str = "content") -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError(field, "Content is required")
    if len(content) > HEARTBEAT_MAX_LENGTH:
        raise ValidationError(field, f"Content is too long (max {HEARTBEAT_MAX_LENGTH} characters)")
    return content


# --- Reads ---

def get_heartbeat(db: Session, heartbeat_id: int) -> Heartbeat:
    heartbeat = db.query(Heartbeat).filter(Heartbeat.id == heartbeat_id).first()
    if not heartbeat:
        raise NotFoundError("Heartbeat")
    return heartbeat


def get_visible_heartbeat(db: Session, heartbeat_id: int, user: User | None) -> Heartbeat:
    heartbeat = get_heartbeat(db, heartbeat_id)
    if heartbeat.visibility == "private" and (user is None or heartbeat.user_id != user.id):
        raise NotFoundError("Heartbeat")
    return heartbeat


def _with_counts(db: Session):
    """Heartbeats joined with like and comment counts taken from their own tables."""
    likes = (
        db.query(HeartbeatLike.heartbeat_id, func.count(HeartbeatLike.id).label("like_count"))
        .group_by(HeartbeatLike.heartbeat_id)
        .subquery()
    )
    comments = (
        db.query(HeartbeatComment.heartbeat_id, func.count(HeartbeatComment.id).label("comment_count"))
        .group_by(HeartbeatComment.heartbeat_id)
        .subquery()
    )
    return (
        db.query(
            Heartbeat,
            func.coalesce(likes.c.like_count, 0),
            func.coalesce(comments.c.comment_count, 0),
        )
        .outerjoin(likes, likes.c.heartbeat_id == Heartbeat.id)
        .outerjoin(comments, comments.c.heartbeat_id == Heartbeat.id)
    )


def _liked_ids(db: Session, user: User | None, heartbeat_ids: list[int]) -> set[int]:
    if user is None or not heartbeat_ids:
        return set()
    rows = db.query(HeartbeatLike.heartbeat_id).filter(
        HeartbeatLike.user_id == user.id,
        HeartbeatLike.heartbeat_id.in_(heartbeat_ids),
    ).all()
    return {heartbeat_id for (heartbeat_id,) in rows}


def _annotate(db: Session, rows: list, user: User | None) -> list:
    liked = _liked_ids(db, user, [heartbeat.id for heartbeat, _, _ in rows])
    return [(heartbeat, likes, comments, heartbeat.id in liked) for heartbeat, likes, comments in rows]


def list_heartbeats(db: Session, limit: int = 20, cursor: datetime | None = None, user: User | None = None):
    """
    Public heartbeats, newest first. The cursor is the created_at of the last
    item seen; the next page holds strictly older heartbeats.
    Returns ([(heartbeat, like_count, comment_count, liked_by_me)], next_cursor).
    """
    query = _with_counts(db).filter(Heartbeat.visibility == "public")
    if cursor is not None:
        query = query.filter(Heartbeat.created_at < cursor)

    rows = query.order_by(Heartbeat.created_at.desc(), Heartbeat.id.desc()).limit(limit + 1).all()
    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        next_cursor = rows[-1][0].created_at
    return _annotate(db, rows, user), next_cursor


def list_user_heartbeats(db: Session, user: User) -> list:
    rows = (
        _with_counts(db)
        .filter(Heartbeat.user_id == user.id)
        .order_by(Heartbeat.created_at.desc(), Heartbeat.id.desc())
        .all()
    )
    return _annotate(db, rows, user)


def get_heartbeat_detail(db: Session, heartbeat_id: int, user: User | None):
    get_visible_heartbeat(db, heartbeat_id, user)
    row = _with_counts(db).filter(Heartbeat.id == heartbeat_id).one()
    return _annotate(db, [row], user)[0]


def list_comments(db: Session, heartbeat_id: int, user: User | None = None) -> list:
    """Newest first, as [(comment, liked_by_me)]."""
    get_visible_heartbeat(db, heartbeat_id, user)
    comments = (
        db.query(HeartbeatComment)
        .options(joinedload(HeartbeatComment.author))
        .filter(HeartbeatComment.heartbeat_id == heartbeat_id)
        .order_by(HeartbeatComment.created_at.desc(), HeartbeatComment.id.desc())
        .all()
    )
    liked = set()
    if user is not None and comments:
        liked = {
            comment_id
            for (comment_id,) in db.query(CommentLike.comment_id).filter(
                CommentLike.user_id == user.id,
                CommentLike.comment_id.in_([c.id for c in comments]),
            ).all()
        }
    return [(comment, comment.id in liked) for comment in comments]


# --- Writes ---

def create_heartbeat(
    db: Session,
    user: User,
    content: str,
    visibility: str = "public",
    image_url: str | None = None,
    video_url: str | None = None,
) -> Heartbeat:
    content = _validate_content(content)
    if visibility not in VISIBILITIES:
        raise ValidationError("visibility", f"Visibility must be one of {', '.join(VISIBILITIES)}")

    heartbeat = Heartbeat(
        content=content,
        visibility=visibility,
        image_url=image_url,
        video_url=video_url,
        user_id=user.id,
        likes=0,
        comments=0,
    )
    db.add(heartbeat)
    db.commit()
    db.refresh(heartbeat)
    return heartbeat


def _delete_media_best_effort(heartbeat: Heartbeat) -> None:
    for url in (heartbeat.image_url, heartbeat.video_url):
        if not url:
            continue
        try:
            storage.delete_media(url)
        except Exception:
            logger.warning("Could not delete media %s of heartbeat %s", url, heartbeat.id, exc_info=True)


def delete_heartbeat(db: Session, heartbeat_id: int, user: User, as_admin: bool = False) -> None:
    """Attached media is removed first, best effort; the rows go in one transaction."""
    heartbeat = get_heartbeat(db, heartbeat_id)
    if as_admin:
        ensure_admin(user)
    else:
        ensure_owner(heartbeat.user_id, user, "delete this heartbeat")

    _delete_media_best_effort(heartbeat)

    comment_ids = select(HeartbeatComment.id).where(HeartbeatComment.heartbeat_id == heartbeat_id)
    try:
        db.query(CommentLike).filter(CommentLike.comment_id.in_(comment_ids)).delete(synchronize_session=False)
        db.query(HeartbeatComment).filter(HeartbeatComment.heartbeat_id == heartbeat_id).delete(synchronize_session=False)
        db.query(HeartbeatLike).filter(HeartbeatLike.heartbeat_id == heartbeat_id).delete(synchronize_session=False)
        db.query(Heartbeat).filter(Heartbeat.id == heartbeat_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Heartbeat %s deleted by user %s", heartbeat_id, user.id)


def _toggle_like(db: Session, like_model, subject_column, subject_id: int, counter_model, user: User):
    """
    Delete the user's like if there is one, otherwise insert it, moving the
    subject's counter in the same transaction. Returns (liked, total_likes).
    """
    removed = db.query(like_model).filter(
        subject_column == subject_id,
        like_model.user_id == user.id,
    ).delete(synchronize_session=False)

    counter = db.query(counter_model).filter(counter_model.id == subject_id)
    if removed:
        counter.filter(counter_model.likes > 0).update(
            {counter_model.likes: counter_model.likes - 1}, synchronize_session=False
        )
        liked = False
    else:
        db.add(like_model(**{subject_column.key: subject_id, "user_id": user.id}))
        counter.update({counter_model.likes: counter_model.likes + 1}, synchronize_session=False)
        liked = True

    try:
        db.commit()
    except IntegrityError:
        # An identical like landed concurrently; it stands and ours is dropped
        db.rollback()
        liked = True

    total = db.query(counter_model.likes).filter(counter_model.id == subject_id).scalar()
    return liked, total or 0


def toggle_like(db: Session, heartbeat_id: int, user: User):
    get_visible_heartbeat(db, heartbeat_id, user)
    return _toggle_like(db, HeartbeatLike, HeartbeatLike.heartbeat_id, heartbeat_id, Heartbeat, user)


def get_comment(db: Session, comment_id: int) -> HeartbeatComment:
    comment = db.query(HeartbeatComment).filter(HeartbeatComment.id == comment_id).first()
    if not comment:
        raise NotFoundError("Comment")
    return comment


def toggle_comment_like(db: Session, comment_id: int, user: User):
    comment = get_comment(db, comment_id)
    get_visible_heartbeat(db, comment.heartbeat_id, user)
    return _toggle_like(db, CommentLike, CommentLike.comment_id, comment_id, HeartbeatComment, user)


def add_comment(db: Session, heartbeat_id: int, user: User, content: str) -> HeartbeatComment:
    get_visible_heartbeat(db, heartbeat_id, user)
    content = _validate_content(content)

    comment = HeartbeatComment(heartbeat_id=heartbeat_id, user_id=user.id, content=content, likes=0)
    db.add(comment)
    db.query(Heartbeat).filter(Heartbeat.id == heartbeat_id).update(
        {Heartbeat.comments: Heartbeat.comments + 1}, synchronize_session=False
    )
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, comment_id: int, user: User, as_admin: bool = False) -> None:
    comment = get_comment(db, comment_id)
    if as_admin:
        ensure_admin(user)
    else:
        ensure_owner(comment.user_id, user, "delete this comment")

    heartbeat_id = comment.heartbeat_id
    try:
        db.query(CommentLike).filter(CommentLike.comment_id == comment_id).delete(synchronize_session=False)
        db.query(HeartbeatComment).filter(HeartbeatComment.id == comment_id).delete(synchronize_session=False)
        db.query(Heartbeat).filter(Heartbeat.id == heartbeat_id, Heartbeat.comments > 0).update(
            {Heartbeat.comments: Heartbeat.comments - 1}, synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise


def record_share(db: Session, heartbeat_id: int, share_type: str, user: User) -> str:
    """Log the share and hand back the canonical link to open or copy."""
    get_visible_heartbeat(db, heartbeat_id, user)
    if share_type not in SHARE_TYPES:
        raise ValidationError("share_type", f"Share type must be one of {', '.join(SHARE_TYPES)}")

    db.add(SharingLog(
        user_id=user.id,
        share_type=share_type,
        content_type="heartbeat",
        content_id=str(heartbeat_id),
    ))
    db.commit()
    return f"{BASE_URL.rstrip('/')}/heartbeat/{heartbeat_id}"
