import logging
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from chance.database import utcnow
from chance.errors import NotFoundError, ValidationError
from chance.models.heartbeat import Heartbeat
from chance.models.project_completed import ProjectCompleted
from chance.models.spotlight import Spotlight
from chance.models.user import User
from chance.services.access import ensure_admin
from chance.services.users import get_user

logger = logging.getLogger(__name__)

# Rolling windows; all_time has none
TIMEFRAMES = {
    "weekly": timedelta(days=7),
    "monthly": timedelta(days=30),
    "all_time": None,
}


def _leaderboard_query(db: Session, timeframe: str):
    if timeframe not in TIMEFRAMES:
        raise ValidationError("timeframe", f"Timeframe must be one of {', '.join(TIMEFRAMES)}", location="query")

    completed = (
        db.query(ProjectCompleted.user_id, func.count(ProjectCompleted.id).label("completed"))
        .group_by(ProjectCompleted.user_id)
        .subquery()
    )
    heartbeats = (
        db.query(Heartbeat.user_id, func.count(Heartbeat.id).label("heartbeats"))
        .filter(Heartbeat.visibility == "public")
        .group_by(Heartbeat.user_id)
        .subquery()
    )
    featured = (
        db.query(Spotlight.user_id, func.count(Spotlight.id).label("featured"))
        .group_by(Spotlight.user_id)
        .subquery()
    )

    query = (
        db.query(
            User,
            func.coalesce(completed.c.completed, 0),
            func.coalesce(heartbeats.c.heartbeats, 0),
            func.coalesce(featured.c.featured, 0),
        )
        .outerjoin(completed, completed.c.user_id == User.id)
        .outerjoin(heartbeats, heartbeats.c.user_id == User.id)
        .outerjoin(featured, featured.c.user_id == User.id)
    )

    window = TIMEFRAMES[timeframe]
    if window is not None:
        query = query.filter(func.coalesce(User.updated_at, User.created_at) >= utcnow() - window)

    # Ties keep signup order
    return query.order_by(User.influence.desc(), User.id.asc())


def get_rankings(db: Session, limit: int = 20, timeframe: str = "all_time") -> list[dict]:
    """
    Users by influence, highest first. Rank is 1-based and recomputed over
    whichever users fall inside the timeframe.
    """
    rows = _leaderboard_query(db, timeframe).limit(limit).all()
    return [
        {
            "rank": rank,
            "user": user,
            "projects_completed": completed,
            "heartbeats": heartbeats,
            "times_featured": featured,
        }
        for rank, (user, completed, heartbeats, featured) in enumerate(rows, start=1)
    ]


def get_user_profile(db: Session, user_id: int) -> dict:
    """One leaderboard row for a single user, ranked against everyone."""
    user = get_user(db, user_id)
    above = db.query(func.count(User.id)).filter(
        (User.influence > user.influence)
        | ((User.influence == user.influence) & (User.id < user.id))
    ).scalar()

    row = _leaderboard_query(db, "all_time").filter(User.id == user_id).first()
    if row is None:
        raise NotFoundError("User")
    _, completed, heartbeats, featured = row
    return {
        "rank": above + 1,
        "user": user,
        "projects_completed": completed,
        "heartbeats": heartbeats,
        "times_featured": featured,
    }


def feature_user(db: Session, user_id: int, requester: User) -> Spotlight:
    ensure_admin(requester)
    get_user(db, user_id)
    entry = Spotlight(user_id=user_id)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("User %s featured in spotlight by admin %s", user_id, requester.id)
    return entry
