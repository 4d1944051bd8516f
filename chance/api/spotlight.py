from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chance.api.serializers import serialize_ranking
from chance.database import get_db
from chance.dependencies import require_admin
from chance.models.user import User
from chance.services import spotlight as spotlight_service

router = APIRouter(prefix="/api/spotlight", tags=["spotlight"])


@router.get("/rankings")
def get_rankings(
    limit: int = Query(20, ge=1, le=100),
    timeframe: Literal["weekly", "monthly", "all_time"] = "all_time",
    db: Session = Depends(get_db),
):
    return [serialize_ranking(row) for row in spotlight_service.get_rankings(db, limit=limit, timeframe=timeframe)]


@router.get("/users/{user_id}")
def get_user_profile(user_id: int, db: Session = Depends(get_db)):
    row = spotlight_service.get_user_profile(db, user_id)
    return {
        **serialize_ranking(row),
        "created_at": row["user"].created_at.isoformat(),
    }


@router.post("/users/{user_id}/feature", status_code=201)
def feature_user(user_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    entry = spotlight_service.feature_user(db, user_id, admin)
    return {"id": entry.id, "user_id": entry.user_id, "created_at": entry.created_at.isoformat()}
