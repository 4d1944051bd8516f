"""
Admin API - moderation and influence management.
Every route is gated by require_admin.
"""
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from chance.api.serializers import serialize_user
from chance.database import get_db
from chance.dependencies import require_admin
from chance.models.user import User
from chance.services import heartbeats as heartbeat_service
from chance.services import projects as project_service
from chance.services import users as user_service

router = APIRouter(prefix="/api/admin", tags=["admin"])


class RoleUpdateRequest(BaseModel):
    role: Literal["user", "admin"]


class InfluenceAdjustRequest(BaseModel):
    points: int  # may be negative


@router.get("/users")
def get_all_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [serialize_user(user, include_private=True) for user in user_service.list_users(db)]


@router.put("/users/{user_id}/role")
def update_user_role(
    user_id: int,
    data: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.update_role(db, user_id, data.role)
    return {"success": True, "role": user.role}


@router.post("/users/{user_id}/influence")
def adjust_influence(
    user_id: int,
    data: InfluenceAdjustRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = user_service.adjust_influence(db, user_id, data.points)
    return {"success": True, "influence": user.influence}


@router.delete("/projects/{project_id}")
def delete_project(project_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    project_service.delete_project(db, project_id, admin, as_admin=True)
    return {"success": True}


@router.delete("/heartbeats/{heartbeat_id}")
def delete_heartbeat(heartbeat_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    heartbeat_service.delete_heartbeat(db, heartbeat_id, admin, as_admin=True)
    return {"success": True}


@router.delete("/comments/{comment_id}")
def delete_comment(comment_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    heartbeat_service.delete_comment(db, comment_id, admin, as_admin=True)
    return {"success": True}
