import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from chance.api.serializers import serialize_project, serialize_user_summary
from chance.database import get_db
from chance.dependencies import get_current_user, get_optional_user, require_admin
from chance.models.user import User
from chance.services import projects as project_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/project", tags=["project"])

Status = Literal["open", "ongoing", "completed"]
Visibility = Literal["public", "private"]


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=256)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=100)
    impact: str = Field(min_length=1)
    team_size: int = Field(gt=0)
    effort: str = Field(min_length=1, max_length=100)
    people_influenced: int = Field(gt=0)
    type_of_people: Optional[str] = Field(default=None, max_length=255)
    required_tools: List[str] = []
    action_plan: List[str] = []
    collaboration: Optional[str] = None
    visibility: Visibility = "public"


class ProjectUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    impact: Optional[str] = Field(default=None, min_length=1)
    team_size: Optional[int] = Field(default=None, gt=0)
    effort: Optional[str] = Field(default=None, min_length=1, max_length=100)
    people_influenced: Optional[int] = Field(default=None, gt=0)
    type_of_people: Optional[str] = Field(default=None, max_length=255)
    required_tools: Optional[List[str]] = None
    action_plan: Optional[List[str]] = None
    collaboration: Optional[str] = None
    visibility: Optional[Visibility] = None
    status: Optional[Status] = None
    admin_notes: Optional[str] = None


class LeaveRequest(BaseModel):
    user_id: Optional[int] = None  # defaults to the caller


class Award(BaseModel):
    user_id: int
    points: int = Field(ge=0)


class CompleteRequest(BaseModel):
    points: List[Award] = []


@router.get("/")
def get_all_projects(
    category: Optional[str] = None,
    status: Optional[Status] = None,
    sort: Literal["newest", "upvotes"] = "newest",
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Public projects, one keyset page at a time. Pass back next_cursor as-is."""
    rows, next_cursor = project_service.list_projects(
        db, category=category, status=status, sort=sort, limit=limit, cursor=cursor
    )
    return {
        "projects": [serialize_project(project, votes) for project, votes in rows],
        "next_cursor": next_cursor,
    }


@router.get("/mine")
def get_user_projects(
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Projects the caller created or joined"""
    rows, next_cursor = project_service.list_for_user(db, user.id, limit=limit, cursor=cursor)
    return {
        "projects": [
            serialize_project(project, votes, is_member=member, is_creator=creator)
            for project, votes, member, creator in rows
        ],
        "next_cursor": next_cursor,
    }


@router.get("/{project_id}")
def get_project(
    project_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    project = project_service.get_visible_project(db, project_id, user)
    return serialize_project(
        project,
        project_service.vote_count(db, project_id),
        member_count=project_service.member_count(db, project_id),
        is_member=user is not None and project_service.is_member(db, project_id, user.id),
        is_creator=user is not None and project.creator_id == user.id,
    )


@router.post("/", status_code=201)
def create_project(
    data: ProjectCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        project = project_service.create_project(db, user, data.model_dump())
        return serialize_project(project, 0, member_count=1, is_member=True, is_creator=True)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error creating project")
        db.rollback()
        raise HTTPException(status_code=500, detail="Failed to create project")


@router.put("/{project_id}")
def update_project(
    project_id: int,
    data: ProjectUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = project_service.update_project(db, project_id, user, data.model_dump(exclude_unset=True))
    return serialize_project(project, project_service.vote_count(db, project_id))


@router.delete("/{project_id}")
def delete_project(
    project_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        project_service.delete_project(db, project_id, user)
        return {"success": True}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error deleting project %s", project_id)
        raise HTTPException(status_code=500, detail="Failed to delete project")


@router.post("/{project_id}/join")
def join_project(
    project_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project_service.join_project(db, project_id, user)
    return {"success": True}


@router.post("/{project_id}/leave")
def leave_project(
    project_id: int,
    data: Optional[LeaveRequest] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    member_id = data.user_id if data else None
    project_service.leave_project(db, project_id, user, member_id=member_id)
    return {"success": True}


@router.post("/{project_id}/upvote")
def upvote_project(
    project_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project_service.upvote_project(db, project_id, user)
    return {"success": True}


@router.post("/{project_id}/complete")
def complete_and_award(
    project_id: int,
    data: CompleteRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin only: complete project and award points"""
    try:
        project_service.complete_and_award(
            db, project_id, [award.model_dump() for award in data.points], admin
        )
        return {"success": True}
    except HTTPException:
        raise
    except Exception:
        logger.exception("Error completing project %s", project_id)
        raise HTTPException(status_code=500, detail="Failed to complete project")


@router.get("/{project_id}/members")
def get_members(
    project_id: int,
    user: Optional[User] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    return [serialize_user_summary(member) for member in project_service.list_members(db, project_id, user)]
