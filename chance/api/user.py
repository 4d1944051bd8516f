import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from chance.api.serializers import serialize_heartbeat, serialize_project, serialize_user
from chance.database import get_db
from chance.dependencies import get_current_user
from chance.models.user import User
from chance.services import heartbeats as heartbeat_service
from chance.services import projects as project_service
from chance.services import users as user_service
from chance.services.auth import create_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


class SignupRequest(BaseModel):
    # Field rules live in the service so a taken email is reported first
    email: EmailStr
    first_name: str
    last_name: str
    whatsapp_number: str
    password: str


class SigninRequest(BaseModel):
    email: str
    password: str


class GoogleSigninRequest(BaseModel):
    id_token: str


class ProfileUpdate(BaseModel):
    bio: Optional[str] = Field(default=None, max_length=1000)
    school: Optional[str] = Field(default=None, max_length=255)
    instagram: Optional[str] = Field(default=None, max_length=255)
    whatsapp_number: Optional[str] = Field(default=None, max_length=20)
    profile_image_url: Optional[str] = Field(default=None, max_length=500)


def _session_response(user: User):
    return {
        "access_token": create_access_token(user.id),
        "token_type": "bearer",
        "user": serialize_user(user, include_private=True),
    }


@router.post("/signup", status_code=201)
def signup(data: SignupRequest, db: Session = Depends(get_db)):
    try:
        user = user_service.signup(
            db,
            email=data.email,
            first_name=data.first_name,
            last_name=data.last_name,
            whatsapp_number=data.whatsapp_number,
            password=data.password,
        )
        return _session_response(user)
    except HTTPException:
        raise
    except Exception:
        logger.exception("Signup failed")
        db.rollback()
        raise HTTPException(status_code=500, detail="Signup failed")


@router.post("/signin")
def signin(data: SigninRequest, db: Session = Depends(get_db)):
    return _session_response(user_service.signin(db, data.email, data.password))


@router.post("/oauth/google")
def signin_with_google(data: GoogleSigninRequest, db: Session = Depends(get_db)):
    """Exchange a verified Google ID token for a session, creating the account on first login."""
    return _session_response(user_service.signin_with_google(db, data.id_token))


@router.get("/profile")
def get_profile(
    user_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Defaults to the caller's own profile"""
    if user_id is None or user_id == user.id:
        return serialize_user(user, include_private=True)
    return serialize_user(user_service.get_user(db, user_id))


@router.put("/profile")
def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = user_service.update_profile(db, user, data.model_dump(exclude_unset=True))
    return serialize_user(user, include_private=True)


@router.get("/me/projects")
def get_my_projects(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    rows, _ = project_service.list_for_user(db, user.id, limit=None)
    return [
        serialize_project(project, votes, is_member=member, is_creator=creator)
        for project, votes, member, creator in rows
    ]


@router.get("/me/heartbeats")
def get_my_heartbeats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [serialize_heartbeat(*row) for row in heartbeat_service.list_user_heartbeats(db, user)]
