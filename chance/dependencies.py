# chance/dependencies.py
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from chance.database import get_db
from chance.errors import AuthenticationError
from chance.models.user import User
from chance.services.access import ensure_admin
from chance.services.auth import decode_access_token

# Security scheme
bearer = HTTPBearer(description="Chance session token (JWT)", auto_error=False)


def _user_from_credentials(credentials: HTTPAuthorizationCredentials | None, db: Session) -> User | None:
    if credentials is None:
        return None
    user_id = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        # Token outlived its account
        raise AuthenticationError("Invalid or expired session")
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    user = _user_from_credentials(credentials, db)
    if user is None:
        raise AuthenticationError()
    return user


def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User | None:
    """Public endpoints personalise their output when a session is present."""
    return _user_from_credentials(credentials, db)


def require_admin(user: User = Depends(get_current_user)) -> User:
    return ensure_admin(user)
