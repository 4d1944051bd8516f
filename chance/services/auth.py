import logging
import os
import random
import re
from datetime import datetime, timedelta, timezone

from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from jose import jwt, JWTError
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash, check_password_hash

from chance.errors import AuthenticationError
from chance.models.user import User

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "chance-dev-secret-change-me")
JWT_ALGO = "HS256"
ACCESS_TOKEN_TTL_HOURS = int(os.getenv("ACCESS_TOKEN_TTL_HOURS", "72"))

INVALID_CREDENTIALS = "Invalid email or password"


# --- Passwords ---

def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


# --- Session tokens ---

def create_access_token(user_id: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=ACCESS_TOKEN_TTL_HOURS)).timestamp()),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALGO)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a session token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGO])
        return int(payload["sub"])
    except (JWTError, KeyError, ValueError) as e:
        logger.info("Rejected session token: %s", e)
        raise AuthenticationError("Invalid or expired session")


# --- Google sign-in ---

def verify_google_token(token: str) -> dict:
    """
    Verify a Google ID token and return its claims.
    Raises AuthenticationError for anything Google does not vouch for.
    """
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    if not client_id:
        logger.error("GOOGLE_CLIENT_ID is not set; Google sign-in is unavailable")
        raise AuthenticationError("Google sign-in is not configured")

    try:
        return id_token.verify_oauth2_token(token, google_requests.Request(), client_id)
    except ValueError as e:
        # e.g. "Token expired", "Wrong recipient"
        logger.info("Google token validation failed: %s", e)
        raise AuthenticationError("Invalid Google token")


# --- Usernames ---

def base_username(first_name: str | None, last_name: str | None, phone: str | None) -> str:
    digits = re.sub(r"\D", "", phone or "")
    suffix = digits[-4:] if digits else str(random.randint(1000, 9999))
    raw = f"{first_name or 'user'}{last_name or ''}{suffix}"
    return re.sub(r"\s+", "", raw).lower()


def unique_username(db: Session, first_name: str | None, last_name: str | None, phone: str | None) -> str:
    """Name + last 4 phone digits, with 1, 2, ... appended until it is free."""
    base = base_username(first_name, last_name, phone)
    username = base
    counter = 1
    while db.query(User.id).filter(User.username == username).first() is not None:
        username = f"{base}{counter}"
        counter += 1
    return username
