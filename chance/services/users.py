import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chance.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from chance.models.user import User, USER_ROLES
from chance.services.auth import (
    INVALID_CREDENTIALS,
    hash_password,
    unique_username,
    verify_google_token,
    verify_password,
)

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("bio", "school", "instagram", "whatsapp_number", "profile_image_url")
MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
MAX_NAME_LENGTH = 255
PHONE_LENGTH = (10, 20)
USERNAME_ATTEMPTS = 5
EMAIL_TAKEN = "User with this email already exists"


def _email_taken(db: Session, email: str) -> bool:
    return db.query(User.id).filter(User.email == email).first() is not None


def _validate_signup(first_name: str, last_name: str, whatsapp_number: str, password: str) -> None:
    for field, value, label in (("first_name", first_name, "First name"), ("last_name", last_name, "Last name")):
        if not value.strip():
            raise ValidationError(field, f"{label} is required")
        if len(value.strip()) > MAX_NAME_LENGTH:
            raise ValidationError(field, f"{label} is too long")

    low, high = PHONE_LENGTH
    if not low <= len(whatsapp_number.strip()) <= high:
        raise ValidationError("whatsapp_number", f"WhatsApp number must be {low} to {high} characters")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise ValidationError("password", f"Password must be at most {MAX_PASSWORD_LENGTH} characters")


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User")
    return user


def signup(db: Session, email: str, first_name: str, last_name: str, whatsapp_number: str, password: str) -> User:
    """
    Register a credential account. New accounts are unverified users.
    A taken email is a conflict whatever the other fields hold.
    """
    email = email.strip().lower()
    if _email_taken(db, email):
        raise ConflictError(EMAIL_TAKEN)

    _validate_signup(first_name, last_name, whatsapp_number, password)
    password_hash = hash_password(password)

    for _ in range(USERNAME_ATTEMPTS):
        user = User(
            email=email,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            username=unique_username(db, first_name, last_name, whatsapp_number),
            whatsapp_number=whatsapp_number.strip(),
            password_hash=password_hash,
            profile_completed=False,
            role="user",
            is_verified=False,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent signup took the email or the username first
            db.rollback()
            if _email_taken(db, email):
                raise ConflictError(EMAIL_TAKEN)
            logger.info("Username %s was taken concurrently, retrying", user.username)
            continue
        db.refresh(user)
        logger.info("New account %s (%s)", user.id, user.username)
        return user

    raise ConflictError("Could not allocate a username, please try again")


def signin(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    # Same failure for unknown email, OAuth-only account and wrong password
    if not user or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)
    return user


def signin_with_google(db: Session, token: str) -> User:
    """Verify a Google ID token, provisioning the account on first login."""
    claims = verify_google_token(token)
    email = (claims.get("email") or "").strip().lower()
    if not email:
        raise AuthenticationError("Invalid Google token")

    user = db.query(User).filter(User.email == email).first()
    if user:
        return user

    first_name = claims.get("given_name") or "User"
    last_name = claims.get("family_name") or ""
    phone = claims.get("phone_number") or ""
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name,
        username=unique_username(db, first_name, last_name, phone),
        whatsapp_number=phone,
        profile_image_url=claims.get("picture"),
        profile_completed=False,
        role="user",
        is_verified=bool(claims.get("email_verified", False)),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Provisioned Google account %s (%s)", user.id, user.username)
    return user


def update_profile(db: Session, user: User, fields: dict) -> User:
    """Only the caller's own bio, contact and image fields can change."""
    for name, value in fields.items():
        if name not in PROFILE_FIELDS:
            raise ValidationError(name, "Field cannot be changed")
        setattr(user, name, value)

    user.profile_completed = bool(user.bio and user.school)
    db.commit()
    db.refresh(user)
    return user


# --- Admin ---

def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.id.asc()).all()


def update_role(db: Session, user_id: int, role: str) -> User:
    if role not in USER_ROLES:
        raise ValidationError("role", f"Role must be one of {', '.join(USER_ROLES)}")
    user = get_user(db, user_id)
    user.role = role
    db.commit()
    db.refresh(user)
    logger.info("User %s is now %s", user.id, role)
    return user


def adjust_influence(db: Session, user_id: int, points: int) -> User:
    updated = db.query(User).filter(User.id == user_id).update(
        {User.influence: User.influence + points}, synchronize_session=False
    )
    if not updated:
        db.rollback()
        raise NotFoundError("User")
    db.commit()
    return get_user(db, user_id)
