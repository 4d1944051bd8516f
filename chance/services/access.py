from chance.errors import PermissionDeniedError
from chance.models.user import User


def ensure_admin(user: User) -> User:
    """Single gate for every admin-only operation."""
    if user is None or not user.is_admin:
        raise PermissionDeniedError("Admin access required")
    return user


def ensure_owner(owner_id: int, user: User, action: str) -> None:
    if user is None or owner_id != user.id:
        raise PermissionDeniedError(f"You are not allowed to {action}")
