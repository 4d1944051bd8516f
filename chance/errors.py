from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Malformed or missing input. Detail mirrors FastAPI's 422 body."""

    def __init__(self, field: str, message: str, location: str = "body"):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"loc": [location, field], "msg": message, "type": "value_error"}],
        )
        self.field = field
        self.location = location
        self.message = message


class AuthenticationError(HTTPException):
    def __init__(self, message: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class PermissionDeniedError(HTTPException):
    def __init__(self, message: str = "You are not allowed to do this"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class NotFoundError(HTTPException):
    def __init__(self, entity: str):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


class ConflictError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)


class StateError(HTTPException):
    """The entity exists but its current state rules the action out."""

    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)
