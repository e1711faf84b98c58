"""Custom exception classes for the authorization backend."""

from fastapi import HTTPException, status


class CampusRBACError(Exception):
    """Base exception carrying a machine-readable code."""

    code = "ERROR"

    def __init__(self, message: str = "An error occurred", code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(self.message)


class NotFoundError(CampusRBACError):
    """Raised when a role, permission or assignment is absent."""
    code = "NOT_FOUND"


class DuplicateNameError(CampusRBACError):
    """Raised when a catalog or role name collides."""
    code = "DUPLICATE_NAME"


class ValidationError(CampusRBACError):
    """Raised when required fields are missing or malformed."""
    code = "VALIDATION_ERROR"


class MirrorWriteFailure(CampusRBACError):
    """Raised by the legacy role bridge. Logged, never surfaced to callers."""
    code = "MIRROR_WRITE_FAILURE"


STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "DUPLICATE_NAME": status.HTTP_409_CONFLICT,
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "ROLE_IN_USE": status.HTTP_409_CONFLICT,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
}


def status_for_code(code: str | None) -> int:
    """Map an error code to an HTTP status; unknown codes are server errors."""
    return STATUS_BY_CODE.get(code or "", status.HTTP_500_INTERNAL_SERVER_ERROR)


# HTTP exception shortcuts
def forbidden(detail="Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
