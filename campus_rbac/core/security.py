"""JWT principal resolution.

Tokens are issued by the upstream auth service; this module only
verifies them and turns the claims into a ``Principal``.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from campus_rbac.core.config import settings
from campus_rbac.core.exceptions import unauthorized

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as resolved at the request boundary."""

    user_id: int
    legacy_role: Optional[str] = None
    branch_id: Optional[int] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (used by seed tooling and tests)."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise unauthorized("Invalid or expired token")


def principal_from_claims(payload: dict) -> Principal:
    user_id = payload.get("sub")
    if user_id is None:
        raise unauthorized("Invalid token payload")
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise unauthorized("Invalid token payload")
    branch_id = payload.get("branch_id")
    if branch_id is not None:
        try:
            branch_id = int(branch_id)
        except (TypeError, ValueError):
            raise unauthorized("Invalid token payload")
    return Principal(
        user_id=user_id,
        legacy_role=payload.get("role"),
        branch_id=branch_id,
    )


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> Principal:
    """Resolve the caller from the Bearer token; 401 when missing or invalid."""
    if credentials is None:
        raise unauthorized()
    return principal_from_claims(decode_token(credentials.credentials))
