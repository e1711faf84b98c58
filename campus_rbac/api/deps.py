"""Request dependencies: principal resolution and permission guards."""

from functools import lru_cache
from typing import Iterable

from fastapi import Depends
from sqlalchemy.orm import Session

from campus_rbac.core.config import settings
from campus_rbac.core.exceptions import forbidden
from campus_rbac.core.security import Principal, get_current_principal
from campus_rbac.db.session import SessionLocal, get_db
from campus_rbac.models.user import User
from campus_rbac.services.authorization_service import (
    AuthorizationEngine, Authorizer, MatchMode, build_authorizer,
)


@lru_cache(maxsize=1)
def _default_authorizer() -> Authorizer:
    engine = AuthorizationEngine(
        SessionLocal,
        timeout_seconds=settings.PERMISSION_CHECK_TIMEOUT_SECONDS,
        max_workers=settings.PERMISSION_CHECK_WORKERS,
    )
    return build_authorizer(engine, settings)


def get_authorizer() -> Authorizer:
    """FastAPI dependency returning the request-facing authorizer."""
    return _default_authorizer()


def get_principal(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> Principal:
    """Authenticated principal, with the legacy role filled from ``users`` when the token lacks it."""
    if principal.legacy_role is not None:
        return principal
    user = db.query(User).filter(User.id == principal.user_id).first()
    if user is None or user.role is None:
        return principal
    return Principal(
        user_id=principal.user_id,
        legacy_role=user.role.name,
        branch_id=principal.branch_id if principal.branch_id is not None else user.branch_id,
    )


class RequirePermission:
    """Dependency that checks the caller holds the required permission(s).

    Denials are 403s naming only the permissions this route asked for.
    """

    def __init__(self, permissions: Iterable[str], mode: MatchMode = MatchMode.ALL):
        if isinstance(permissions, str):
            permissions = [permissions]
        self.permissions = tuple(permissions)
        self.mode = mode

    def __call__(
        self,
        principal: Principal = Depends(get_principal),
        authorizer: Authorizer = Depends(get_authorizer),
    ) -> Principal:
        decision = authorizer.evaluate(principal, self.permissions, self.mode)
        if not decision.granted:
            raise forbidden(decision.denial_detail())
        return principal


def require_permission(permission: str) -> RequirePermission:
    return RequirePermission([permission])


def require_any_permission(*permissions: str) -> RequirePermission:
    return RequirePermission(permissions, MatchMode.ANY)


def require_all_permissions(*permissions: str) -> RequirePermission:
    return RequirePermission(permissions, MatchMode.ALL)
