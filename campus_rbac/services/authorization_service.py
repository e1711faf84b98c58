"""Authorization engine: fail-closed permission checks.

``AuthorizationEngine`` answers questions about a user id from the
permission store. Route code talks to an ``Authorizer`` instead, which
works on the request ``Principal``; ``build_authorizer`` stacks the
legacy superuser bypass on top of the engine so the bypass can be
switched off or removed without touching the engine.
"""

import enum
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Set, Tuple, runtime_checkable

from sqlalchemy.orm import Session, sessionmaker

from campus_rbac.core.clock import utcnow
from campus_rbac.core.config import Settings, settings as default_settings
from campus_rbac.core.security import Principal
from campus_rbac.models.permission import Permission, rbac_role_permissions
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.user_role import UserRoleAssignment
from campus_rbac.services.assignment_service import active_filter

logger = logging.getLogger("campus_rbac.authz")


class MatchMode(str, enum.Enum):
    ALL = "all"
    ANY = "any"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of a check; ``missing`` names what the caller lacked."""

    granted: bool
    required: Tuple[str, ...]
    missing: Tuple[str, ...] = ()
    mode: MatchMode = MatchMode.ALL
    reason: str = ""

    def denial_detail(self) -> dict:
        """Body for a 403: names only the permissions involved in this check."""
        if self.mode == MatchMode.ANY and len(self.required) > 1:
            message = f"Permission denied. Required one of: {', '.join(self.required)}"
        else:
            message = f"Permission denied. Missing: {', '.join(self.missing or self.required)}"
        return {
            "message": message,
            "code": "FORBIDDEN",
            "required_permissions": list(self.required),
            "missing_permissions": list(self.missing or self.required),
        }


def _normalize(names: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(names, str):
        names = [names]
    return tuple(dict.fromkeys(n for n in names if n))


class AuthorizationEngine:
    """Evaluates a user's active role assignments against required permissions.

    Every lookup runs on a worker thread with its own session and a
    bounded wait. Errors and timeouts become denials; nothing raises.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        timeout_seconds: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._timeout = (
            timeout_seconds if timeout_seconds is not None
            else default_settings.PERMISSION_CHECK_TIMEOUT_SECONDS
        )
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or default_settings.PERMISSION_CHECK_WORKERS,
            thread_name_prefix="authz",
        )

    def _load_permissions(self, user_id: int) -> Set[str]:
        db: Session = self._session_factory()
        try:
            rows = (
                db.query(Permission.name)
                .join(rbac_role_permissions, rbac_role_permissions.c.permission_id == Permission.id)
                .join(UserRoleAssignment, UserRoleAssignment.role_id == rbac_role_permissions.c.role_id)
                # inner join: assignments whose role is gone contribute nothing
                .join(RBACRole, RBACRole.id == UserRoleAssignment.role_id)
                .filter(UserRoleAssignment.user_id == user_id, active_filter(utcnow()))
                .distinct()
                .all()
            )
            return {name for (name,) in rows}
        finally:
            db.close()

    def _resolve(self, user_id: int) -> Set[str]:
        future = self._executor.submit(self._load_permissions, user_id)
        return future.result(timeout=self._timeout)

    def get_user_permissions(self, user_id: int) -> Set[str]:
        """Union of permission names across the user's active roles; empty on failure."""
        try:
            return self._resolve(user_id)
        except FuturesTimeoutError:
            logger.error("Permission lookup for user %s timed out after %ss", user_id, self._timeout)
        except Exception:
            logger.exception("Permission lookup for user %s failed", user_id)
        return set()

    def evaluate(
        self,
        user_id: int,
        permission_names: Iterable[str],
        mode: MatchMode = MatchMode.ALL,
    ) -> AuthorizationDecision:
        try:
            required = _normalize(permission_names or ())
        except TypeError:
            logger.error("Malformed permission list %r for user %s", permission_names, user_id)
            return AuthorizationDecision(False, (), mode=mode, reason="malformed request")
        if not required:
            return AuthorizationDecision(False, required, mode=mode, reason="no permission requested")

        try:
            granted_set = self._resolve(user_id)
        except FuturesTimeoutError:
            logger.error("Permission check for user %s timed out; denying %s", user_id, required)
            return AuthorizationDecision(False, required, required, mode, "timeout")
        except Exception:
            logger.exception("Permission check for user %s failed; denying %s", user_id, required)
            return AuthorizationDecision(False, required, required, mode, "error")

        missing = tuple(p for p in required if p not in granted_set)
        if mode == MatchMode.ANY:
            granted = len(missing) < len(required)
        else:
            granted = not missing

        if not granted:
            logger.info("DENIED user=%s mode=%s missing=%s", user_id, mode.value, missing)
            return AuthorizationDecision(False, required, missing, mode, "missing permission")
        return AuthorizationDecision(True, required, (), mode, "granted")

    def check_permission(self, user_id: int, permission_name: str) -> bool:
        return self.evaluate(user_id, [permission_name]).granted

    def check_any_permission(self, user_id: int, permission_names: Iterable[str]) -> bool:
        return self.evaluate(user_id, permission_names, MatchMode.ANY).granted

    def check_all_permissions(self, user_id: int, permission_names: Iterable[str]) -> bool:
        return self.evaluate(user_id, permission_names, MatchMode.ALL).granted

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)


@runtime_checkable
class Authorizer(Protocol):
    """What route handlers depend on."""

    def evaluate(self, principal: Principal, permission_names: Iterable[str],
                 mode: MatchMode = MatchMode.ALL) -> AuthorizationDecision: ...

    def check_permission(self, principal: Principal, permission_name: str) -> bool: ...

    def check_any_permission(self, principal: Principal, permission_names: Iterable[str]) -> bool: ...

    def check_all_permissions(self, principal: Principal, permission_names: Iterable[str]) -> bool: ...

    def get_user_permissions(self, principal: Principal) -> Set[str]: ...


class _AuthorizerBase:
    def check_permission(self, principal: Principal, permission_name: str) -> bool:
        return self.evaluate(principal, [permission_name]).granted

    def check_any_permission(self, principal: Principal, permission_names: Iterable[str]) -> bool:
        return self.evaluate(principal, permission_names, MatchMode.ANY).granted

    def check_all_permissions(self, principal: Principal, permission_names: Iterable[str]) -> bool:
        return self.evaluate(principal, permission_names, MatchMode.ALL).granted


class RBACAuthorizer(_AuthorizerBase):
    """Authorizer backed purely by role assignments."""

    def __init__(self, engine: AuthorizationEngine):
        self.engine = engine

    def evaluate(self, principal, permission_names, mode=MatchMode.ALL):
        return self.engine.evaluate(principal.user_id, permission_names, mode)

    def get_user_permissions(self, principal: Principal) -> Set[str]:
        return self.engine.get_user_permissions(principal.user_id)


class SuperuserBypassAuthorizer(_AuthorizerBase):
    """Grants everything to principals whose legacy role is the superuser sentinel.

    Bridges the legacy single-role field while users migrate to role
    assignments. Delete this wrapper (or set SUPERUSER_BYPASS_ENABLED to
    false) once no superuser depends on it.
    """

    def __init__(self, inner: Authorizer, superuser_role_name: str):
        self.inner = inner
        self.superuser_role_name = superuser_role_name

    def is_superuser(self, principal: Principal) -> bool:
        return bool(principal.legacy_role) and principal.legacy_role == self.superuser_role_name

    def evaluate(self, principal, permission_names, mode=MatchMode.ALL):
        if self.is_superuser(principal):
            try:
                required = _normalize(permission_names or ())
            except TypeError:
                logger.error("Malformed permission list %r for user %s", permission_names, principal.user_id)
                return AuthorizationDecision(False, (), mode=mode, reason="malformed request")
            return AuthorizationDecision(True, required, (), mode, "superuser bypass")
        return self.inner.evaluate(principal, permission_names, mode)

    def get_user_permissions(self, principal: Principal) -> Set[str]:
        return self.inner.get_user_permissions(principal)


def build_authorizer(engine: AuthorizationEngine, config: Optional[Settings] = None) -> Authorizer:
    """Compose the request-facing authorizer from deployment settings."""
    config = config or default_settings
    authorizer: Authorizer = RBACAuthorizer(engine)
    if config.SUPERUSER_BYPASS_ENABLED:
        authorizer = SuperuserBypassAuthorizer(authorizer, config.SUPERUSER_ROLE_NAME)
    return authorizer
