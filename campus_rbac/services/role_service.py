"""Role registry: define, update, list, and delete RBAC roles."""

import logging
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_rbac.models.permission import Permission
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.user_role import UserRoleAssignment
from campus_rbac.core.essential import EssentialPermissionSet, get_essential_permissions
from campus_rbac.core.exceptions import (
    CampusRBACError, DuplicateNameError, NotFoundError, ValidationError,
)
from campus_rbac.core.results import as_result
from campus_rbac.services.permission_service import PermissionService
from campus_rbac.services.legacy_bridge import RoleCreated, RoleEventBus, role_event_bus

logger = logging.getLogger("campus_rbac")


def _scope_filter(branch_id: Optional[int]):
    if branch_id is None:
        return RBACRole.branch_id.is_(None)
    return RBACRole.branch_id == branch_id


class RoleService:
    """Manages branch-scoped and global roles and their permission sets."""

    @staticmethod
    def _create_role(
        db: Session,
        branch_id: Optional[int],
        name: str,
        permissions: List[Permission],
        description: Optional[str],
        is_system: bool,
        essential: Optional[EssentialPermissionSet],
        event_bus: Optional[RoleEventBus],
    ) -> RBACRole:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Role name is required")

        scope = f"branch {branch_id}" if branch_id is not None else "global scope"
        existing = db.query(RBACRole).filter(RBACRole.name == name, _scope_filter(branch_id)).first()
        if existing:
            raise DuplicateNameError(f"Role '{name}' already exists in {scope}")

        essential = essential if essential is not None else get_essential_permissions()
        baseline = PermissionService.ensure_permissions(
            db, essential, description="Essential baseline permission",
        )

        by_id: Dict[int, Permission] = {}
        for perm in list(permissions) + baseline:
            by_id.setdefault(perm.id, perm)

        role = RBACRole(
            branch_id=branch_id,
            name=name,
            description=description or "",
            is_system=is_system,
            permissions=list(by_id.values()),
        )
        db.add(role)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent create won the (branch_id, name) constraint
            db.rollback()
            raise DuplicateNameError(f"Role '{name}' already exists in {scope}")
        db.refresh(role)
        logger.info(
            "Created role %s '%s' (branch=%s) with %d permissions",
            role.id, role.name, role.branch_id, len(role.permissions),
        )

        (event_bus or role_event_bus).publish(RoleCreated(
            role_id=role.id,
            name=role.name,
            permission_names=tuple(role.permission_names),
            description=role.description,
            branch_id=role.branch_id,
        ))
        return role

    @staticmethod
    @as_result("ROLE_CREATE_ERROR", "Role created successfully", "Could not create role")
    def define_role(
        db: Session,
        branch_id: Optional[int],
        name: str,
        module_names: Iterable[str],
        description: Optional[str] = None,
        is_system: bool = False,
        essential: Optional[EssentialPermissionSet] = None,
        event_bus: Optional[RoleEventBus] = None,
    ) -> RBACRole:
        """Create a role from module selections ("attendance", "grades", ...).

        Every permission of each module is granted, plus the essential
        set. ``branch_id=None`` creates a global role.
        """
        permissions = PermissionService.resolve_modules(db, module_names or [])
        return RoleService._create_role(
            db, branch_id, name, permissions, description, is_system, essential, event_bus,
        )

    @staticmethod
    @as_result("ROLE_CREATE_ERROR", "Role created successfully", "Could not create role")
    def create_role_with_permissions(
        db: Session,
        branch_id: Optional[int],
        name: str,
        permission_ids: Iterable[int],
        description: Optional[str] = None,
        is_system: bool = False,
        essential: Optional[EssentialPermissionSet] = None,
        event_bus: Optional[RoleEventBus] = None,
    ) -> RBACRole:
        """Create a role from explicit permission ids, plus the essential set."""
        permissions = PermissionService.get_many(db, permission_ids or [])
        return RoleService._create_role(
            db, branch_id, name, permissions, description, is_system, essential, event_bus,
        )

    @staticmethod
    @as_result("ROLE_UPDATE_ERROR", "Role permissions updated", "Could not update role permissions")
    def update_role_permissions(db: Session, role_id: int, permission_ids: Iterable[int]) -> RBACRole:
        """Replace the role's permission set with exactly ``permission_ids``.

        The essential set is not re-applied here; callers that want to keep
        baseline permissions must include them.
        """
        role = RoleService.get_role_by_id(db, role_id)
        role.permissions = PermissionService.get_many(db, permission_ids)
        db.commit()
        db.refresh(role)
        logger.info("Replaced permissions of role %s: %s", role.id, role.permission_names)
        return role

    @staticmethod
    @as_result("ROLE_DELETE_ERROR", "Role deleted successfully", "Could not delete role")
    def delete_role(db: Session, role_id: int, force: bool = False) -> Dict[str, Any]:
        """Hard-delete a role. Assignments are never cascaded.

        Roles that still have assignments are refused unless ``force`` is
        set; forced deletes leave the assignments behind and they grant
        nothing from then on.
        """
        role = RoleService.get_role_by_id(db, role_id)
        if role.is_system:
            raise ValidationError(f"System role '{role.name}' cannot be deleted")

        assignment_count = (
            db.query(UserRoleAssignment)
            .filter(UserRoleAssignment.role_id == role_id)
            .count()
        )
        if assignment_count and not force:
            raise CampusRBACError(
                f"Role '{role.name}' still has {assignment_count} assignment(s); remove them first",
                code="ROLE_IN_USE",
            )
        if assignment_count:
            logger.warning(
                "Force-deleting role %s leaves %d orphaned assignment(s)", role_id, assignment_count,
            )

        snapshot = {
            "id": role.id,
            "name": role.name,
            "branch_id": role.branch_id,
            "orphaned_assignments": assignment_count,
        }
        db.delete(role)
        db.commit()
        return snapshot

    @staticmethod
    def get_roles(
        db: Session,
        branch_id: Optional[int] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """List roles visible from a branch: its own roles plus every global role.

        Without a branch, all roles are returned.
        """
        query = db.query(RBACRole)
        if branch_id is not None:
            query = query.filter(or_(RBACRole.branch_id == branch_id, RBACRole.branch_id.is_(None)))

        total = query.count()
        roles = query.order_by(RBACRole.id).offset(offset).limit(limit).all()
        return {"roles": roles, "total": total, "limit": limit, "offset": offset}

    @staticmethod
    def get_role_by_id(db: Session, role_id: int) -> RBACRole:
        role = db.query(RBACRole).filter(RBACRole.id == role_id).first()
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        return role


role_service = RoleService()
