"""Permission catalog: the canonical set of ``resource:action`` entries."""

import logging
import re
from typing import Optional, List, Dict, Any, Iterable

from sqlalchemy.orm import Session

from campus_rbac.models.permission import Permission
from campus_rbac.core.exceptions import DuplicateNameError, NotFoundError, ValidationError
from campus_rbac.core.results import as_result

logger = logging.getLogger("campus_rbac")

PERMISSION_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*:[a-z][a-z0-9_]*$")


def split_permission_name(name: str) -> tuple[str, str]:
    """Split ``students:read`` into ``("students", "read")``."""
    if not name or not PERMISSION_NAME_RE.match(name):
        raise ValidationError(
            f"Permission name '{name}' must be lowercase 'resource:action'"
        )
    resource, action = name.split(":", 1)
    return resource, action


class PermissionService:
    """Create, list, and group catalog permissions."""

    @staticmethod
    def _create(
        db: Session,
        name: str,
        resource: str,
        action: str,
        description: Optional[str] = None,
    ) -> Permission:
        parsed_resource, parsed_action = split_permission_name(name)
        if (resource, action) != (parsed_resource, parsed_action):
            raise ValidationError(
                f"Permission '{name}' does not match resource '{resource}' and action '{action}'"
            )
        if PermissionService.get_by_name(db, name) is not None:
            raise DuplicateNameError(f"Permission '{name}' already exists")

        permission = Permission(
            name=name,
            resource=resource,
            action=action,
            description=description or "",
        )
        db.add(permission)
        db.commit()
        db.refresh(permission)
        return permission

    @staticmethod
    @as_result("PERMISSION_CREATE_ERROR", "Permission created", "Could not create permission")
    def create_permission(
        db: Session,
        name: str,
        resource: str,
        action: str,
        description: Optional[str] = None,
    ) -> Permission:
        """Add a catalog entry. Fails with DUPLICATE_NAME if the name exists."""
        return PermissionService._create(db, name, resource, action, description)

    @staticmethod
    @as_result("PERMISSION_UPDATE_ERROR", "Permission updated", "Could not update permission")
    def update_permission_description(db: Session, permission_id: int, description: str) -> Permission:
        """Change a permission's description. Name, resource and action never change."""
        permission = PermissionService.get(db, permission_id)
        permission.description = description
        db.commit()
        db.refresh(permission)
        return permission

    @staticmethod
    def get(db: Session, permission_id: int) -> Permission:
        permission = db.query(Permission).filter(Permission.id == permission_id).first()
        if not permission:
            raise NotFoundError(f"Permission {permission_id} not found")
        return permission

    @staticmethod
    def get_by_name(db: Session, name: str) -> Optional[Permission]:
        return db.query(Permission).filter(Permission.name == name).first()

    @staticmethod
    def get_many(db: Session, permission_ids: Iterable[int]) -> List[Permission]:
        """Fetch permissions by id; raises NotFoundError naming any unknown ids."""
        wanted = set(permission_ids)
        if not wanted:
            return []
        found = db.query(Permission).filter(Permission.id.in_(wanted)).all()
        missing = wanted - {p.id for p in found}
        if missing:
            raise NotFoundError(f"Permissions not found: {sorted(missing)}")
        return found

    @staticmethod
    def list_permissions(db: Session, limit: int = 100, offset: int = 0) -> Dict[str, Any]:
        """Paginated catalog listing, ordered by name."""
        query = db.query(Permission)
        total = query.count()
        permissions = (
            query.order_by(Permission.resource, Permission.name)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "permissions": permissions,
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    @staticmethod
    def group_by_resource(db: Session) -> Dict[str, List[Dict[str, str]]]:
        """Map each resource to its ``{"action", "permission"}`` entries."""
        grouped: Dict[str, List[Dict[str, str]]] = {}
        for perm in db.query(Permission).order_by(Permission.resource, Permission.id).all():
            grouped.setdefault(perm.resource, []).append(
                {"action": perm.action, "permission": perm.name}
            )
        return grouped

    @staticmethod
    def resolve_modules(db: Session, module_names: Iterable[str]) -> List[Permission]:
        """Expand module selections ("students") into their concrete permissions.

        Unknown modules resolve to nothing and are logged.
        """
        modules = {m.strip().lower() for m in module_names if m and m.strip()}
        if not modules:
            return []
        permissions = (
            db.query(Permission)
            .filter(Permission.resource.in_(modules))
            .order_by(Permission.name)
            .all()
        )
        unknown = modules - {p.resource for p in permissions}
        if unknown:
            logger.warning("Unknown permission modules ignored: %s", sorted(unknown))
        return permissions

    @staticmethod
    def ensure_permissions(db: Session, names: Iterable[str], description: str = "") -> List[Permission]:
        """Return catalog rows for ``names``, creating any that are missing.

        Flushes but does not commit; the caller's transaction owns the write.
        """
        result = []
        for name in dict.fromkeys(names):
            permission = PermissionService.get_by_name(db, name)
            if permission is None:
                resource, action = split_permission_name(name)
                permission = Permission(
                    name=name, resource=resource, action=action, description=description,
                )
                db.add(permission)
                db.flush()
                logger.info("Added missing catalog permission '%s'", name)
            result.append(permission)
        return result


permission_service = PermissionService()
