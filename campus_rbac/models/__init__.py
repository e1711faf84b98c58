"""Models package: import all models so metadata.create_all can discover them."""

from campus_rbac.models.permission import Permission, rbac_role_permissions
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.user_role import UserRoleAssignment
from campus_rbac.models.role import Role
from campus_rbac.models.user import User
from campus_rbac.models.audit_log import AuditLog

__all__ = [
    "Permission", "rbac_role_permissions", "RBACRole",
    "UserRoleAssignment", "Role", "User", "AuditLog",
]
