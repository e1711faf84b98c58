"""Seed the built-in system roles and the super-admin user."""

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from campus_rbac.core.config import settings
from campus_rbac.models.permission import Permission
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.role import Role
from campus_rbac.models.user import User
from campus_rbac.services.legacy_bridge import RoleEventBus
from campus_rbac.services.role_service import role_service

BRANCH_ADMIN_PERMISSIONS = [
    "branches:read", "branches:update",
    "users:create", "users:read", "users:update",
    "roles:read",
    "students:create", "students:read", "students:update", "students:delete",
    "teachers:create", "teachers:read", "teachers:update", "teachers:delete",
    "courses:create", "courses:read", "courses:update", "courses:delete",
    "attendance:create", "attendance:read", "attendance:update",
    "grades:create", "grades:read", "grades:update",
    "admissions:create", "admissions:read", "admissions:update",
    "finance:create", "finance:read", "finance:update",
    "payroll:create", "payroll:read", "payroll:update",
    "library:create", "library:read", "library:update",
    "health:create", "health:read", "health:update",
    "analytics:read", "reports:generate", "reports:export",
    "announcements:create", "announcements:read",
    "messaging:send", "messaging:read",
    "leave:create", "leave:read", "leave:update",
    "events:read", "events:create", "events:update",
]

TEACHER_PERMISSIONS = [
    "branches:read",
    "teachers:read",
    "students:read",
    "courses:read", "courses:update",
    "attendance:create", "attendance:read", "attendance:update",
    "grades:create", "grades:read", "grades:update",
    "assignments:create", "assignments:read", "assignments:update",
    "announcements:create", "announcements:read",
    "messaging:send", "messaging:read",
    "library:read",
    "payroll:read_own",
    "leave:create", "leave:read",
]

STUDENT_PERMISSIONS = [
    "students:read_own",
    "courses:read",
    "attendance:read_own",
    "grades:read_own",
    "assignments:read", "assignments:submit",
    "announcements:read",
    "messaging:read",
    "library:read",
    "finance:read_own",
]

# None means every permission in the catalog
SYSTEM_ROLES = [
    (settings.SUPERUSER_ROLE_NAME, "System administrator with full access to all resources", None),
    ("BranchAdmin", "Branch administrator with management access to branch resources", BRANCH_ADMIN_PERMISSIONS),
    ("Teacher", "Teaching staff with access to classes and student management", TEACHER_PERMISSIONS),
    ("Student", "Student with access to own academic records", STUDENT_PERMISSIONS),
]


def _permission_ids(db: Session, names: Optional[Iterable[str]]) -> list[int]:
    query = db.query(Permission.id)
    if names is not None:
        query = query.filter(Permission.name.in_(list(names)))
    return [pid for (pid,) in query.all()]


def seed_roles(
    db: Session,
    branch_ids: Optional[Iterable[int]] = None,
    event_bus: Optional[RoleEventBus] = None,
) -> int:
    """Create the system roles globally and in each given branch. Existing roles are left alone."""
    scopes: list[Optional[int]] = [None]
    scopes.extend(branch_ids if branch_ids is not None else settings.SEED_BRANCH_IDS)

    created = 0
    for branch_id in scopes:
        for name, description, permission_names in SYSTEM_ROLES:
            scope_filter = (
                RBACRole.branch_id.is_(None) if branch_id is None else RBACRole.branch_id == branch_id
            )
            if db.query(RBACRole).filter(RBACRole.name == name, scope_filter).first():
                continue
            result = role_service.create_role_with_permissions(
                db, branch_id, name, _permission_ids(db, permission_names), description,
                is_system=True, event_bus=event_bus,
            )
            if result.success:
                created += 1
            else:
                print(f"Could not seed role '{name}' (branch={branch_id}): {result.message}")

    print(f"Seeded {created} roles across {len(scopes)} scope(s)")
    return created


def seed_super_admin(db: Session) -> Optional[User]:
    """Create the super-admin user if not already present.

    The user points at the mirrored legacy superuser role, so the
    superuser bypass applies to them.
    """
    legacy_role = db.query(Role).filter(Role.name == settings.SUPERUSER_ROLE_NAME).first()
    if not legacy_role:
        print(f"Legacy role '{settings.SUPERUSER_ROLE_NAME}' not found. Run seed_roles with the mirror enabled first.")
        return None

    existing = db.query(User).filter(User.email == settings.SUPER_ADMIN_EMAIL).first()
    if existing:
        print(f"Super admin '{settings.SUPER_ADMIN_EMAIL}' already exists, skipping.")
        return existing

    admin = User(
        email=settings.SUPER_ADMIN_EMAIL,
        full_name=settings.SUPER_ADMIN_NAME,
        is_active=True,
        role_id=legacy_role.id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"Created super admin: {settings.SUPER_ADMIN_EMAIL}")
    return admin
