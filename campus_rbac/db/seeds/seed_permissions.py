"""Seed the institutional permission catalog."""

from sqlalchemy.orm import Session
from campus_rbac.models.permission import Permission

CATALOG = [
    # users
    ("users:create", "Create new users"),
    ("users:read", "View user details"),
    ("users:update", "Update user information"),
    ("users:delete", "Delete users"),
    # branches
    ("branches:create", "Create new branches"),
    ("branches:read", "View branch details"),
    ("branches:update", "Update branch information"),
    ("branches:delete", "Delete branches"),
    # roles
    ("roles:create", "Create new roles"),
    ("roles:read", "View role details"),
    ("roles:update", "Update role permissions"),
    ("roles:delete", "Delete roles"),
    # students
    ("students:create", "Create new students"),
    ("students:read", "View student details"),
    ("students:update", "Update student information"),
    ("students:delete", "Delete students"),
    ("students:read_own", "View own student profile"),
    # teachers
    ("teachers:create", "Create new teachers"),
    ("teachers:read", "View teacher details"),
    ("teachers:update", "Update teacher information"),
    ("teachers:delete", "Delete teachers"),
    # courses
    ("courses:create", "Create new courses"),
    ("courses:read", "View course details"),
    ("courses:update", "Update course information"),
    ("courses:delete", "Delete courses"),
    # attendance
    ("attendance:create", "Mark attendance"),
    ("attendance:read", "View attendance records"),
    ("attendance:update", "Update attendance records"),
    ("attendance:delete", "Delete attendance records"),
    ("attendance:read_own", "View own attendance"),
    # grades
    ("grades:create", "Enter grades"),
    ("grades:read", "View grade records"),
    ("grades:update", "Update grades"),
    ("grades:delete", "Delete grades"),
    ("grades:read_own", "View own grades"),
    # admissions
    ("admissions:create", "Create admission applications"),
    ("admissions:read", "View admissions"),
    ("admissions:update", "Update admission status"),
    ("admissions:delete", "Delete admissions"),
    # finance
    ("finance:create", "Create fee records"),
    ("finance:read", "View financial records"),
    ("finance:update", "Update financial records"),
    ("finance:read_own", "View own fee status"),
    # payroll
    ("payroll:create", "Generate payroll"),
    ("payroll:read", "View payroll records"),
    ("payroll:update", "Update payroll"),
    ("payroll:read_own", "View own payroll"),
    # library
    ("library:create", "Add library items"),
    ("library:read", "View library catalog"),
    ("library:update", "Update library items"),
    ("library:delete", "Delete library items"),
    # health
    ("health:create", "Create health records"),
    ("health:read", "View health records"),
    ("health:update", "Update health records"),
    # analytics & reports
    ("analytics:read", "View analytics and reports"),
    ("reports:generate", "Generate reports"),
    ("reports:export", "Export data"),
    # announcements & messaging
    ("announcements:create", "Create announcements"),
    ("announcements:read", "View announcements"),
    ("messaging:send", "Send messages"),
    ("messaging:read", "Read messages"),
    # assignments
    ("assignments:create", "Create assignments"),
    ("assignments:read", "View assignments"),
    ("assignments:update", "Update assignments"),
    ("assignments:submit", "Submit assignments"),
    # leave
    ("leave:create", "Create leave requests"),
    ("leave:read", "View leave requests"),
    ("leave:update", "Update/approve leave"),
    ("leave:delete", "Delete leave requests"),
    # events
    ("events:create", "Create events"),
    ("events:read", "View events"),
    ("events:update", "Update events"),
    ("events:delete", "Delete events"),
    # system
    ("system:admin", "Full system administration access"),
    ("system:settings", "Modify system settings"),
    ("system:audit", "View audit logs"),
    ("system:backup", "Manage backups"),
]


def seed_permissions(db: Session) -> int:
    """Insert catalog permissions that don't already exist. Returns how many were added."""
    existing = {name for (name,) in db.query(Permission.name).all()}
    added = 0
    for name, description in CATALOG:
        if name in existing:
            continue
        resource, action = name.split(":", 1)
        db.add(Permission(name=name, resource=resource, action=action, description=description))
        added += 1

    db.commit()
    print(f"Seeded {added} permissions ({len(CATALOG)} in catalog)")
    return added
