"""Permission required by each route of the institutional API.

Keys are ``"METHOD /path"`` relative to the module's router prefix. The
values are the wire contract between the route layer and the
authorization engine; ``campusctl rbac verify`` checks every one of them
exists in the catalog.
"""

from typing import Dict, Optional, Set

ROUTE_PERMISSIONS: Dict[str, Dict[str, str]] = {
    "students": {
        "GET /": "students:read",
        "GET /:id": "students:read",
        "GET /:id/enrollment": "students:read",
        "GET /:id/grades": "students:read",
        "GET /:id/attendance": "students:read",
        "POST /": "students:create",
        "PUT /:id": "students:update",
        "DELETE /:id": "students:delete",
    },
    "teachers": {
        "GET /": "teachers:read",
        "GET /:id": "teachers:read",
        "GET /:id/courses": "teachers:read",
        "POST /": "teachers:create",
        "PUT /:id": "teachers:update",
        "DELETE /:id": "teachers:delete",
    },
    "users": {
        "GET /": "users:read",
        "GET /:id": "users:read",
        "GET /roles": "roles:read",
        "POST /": "users:create",
        "PUT /:id": "users:update",
        "PATCH /:id": "users:update",
        "DELETE /:id": "users:delete",
    },
    "courses": {
        "GET /": "courses:read",
        "GET /:id": "courses:read",
        "GET /:id/students": "courses:read",
        "POST /": "courses:create",
        "PUT /:id": "courses:update",
        "DELETE /:id": "courses:delete",
    },
    "grades": {
        "GET /": "grades:read",
        # students reach their own grades through the ownership check
        "GET /student/:studentId": "grades:read",
        "GET /course/:courseId": "grades:read",
        "POST /": "grades:create",
        "PUT /:id": "grades:update",
        "DELETE /:id": "grades:delete",
    },
    "attendance": {
        "GET /": "attendance:read",
        "GET /student/:studentId": "attendance:read",
        "GET /course/:courseId": "attendance:read",
        "POST /": "attendance:create",
        "PUT /:id": "attendance:update",
        "DELETE /:id": "attendance:delete",
    },
    "admissions": {
        "GET /": "admissions:read",
        "GET /:id": "admissions:read",
        "POST /": "admissions:create",
        "PUT /:id": "admissions:update",
        "DELETE /:id": "admissions:delete",
    },
    "finance": {
        "GET /": "finance:read",
        "GET /student/:studentId": "finance:read",
        "POST /": "finance:create",
        "PUT /:id": "finance:update",
    },
    "payroll": {
        "GET /": "payroll:read",
        "GET /teacher/:teacherId": "payroll:read",
        "POST /": "payroll:create",
        "PUT /:id": "payroll:update",
    },
    "library": {
        "GET /books": "library:read",
        "GET /books/:id": "library:read",
        "POST /books": "library:create",
        "PUT /books/:id": "library:update",
        "DELETE /books/:id": "library:delete",
        "POST /issue": "library:create",
        "POST /return": "library:update",
    },
    "announcements": {
        "GET /": "announcements:read",
        "GET /:id": "announcements:read",
        "POST /": "announcements:create",
        "PUT /:id": "announcements:create",
        "DELETE /:id": "announcements:create",
    },
    "messaging": {
        "GET /": "messaging:read",
        "GET /:id": "messaging:read",
        "POST /": "messaging:send",
        "PUT /:id/read": "messaging:read",
    },
    "assignments": {
        "GET /": "assignments:read",
        "GET /:id": "assignments:read",
        "GET /:id/submissions": "assignments:read",
        "POST /": "assignments:create",
        "POST /:id/submit": "assignments:submit",
        "PUT /:id": "assignments:update",
    },
    "branches": {
        "GET /": "branches:read",
        "GET /:id": "branches:read",
        "POST /": "branches:create",
        "PUT /:id": "branches:update",
        "DELETE /:id": "branches:delete",
    },
    "analytics": {
        "GET /dashboard": "analytics:read",
        "GET /students": "analytics:read",
        "GET /teachers": "analytics:read",
        "GET /attendance": "analytics:read",
    },
    "reports": {
        "GET /": "reports:generate",
        "POST /generate": "reports:generate",
        "GET /export": "reports:export",
    },
    "health": {
        "GET /": "health:read",
        "GET /student/:studentId": "health:read",
        "POST /": "health:create",
        "PUT /:id": "health:update",
    },
    "timetable": {
        "GET /": "courses:read",
        "POST /": "courses:create",
        "PUT /:id": "courses:update",
    },
}


def permission_for_route(module: str, method: str, path: str) -> Optional[str]:
    """Look up the permission a route requires, or None if unmapped."""
    return ROUTE_PERMISSIONS.get(module, {}).get(f"{method.upper()} {path}")


def all_route_permissions() -> Set[str]:
    return {perm for routes in ROUTE_PERMISSIONS.values() for perm in routes.values()}
