"""RBAC API router: permissions, roles, assignments, and checks."""

from typing import Optional, Callable, Any
from fastapi import APIRouter, Depends, Query, HTTPException, Request
from sqlalchemy.orm import Session

from campus_rbac.db.session import get_db
from campus_rbac.core.config import settings
from campus_rbac.core.exceptions import forbidden, status_for_code
from campus_rbac.core.results import OperationResult
from campus_rbac.core.security import Principal
from campus_rbac.schemas.schemas import (
    PermissionCreate, PermissionUpdate, PermissionOut,
    RoleCreate, RolePermissionsUpdate, RoleOut,
    AssignmentCreate, AssignmentOut,
    PermissionCheckRequest, PermissionCheckResponse, UserPermissionsOut,
    ResultResponse,
)
from campus_rbac.services.permission_service import permission_service
from campus_rbac.services.role_service import role_service
from campus_rbac.services.assignment_service import assignment_service
from campus_rbac.services.audit_service import audit_service
from campus_rbac.services.authorization_service import Authorizer, MatchMode
from campus_rbac.services.ownership import AttributeOwnershipResolver, check_owner_or_permission
from campus_rbac.api.deps import (
    get_authorizer, get_principal, require_permission, require_any_permission,
)

router = APIRouter(prefix="/rbac", tags=["rbac"])

_user_owner = AttributeOwnershipResolver("user_id")


def _respond(result: OperationResult, serializer: Optional[Callable[[Any], Any]] = None) -> ResultResponse:
    """Turn an OperationResult into a response body, or raise the mapped HTTP error."""
    if not result.success:
        raise HTTPException(
            status_code=status_for_code(result.code),
            detail={"message": result.message, "code": result.code},
        )
    data = serializer(result.data) if serializer and result.data is not None else result.data
    return ResultResponse(success=True, message=result.message, data=data)


def _role_out(role) -> dict:
    return RoleOut.model_validate(role).model_dump()


def _require_branch_scope(
    principal: Principal, authorizer: Authorizer, branch_id: Optional[int], action: str,
) -> None:
    """Branch-bound callers manage their own branch only.

    Global roles and other branches need ``system:admin``. Callers not
    bound to a branch may act on any branch.
    """
    if branch_id is not None and principal.branch_id in (None, branch_id):
        return
    if not authorizer.check_permission(principal, "system:admin"):
        raise forbidden({
            "message": f"Cannot {action} outside your branch",
            "code": "FORBIDDEN",
            "required_permissions": ["system:admin"],
        })


def _require_held(principal: Principal, authorizer: Authorizer, permission_names, action: str) -> None:
    """Callers may only hand out permissions they hold themselves."""
    wanted = sorted(set(permission_names))
    if not wanted:
        return
    decision = authorizer.evaluate(principal, wanted, MatchMode.ALL)
    if not decision.granted:
        raise forbidden({
            "message": f"Cannot {action} with permissions you do not hold",
            "code": "FORBIDDEN",
            "missing_permissions": list(decision.missing),
        })


# ---- Permissions ----

@router.get("/permissions")
def list_permissions(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:read")),
):
    """Paginated permission catalog."""
    result = permission_service.list_permissions(db, limit, offset)
    return {
        "permissions": [PermissionOut.model_validate(p) for p in result["permissions"]],
        "total": result["total"],
        "limit": result["limit"],
        "offset": result["offset"],
    }


@router.post("/permissions", response_model=ResultResponse, status_code=201)
def create_permission(
    body: PermissionCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:create")),
):
    """Add a permission to the catalog."""
    result = permission_service.create_permission(
        db, body.name, body.resource, body.action, body.description,
    )
    response = _respond(result, lambda p: PermissionOut.model_validate(p).model_dump())
    audit_service.record_from_request(
        db, request, principal.user_id, "permission.created",
        "permission", result.data.id, {"name": result.data.name},
    )
    return response


@router.patch("/permissions/{permission_id}", response_model=ResultResponse)
def update_permission(
    permission_id: int,
    body: PermissionUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:update")),
):
    """Update a permission's description."""
    result = permission_service.update_permission_description(db, permission_id, body.description)
    response = _respond(result, lambda p: PermissionOut.model_validate(p).model_dump())
    audit_service.record_from_request(
        db, request, principal.user_id, "permission.updated",
        "permission", permission_id, {"description": body.description},
    )
    return response


@router.get("/permission-hierarchy")
def permission_hierarchy(
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_any_permission("roles:read", "roles:create")),
):
    """Permissions grouped by resource, for role-definition screens."""
    return permission_service.group_by_resource(db)


# ---- Roles ----

@router.get("/roles")
def list_roles(
    branch_id: Optional[int] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:read")),
):
    """Roles of a branch plus all global roles; every role when no branch is given."""
    result = role_service.get_roles(db, branch_id, limit, offset)
    return {
        "roles": [RoleOut.model_validate(r) for r in result["roles"]],
        "total": result["total"],
        "limit": result["limit"],
        "offset": result["offset"],
    }


@router.get("/roles/{role_id}", response_model=RoleOut)
def get_role(
    role_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:read")),
):
    """Get a single role with its permissions."""
    return role_service.get_role_by_id(db, role_id)


@router.post("/roles", response_model=ResultResponse, status_code=201)
def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:create")),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Define a role by modules, or by explicit permission ids when given.

    The caller must hold every permission the role would grant.
    """
    _require_branch_scope(principal, authorizer, body.branch_id, "define roles")
    if body.permission_ids is not None:
        requested = permission_service.get_many(db, body.permission_ids)
    else:
        requested = permission_service.resolve_modules(db, body.modules)
    _require_held(principal, authorizer, [p.name for p in requested], "define a role")

    if body.permission_ids is not None:
        result = role_service.create_role_with_permissions(
            db, body.branch_id, body.name, body.permission_ids, body.description,
        )
    else:
        result = role_service.define_role(
            db, body.branch_id, body.name, body.modules, body.description,
        )
    response = _respond(result, _role_out)
    role = result.data
    audit_service.record_from_request(
        db, request, principal.user_id, "role.created", "role", role.id,
        {"name": role.name, "modules": body.modules, "permissions": role.permission_names},
        branch_id=role.branch_id,
    )
    return response


@router.put("/roles/{role_id}/permissions", response_model=ResultResponse)
def update_role_permissions(
    role_id: int,
    body: RolePermissionsUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:update")),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Replace a role's permission set with exactly the given ids.

    Permissions added to the role must be held by the caller.
    """
    role = role_service.get_role_by_id(db, role_id)
    _require_branch_scope(principal, authorizer, role.branch_id, "update roles")
    current = set(role.permission_names)
    added = [p.name for p in permission_service.get_many(db, body.permission_ids) if p.name not in current]
    _require_held(principal, authorizer, added, "extend a role")

    result = role_service.update_role_permissions(db, role_id, body.permission_ids)
    response = _respond(result, _role_out)
    role = result.data
    audit_service.record_from_request(
        db, request, principal.user_id, "role.permissions_updated", "role", role.id,
        {"permission_ids": body.permission_ids, "permissions": role.permission_names},
        branch_id=role.branch_id,
    )
    return response


@router.delete("/roles/{role_id}", response_model=ResultResponse)
def delete_role(
    role_id: int,
    request: Request,
    force: bool = Query(False),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:delete")),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Delete a role. Refused while assignments exist unless forced."""
    role = role_service.get_role_by_id(db, role_id)
    _require_branch_scope(principal, authorizer, role.branch_id, "delete roles")

    result = role_service.delete_role(db, role_id, force=force)
    response = _respond(result)
    audit_service.record_from_request(
        db, request, principal.user_id, "role.deleted", "role", role_id,
        result.data, branch_id=result.data.get("branch_id"),
    )
    return response


# ---- Assignments ----

@router.post("/assignments", response_model=ResultResponse, status_code=201)
def assign_role(
    body: AssignmentCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:update")),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Assign a role to a user within a branch.

    The assigning user must hold every permission the role grants, and
    may only assign outside their own branch with ``system:admin``.
    """
    _require_branch_scope(principal, authorizer, body.branch_id, "assign roles")
    role = role_service.get_role_by_id(db, body.role_id)
    _require_held(principal, authorizer, role.permission_names, "grant a role")

    result = assignment_service.assign_role_to_user(
        db, body.user_id, body.role_id, body.branch_id, principal.user_id, body.expires_at,
    )
    response = _respond(result, lambda a: AssignmentOut.from_assignment(a).model_dump())
    audit_service.record_from_request(
        db, request, principal.user_id, "role.assigned", "user_role", result.data.id,
        {"user_id": body.user_id, "role_id": body.role_id, "expires_at": body.expires_at},
        branch_id=body.branch_id,
    )
    return response


@router.delete("/assignments", response_model=ResultResponse)
def remove_role(
    request: Request,
    user_id: int = Query(...),
    role_id: int = Query(...),
    branch_id: int = Query(...),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:update")),
):
    """Remove every binding of a role to a user in a branch."""
    result = assignment_service.remove_role_from_user(db, user_id, role_id, branch_id)
    response = _respond(result)
    audit_service.record_from_request(
        db, request, principal.user_id, "role.removed", "user_role", None,
        {"user_id": user_id, "role_id": role_id, **result.data},
        branch_id=branch_id,
    )
    return response


@router.post("/assignments/{assignment_id}/expire", response_model=ResultResponse)
def expire_assignment(
    assignment_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("roles:update")),
):
    """Revoke an assignment now, keeping it for history."""
    result = assignment_service.expire_user_role(db, assignment_id)
    response = _respond(result, lambda a: AssignmentOut.from_assignment(a).model_dump())
    audit_service.record_from_request(
        db, request, principal.user_id, "role.expired", "user_role", assignment_id,
        {"user_id": result.data.user_id, "role_id": result.data.role_id},
        branch_id=result.data.branch_id,
    )
    return response


@router.get("/users/{user_id}/roles")
def get_user_roles(
    user_id: int,
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_principal),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """A user's role assignments. Users may always see their own."""
    if not check_owner_or_permission(authorizer, principal, {"user_id": user_id}, "roles:read", _user_owner):
        raise forbidden({
            "message": "Permission denied. Missing: roles:read",
            "code": "FORBIDDEN",
            "required_permissions": ["roles:read"],
        })
    if active_only:
        assignments = assignment_service.get_active_roles_for_user(db, user_id)
    else:
        assignments = assignment_service.get_user_roles(db, user_id)
    return [AssignmentOut.from_assignment(a) for a in assignments]


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsOut)
def get_user_permissions(
    user_id: int,
    principal: Principal = Depends(get_principal),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Effective permissions of a user from their active roles."""
    if not check_owner_or_permission(authorizer, principal, {"user_id": user_id}, "roles:read", _user_owner):
        raise forbidden({
            "message": "Permission denied. Missing: roles:read",
            "code": "FORBIDDEN",
            "required_permissions": ["roles:read"],
        })
    subject = principal if user_id == principal.user_id else Principal(user_id=user_id)
    return UserPermissionsOut(
        user_id=user_id,
        permissions=sorted(authorizer.get_user_permissions(subject)),
    )


@router.get("/me/permissions", response_model=UserPermissionsOut)
def my_permissions(
    principal: Principal = Depends(get_principal),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Permissions of the caller, for rendering available actions."""
    is_superuser = getattr(authorizer, "is_superuser", None)
    return UserPermissionsOut(
        user_id=principal.user_id,
        permissions=sorted(authorizer.get_user_permissions(principal)),
        superuser=bool(is_superuser and is_superuser(principal)),
    )


@router.post("/check-permission", response_model=PermissionCheckResponse)
def check_permission(
    body: PermissionCheckRequest,
    principal: Principal = Depends(require_permission("roles:read")),
    authorizer: Authorizer = Depends(get_authorizer),
):
    """Evaluate another user's role assignments against a permission list."""
    decision = authorizer.evaluate(Principal(user_id=body.user_id), body.permissions, MatchMode(body.mode))
    return PermissionCheckResponse(
        user_id=body.user_id,
        granted=decision.granted,
        required=list(decision.required),
        missing=list(decision.missing),
    )
