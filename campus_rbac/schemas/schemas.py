"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Any, Literal
from datetime import datetime


# ---- Permission ----
class PermissionCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    resource: str = Field(..., min_length=1, max_length=50)
    action: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None

class PermissionUpdate(BaseModel):
    description: str

class PermissionOut(BaseModel):
    id: int
    name: str
    resource: str
    action: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Role ----
class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    branch_id: Optional[int] = None  # None = global
    modules: List[str] = []
    permission_ids: Optional[List[int]] = None
    description: Optional[str] = None

class RolePermissionsUpdate(BaseModel):
    permission_ids: List[int]

class RoleOut(BaseModel):
    id: int
    name: str
    branch_id: Optional[int] = None
    description: Optional[str] = None
    is_system: bool = False
    is_global: bool = False
    permissions: List[PermissionOut] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Assignment ----
class AssignmentCreate(BaseModel):
    user_id: int
    role_id: int
    branch_id: int
    expires_at: Optional[datetime] = None

class AssignmentOut(BaseModel):
    id: int
    user_id: int
    role_id: int
    role_name: Optional[str] = None
    branch_id: int
    assigned_by: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_assignment(cls, assignment) -> "AssignmentOut":
        return cls(
            id=assignment.id,
            user_id=assignment.user_id,
            role_id=assignment.role_id,
            role_name=assignment.role.name if assignment.role else None,
            branch_id=assignment.branch_id,
            assigned_by=assignment.assigned_by,
            expires_at=assignment.expires_at,
            created_at=assignment.created_at,
        )


# ---- Checks ----
class PermissionCheckRequest(BaseModel):
    user_id: int
    permissions: List[str] = Field(..., min_length=1)
    mode: Literal["all", "any"] = "all"

class PermissionCheckResponse(BaseModel):
    user_id: int
    granted: bool
    required: List[str]
    missing: List[str] = []

class UserPermissionsOut(BaseModel):
    user_id: int
    permissions: List[str]
    superuser: bool = False


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    branch_id: Optional[int] = None
    detail_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Generic ----
class ResultResponse(BaseModel):
    success: bool
    message: str
    code: Optional[str] = None
    data: Optional[Any] = None
