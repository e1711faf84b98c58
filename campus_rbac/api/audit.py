"""Audit API router."""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campus_rbac.db.session import get_db
from campus_rbac.core.security import Principal
from campus_rbac.schemas.schemas import AuditLogOut
from campus_rbac.services.audit_service import audit_service
from campus_rbac.api.deps import require_permission

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("")
def get_audit_logs(
    actor_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("system:audit")),
):
    """Query the audit trail, newest first."""
    result = audit_service.query(db, actor_id, entity_type, action, start, end, limit, offset)
    return {
        "logs": [AuditLogOut.model_validate(log) for log in result["logs"]],
        "total": result["total"],
        "limit": result["limit"],
        "offset": result["offset"],
    }
