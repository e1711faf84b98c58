"""Audit service: append-only trail of security-relevant actions."""

import json
import logging
from datetime import datetime
from typing import Optional, Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import Request

from campus_rbac.models.audit_log import AuditLog
from campus_rbac.core.clock import to_utc_naive

logger = logging.getLogger("campus_rbac.audit")


class AuditService:
    """Records immutable audit log entries.

    Writing is best-effort: a failed write is rolled back and logged, and
    the operation being audited carries on.
    """

    @staticmethod
    def record(
        db: Session,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        detail: Optional[Dict[str, Any]] = None,
        branch_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Append one entry; returns None if the store rejected it.

        Args:
            action: e.g. "role.created", "role.assigned", "permission.created"
            entity_type: role, permission, user_role

        Call after the audited change is committed; this commits on its own.
        """
        try:
            entry = AuditLog(
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                branch_id=branch_id,
                detail_json=json.dumps(detail, default=str) if detail else None,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.add(entry)
            db.commit()
            return entry
        except (SQLAlchemyError, TypeError, ValueError):
            db.rollback()
            logger.exception(
                "Audit write dropped: actor=%s action=%s %s/%s",
                actor_id, action, entity_type, entity_id,
            )
            return None

    @staticmethod
    def record_from_request(
        db: Session,
        request: Request,
        actor_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Optional[Any] = None,
        detail: Optional[Dict[str, Any]] = None,
        branch_id: Optional[int] = None,
    ) -> Optional[AuditLog]:
        """Write audit log extracting IP, user-agent and request id from the request."""
        ip = request.client.host if request.client else None
        ua = request.headers.get("user-agent", "")[:500]
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            detail = {**(detail or {}), "request_id": request_id}
        return AuditService.record(
            db=db,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            detail=detail,
            branch_id=branch_id,
            ip_address=ip,
            user_agent=ua,
        )

    @staticmethod
    def query(
        db: Session,
        actor_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        action: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """Query audit logs with filters and pagination, newest first."""
        query = db.query(AuditLog)

        if actor_id is not None:
            query = query.filter(AuditLog.actor_id == actor_id)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if action:
            query = query.filter(AuditLog.action == action)
        if start:
            query = query.filter(AuditLog.created_at >= to_utc_naive(start))
        if end:
            query = query.filter(AuditLog.created_at <= to_utc_naive(end))

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "limit": limit,
            "offset": offset,
        }


audit_service = AuditService()
