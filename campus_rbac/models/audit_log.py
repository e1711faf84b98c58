"""Audit log model: append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow


class AuditLog(Base):
    """Immutable trail of security-relevant actions.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level).
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "role.assigned"
    entity_type = Column(String(50), nullable=False, index=True)  # role, permission, user_role
    entity_id = Column(String(100), nullable=True)
    branch_id = Column(Integer, nullable=True, index=True)
    detail_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
