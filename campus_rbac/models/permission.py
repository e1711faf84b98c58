"""Permission catalog model and the role/permission association table."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Table
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow


rbac_role_permissions = Table(
    "rbac_role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("rbac_roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id"), primary_key=True),
)


class Permission(Base):
    """Atomic ``resource:action`` capability.

    Creation is additive only; the name is the wire contract used by
    every permission check and never changes once created.
    """
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)  # e.g. "students:read"
    resource = Column(String(50), nullable=False, index=True)
    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Permission(id={self.id}, name={self.name})>"
