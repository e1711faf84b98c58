"""Branch-scoped or global RBAC role."""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, UniqueConstraint
from sqlalchemy.orm import relationship
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow
from campus_rbac.models.permission import rbac_role_permissions

GLOBAL_SCOPE_KEY = 0


def _scope_key(context):
    branch_id = context.get_current_parameters().get("branch_id")
    return branch_id if branch_id is not None else GLOBAL_SCOPE_KEY


class RBACRole(Base):
    """Named bundle of permissions.

    ``branch_id`` NULL means the role is global and visible from every
    branch. ``scope_key`` mirrors ``branch_id`` with global roles stored as
    0, so the unique name constraint also covers global roles.
    """
    __tablename__ = "rbac_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(Integer, nullable=True, index=True)
    scope_key = Column(Integer, nullable=False, default=_scope_key)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    permissions = relationship(
        "Permission",
        secondary=rbac_role_permissions,
        lazy="selectin",
        order_by="Permission.name",
    )

    __table_args__ = (
        UniqueConstraint("scope_key", "name", name="uq_rbac_role_scope_name"),
        # ids are never reused, so orphaned assignments cannot rebind to a new role
        {"sqlite_autoincrement": True},
    )

    @property
    def is_global(self) -> bool:
        return self.branch_id is None

    @property
    def permission_names(self) -> list[str]:
        return [p.name for p in self.permissions]

    def __repr__(self):
        return f"<RBACRole(id={self.id}, name={self.name}, branch_id={self.branch_id})>"
