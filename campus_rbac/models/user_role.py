"""User → role binding within a branch, optionally time-bounded."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import relationship
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow


class UserRoleAssignment(Base):
    """A role granted to a user in a branch.

    An assignment whose ``expires_at`` has passed is inert; nothing
    deletes it, every read filters it out at call time.
    """
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # user identities live in the upstream auth service
    user_id = Column(Integer, nullable=False, index=True)
    # no FK: a force-deleted role leaves its assignments behind as orphans
    role_id = Column(Integer, nullable=False, index=True)
    branch_id = Column(Integer, nullable=False, index=True)
    assigned_by = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    role = relationship(
        "RBACRole",
        primaryjoin="foreign(UserRoleAssignment.role_id) == RBACRole.id",
        lazy="joined",
    )

    def is_active_at(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.expires_at is None or self.expires_at > now

    def __repr__(self):
        return (
            f"<UserRoleAssignment(id={self.id}, user_id={self.user_id}, "
            f"role_id={self.role_id}, branch_id={self.branch_id})>"
        )
