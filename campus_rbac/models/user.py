"""User model."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow


class User(Base):
    """Platform user with a single legacy role and a home branch."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False)
    branch_id = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    role = relationship("Role", lazy="joined")
