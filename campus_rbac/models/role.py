"""Legacy single-role model kept for the User.role_id foreign key."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from campus_rbac.db.base import Base
from campus_rbac.core.clock import utcnow


class Role(Base):
    """Flat legacy role: a name and a JSON list of permission names.

    Written only by the legacy mirror when an RBAC role is created. Later
    permission changes to the RBAC role are not reflected here.
    """
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    permissions_json = Column(Text, nullable=True)  # JSON list of permission strings
    description = Column(String(255), nullable=True)
    source_rbac_role_id = Column(Integer, nullable=True)
    mirror_schema_version = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
