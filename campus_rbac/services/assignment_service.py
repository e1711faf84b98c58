"""Role assignment store: user → role bindings scoped to a branch."""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.user_role import UserRoleAssignment
from campus_rbac.core.clock import utcnow, to_utc_naive
from campus_rbac.core.exceptions import NotFoundError, ValidationError
from campus_rbac.core.results import as_result

logger = logging.getLogger("campus_rbac")


def active_filter(now: datetime):
    """SQL condition for assignments that are still in force at ``now``."""
    return or_(UserRoleAssignment.expires_at.is_(None), UserRoleAssignment.expires_at > now)


class AssignmentService:
    """Grants, revokes, and lists role assignments."""

    @staticmethod
    @as_result("ASSIGN_ROLE_ERROR", "Role assigned to user", "Could not assign role")
    def assign_role_to_user(
        db: Session,
        user_id: int,
        role_id: int,
        branch_id: int,
        assigned_by: int,
        expires_at: Optional[datetime] = None,
    ) -> UserRoleAssignment:
        """Bind a role to a user in a branch.

        The same (user, role, branch) may be bound more than once; stacked
        time-bounded grants are allowed.
        """
        missing = [
            field for field, value in (
                ("user_id", user_id), ("role_id", role_id),
                ("branch_id", branch_id), ("assigned_by", assigned_by),
            )
            if value is None
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        role = db.query(RBACRole).filter(RBACRole.id == role_id).first()
        if not role:
            raise NotFoundError(f"Role {role_id} not found")
        if role.branch_id is not None and role.branch_id != branch_id:
            raise ValidationError(
                f"Role {role_id} belongs to branch {role.branch_id} and cannot be assigned in branch {branch_id}"
            )

        assignment = UserRoleAssignment(
            user_id=user_id,
            role_id=role_id,
            branch_id=branch_id,
            assigned_by=assigned_by,
            expires_at=to_utc_naive(expires_at),
        )
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        logger.info(
            "User %s assigned role %s in branch %s by %s (expires %s)",
            user_id, role_id, branch_id, assigned_by, assignment.expires_at,
        )
        return assignment

    @staticmethod
    @as_result("REMOVE_ROLE_ERROR", "Role removed from user", "Could not remove role")
    def remove_role_from_user(db: Session, user_id: int, role_id: int, branch_id: int) -> Dict[str, int]:
        """Delete every binding matching the exact (user, role, branch) triple."""
        deleted = (
            db.query(UserRoleAssignment)
            .filter(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.role_id == role_id,
                UserRoleAssignment.branch_id == branch_id,
            )
            .delete(synchronize_session=False)
        )
        db.commit()
        return {"deleted_count": deleted}

    @staticmethod
    @as_result("EXPIRE_ROLE_ERROR", "Role expiration set", "Could not expire role")
    def expire_user_role(db: Session, assignment_id: int, now: Optional[datetime] = None) -> UserRoleAssignment:
        """Revoke an assignment immediately while keeping its row for history.

        An assignment that already expired keeps its original expiry.
        """
        assignment = db.query(UserRoleAssignment).filter(UserRoleAssignment.id == assignment_id).first()
        if not assignment:
            raise NotFoundError(f"Role assignment {assignment_id} not found")

        now = now or utcnow()
        if assignment.is_active_at(now):
            assignment.expires_at = now
            db.commit()
            db.refresh(assignment)
        return assignment

    @staticmethod
    def get_user_roles(db: Session, user_id: int) -> List[UserRoleAssignment]:
        """All assignments of a user, expired ones included."""
        return (
            db.query(UserRoleAssignment)
            .filter(UserRoleAssignment.user_id == user_id)
            .order_by(UserRoleAssignment.id)
            .all()
        )

    @staticmethod
    def get_active_roles_for_user(
        db: Session,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> List[UserRoleAssignment]:
        """Assignments with no expiry or an expiry strictly after ``now``."""
        now = to_utc_naive(now) or utcnow()
        return (
            db.query(UserRoleAssignment)
            .filter(UserRoleAssignment.user_id == user_id, active_filter(now))
            .order_by(UserRoleAssignment.id)
            .all()
        )

    @staticmethod
    def find_orphaned_assignments(db: Session) -> List[UserRoleAssignment]:
        """Assignments whose role row no longer exists."""
        return (
            db.query(UserRoleAssignment)
            .outerjoin(RBACRole, RBACRole.id == UserRoleAssignment.role_id)
            .filter(RBACRole.id.is_(None))
            .order_by(UserRoleAssignment.id)
            .all()
        )


assignment_service = AssignmentService()
