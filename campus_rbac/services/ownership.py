"""Ownership escalation composed with the authorizer.

Call sites that let a user act on their own record (a student reading
their own attendance, a teacher their own payroll) resolve the owner
first and only fall back to a permission check when the caller is not
the owner. What "owner" means is per resource type, so each type gets
its own resolver.
"""

import logging
from typing import Any, Generic, Optional, Protocol, TypeVar

from campus_rbac.core.security import Principal
from campus_rbac.services.authorization_service import Authorizer

logger = logging.getLogger("campus_rbac.authz")

T = TypeVar("T")
T_contra = TypeVar("T_contra", contravariant=True)


class OwnershipResolver(Protocol[T_contra]):
    def owner_of(self, resource: T_contra) -> Optional[int]:
        """Return the owning user id, or None if the resource has no owner."""
        ...


class AttributeOwnershipResolver(Generic[T]):
    """Reads the owner id from an attribute (or dict key) of the resource."""

    def __init__(self, attribute: str = "user_id"):
        self.attribute = attribute

    def owner_of(self, resource: T) -> Optional[int]:
        if resource is None:
            return None
        if isinstance(resource, dict):
            value: Any = resource.get(self.attribute)
        else:
            value = getattr(resource, self.attribute, None)
        return int(value) if value is not None else None


def check_owner_or_permission(
    authorizer: Authorizer,
    principal: Principal,
    resource: T,
    permission: str,
    resolver: OwnershipResolver[T],
) -> bool:
    """Grant when the principal owns ``resource``; otherwise ask the authorizer.

    A resolver error counts as "not the owner", so the decision falls
    through to the fail-closed permission check.
    """
    try:
        owner_id = resolver.owner_of(resource)
    except Exception:
        logger.exception("Ownership resolution failed for %r", resource)
        owner_id = None

    if owner_id is not None and owner_id == principal.user_id:
        return True
    return authorizer.check_permission(principal, permission)
