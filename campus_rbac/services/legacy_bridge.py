"""Legacy role bridge.

The Role Registry publishes a ``RoleCreated`` event after a role is
committed. ``LegacyRoleMirror`` consumes it and upserts a flat row in the
legacy ``roles`` table so ``users.role_id`` keeps pointing at something
meaningful.

Drift window: the mirror is written on creation only. Permission
replacement and role deletion are not mirrored, so a legacy row shows the
permission list the role had when it was created. Mirror failures are
logged and dropped; the RBAC role stays authoritative.

Legacy rows are keyed by name only. A row written for a global role is
not overwritten by a branch role of the same name; between branch roles
the most recently created one wins.
"""

import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from campus_rbac.core.exceptions import MirrorWriteFailure
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.role import Role

logger = logging.getLogger("campus_rbac.legacy")

ROLE_CREATED_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class RoleCreated:
    """Emitted once per successfully created RBAC role."""

    role_id: int
    name: str
    permission_names: Tuple[str, ...]
    description: Optional[str] = None
    branch_id: Optional[int] = None
    schema_version: int = ROLE_CREATED_SCHEMA_VERSION


RoleCreatedHandler = Callable[[RoleCreated], None]


class RoleEventBus:
    """In-process fan-out of role lifecycle events.

    Subscribers run synchronously after the primary commit. A failing
    subscriber is logged and never propagates to the publisher.
    """

    def __init__(self):
        self._subscribers: List[RoleCreatedHandler] = []

    def subscribe(self, handler: RoleCreatedHandler) -> None:
        if handler not in self._subscribers:
            self._subscribers.append(handler)

    def unsubscribe(self, handler: RoleCreatedHandler) -> None:
        self._subscribers = [h for h in self._subscribers if h != handler]

    def clear(self) -> None:
        self._subscribers = []

    @property
    def subscribers(self) -> List[RoleCreatedHandler]:
        return list(self._subscribers)

    def publish(self, event: RoleCreated) -> None:
        for handler in list(self._subscribers):
            try:
                handler(event)
            except MirrorWriteFailure as exc:
                logger.warning(
                    "Legacy mirror drift for role %s (%s): %s",
                    event.role_id, event.name, exc.message,
                )
            except Exception:
                logger.exception(
                    "Role event subscriber %r failed for role %s", handler, event.role_id,
                )


class LegacyRoleMirror:
    """Compatibility adapter writing ``RoleCreated`` events into ``roles``."""

    SUPPORTED_SCHEMA_VERSIONS = (1,)

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def __call__(self, event: RoleCreated) -> None:
        self.handle(event)

    def handle(self, event: RoleCreated) -> Role:
        if event.schema_version not in self.SUPPORTED_SCHEMA_VERSIONS:
            raise MirrorWriteFailure(
                f"Unsupported RoleCreated schema version {event.schema_version}"
            )
        db: Session = self._session_factory()
        try:
            row = db.query(Role).filter(Role.name == event.name).first()
            if row is not None and event.branch_id is not None and self._owned_by_global_role(db, row):
                logger.debug(
                    "Legacy role %s belongs to a global role; branch role %s not mirrored",
                    row.name, event.role_id,
                )
                return row
            if row is None:
                row = Role(name=event.name)
                db.add(row)
            row.permissions_json = json.dumps(list(event.permission_names))
            row.description = (event.description or "")[:255]
            row.source_rbac_role_id = event.role_id
            row.mirror_schema_version = event.schema_version
            db.commit()
            db.refresh(row)
            logger.debug("Mirrored role %s into legacy roles as %s", event.role_id, row.id)
            return row
        except SQLAlchemyError as exc:
            db.rollback()
            raise MirrorWriteFailure(f"Legacy role write failed: {exc}") from exc
        finally:
            db.close()

    @staticmethod
    def _owned_by_global_role(db: Session, row: Role) -> bool:
        if row.source_rbac_role_id is None:
            return False
        source = db.query(RBACRole).filter(RBACRole.id == row.source_rbac_role_id).first()
        return source is not None and source.branch_id is None


role_event_bus = RoleEventBus()
