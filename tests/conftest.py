"""
Shared fixtures for the campus RBAC test suite.

Every test gets its own file-backed SQLite database so that the
authorization engine's worker threads open real, separate connections.
"""

import os

# Settings are read at import time; point them at a throwaway database first.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from campus_rbac.core.essential import EssentialPermissionSet
from campus_rbac.core.security import Principal, create_access_token
from campus_rbac.db.base import Base
from campus_rbac.db.session import build_engine
from campus_rbac.db.seeds.seed_permissions import seed_permissions
import campus_rbac.models  # noqa: F401
from campus_rbac.models.permission import Permission
from campus_rbac.models.role import Role
from campus_rbac.models.user import User
from campus_rbac.services.authorization_service import (
    AuthorizationEngine, RBACAuthorizer, SuperuserBypassAuthorizer,
)
from campus_rbac.services.legacy_bridge import RoleEventBus
from campus_rbac.services.role_service import role_service
from campus_rbac.services.assignment_service import assignment_service


# =============================================================================
# DATABASE
# =============================================================================

@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'rbac.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def catalog(db):
    """Seeded permission catalog as ``{name: Permission}``."""
    seed_permissions(db)
    return {p.name: p for p in db.query(Permission).all()}


# =============================================================================
# RBAC COMPONENTS
# =============================================================================

@pytest.fixture
def event_bus():
    """Isolated bus so tests never touch the process-wide subscribers."""
    return RoleEventBus()


@pytest.fixture
def essential():
    return EssentialPermissionSet.of(["branches:read"])


@pytest.fixture
def auth_engine(session_factory):
    engine = AuthorizationEngine(session_factory, timeout_seconds=5.0, max_workers=2)
    yield engine
    engine.shutdown()


@pytest.fixture
def authorizer(auth_engine):
    return SuperuserBypassAuthorizer(RBACAuthorizer(auth_engine), "SuperAdmin")


@pytest.fixture
def make_role(db, catalog, essential, event_bus):
    """Create a role from modules; returns the RBACRole."""

    def _make(name, modules=(), branch_id=1, **kwargs):
        result = role_service.define_role(
            db, branch_id, name, list(modules),
            essential=kwargs.pop("essential", essential),
            event_bus=kwargs.pop("event_bus", event_bus),
            **kwargs,
        )
        assert result.success, result.message
        return result.data

    return _make


@pytest.fixture
def grant(db):
    """Assign a role to a user; returns the assignment."""

    def _grant(user_id, role, branch_id=None, expires_at=None, assigned_by=1):
        result = assignment_service.assign_role_to_user(
            db, user_id, role.id,
            branch_id if branch_id is not None else (role.branch_id or 1),
            assigned_by, expires_at,
        )
        assert result.success, result.message
        return result.data

    return _grant


# =============================================================================
# API
# =============================================================================

def token_for(user_id, role=None, branch_id=None):
    claims = {"sub": str(user_id)}
    if role is not None:
        claims["role"] = role
    if branch_id is not None:
        claims["branch_id"] = branch_id
    return create_access_token(claims)


def auth_headers(user_id, role=None, branch_id=None):
    return {"Authorization": f"Bearer {token_for(user_id, role, branch_id)}"}


@pytest.fixture
def client(session_factory, authorizer):
    from campus_rbac.main import app
    from campus_rbac.db.session import get_db
    from campus_rbac.api.deps import get_authorizer

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_authorizer] = lambda: authorizer
    # no context manager: lifespan (legacy mirror on the default engine) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def legacy_user(db):
    """Create a ``users`` row pointing at a legacy role."""

    def _make(email, role_name, branch_id=None):
        role = db.query(Role).filter(Role.name == role_name).first()
        if role is None:
            role = Role(name=role_name)
            db.add(role)
            db.flush()
        user = User(email=email, full_name=email.split("@")[0], role_id=role.id, branch_id=branch_id)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def principal():
    def _make(user_id, legacy_role=None, branch_id=None):
        return Principal(user_id=user_id, legacy_role=legacy_role, branch_id=branch_id)

    return _make
