"""Tests for the catalog and system role seeds."""

from campus_rbac.db.seeds.seed_permissions import CATALOG
from campus_rbac.db.seeds.seed_roles import seed_roles, seed_super_admin
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.role import Role
from campus_rbac.services.legacy_bridge import LegacyRoleMirror


class TestSeedRoles:

    def test_global_system_roles(self, db, catalog, event_bus):
        created = seed_roles(db, branch_ids=[], event_bus=event_bus)

        roles = {r.name: r for r in db.query(RBACRole).all()}
        assert created == 4
        assert set(roles) == {"SuperAdmin", "BranchAdmin", "Teacher", "Student"}
        assert all(r.is_system and r.branch_id is None for r in roles.values())
        assert len(roles["SuperAdmin"].permissions) == len(CATALOG)
        assert "branches:read" in roles["Student"].permission_names

    def test_branch_copies_and_idempotence(self, db, catalog, event_bus):
        seed_roles(db, branch_ids=[1, 2], event_bus=event_bus)
        again = seed_roles(db, branch_ids=[1, 2], event_bus=event_bus)

        assert again == 0
        assert db.query(RBACRole).filter(RBACRole.name == "Teacher").count() == 3

    def test_super_admin_points_at_mirrored_role(self, db, catalog, event_bus, session_factory):
        event_bus.subscribe(LegacyRoleMirror(session_factory))
        seed_roles(db, branch_ids=[], event_bus=event_bus)

        admin = seed_super_admin(db)

        assert admin is not None
        assert admin.role.name == "SuperAdmin"
        assert db.query(Role).count() == 4

    def test_super_admin_needs_legacy_role(self, db, catalog):
        assert seed_super_admin(db) is None
