"""Tests for the role registry."""

import pytest
from sqlalchemy.exc import IntegrityError

from campus_rbac.core.essential import EssentialPermissionSet
from campus_rbac.models.rbac_role import RBACRole
from campus_rbac.models.user_role import UserRoleAssignment
from campus_rbac.services.role_service import role_service


class TestDefineRole:

    def test_modules_expand_to_all_their_permissions(self, db, make_role):
        role = make_role("Librarian", ["library"])

        assert set(role.permission_names) == {
            "library:create", "library:read", "library:update", "library:delete", "branches:read",
        }

    def test_empty_modules_still_carry_essential_set(self, db, make_role):
        role = make_role("Visitor", [])

        assert role.permission_names == ["branches:read"]

    def test_inspector_scenario(self, db, catalog, event_bus):
        essential = EssentialPermissionSet.of(["branches:read"])

        result = role_service.define_role(
            db, 1, "Inspector", ["attendance"], essential=essential, event_bus=event_bus,
        )

        assert result.success
        assert set(result.data.permission_names) == {
            "attendance:create", "attendance:read", "attendance:update",
            "attendance:delete", "attendance:read_own", "branches:read",
        }

    def test_essential_set_is_configurable(self, db, catalog, event_bus):
        essential = EssentialPermissionSet.of(["branches:read", "announcements:read"], version=2)

        result = role_service.define_role(db, 1, "Clerk", ["finance"], essential=essential, event_bus=event_bus)

        assert {"branches:read", "announcements:read"} <= set(result.data.permission_names)

    def test_missing_essential_permission_is_added_to_catalog(self, db, catalog, event_bus):
        essential = EssentialPermissionSet.of(["campus:enter"])

        result = role_service.define_role(db, 1, "Guard", [], essential=essential, event_bus=event_bus)

        assert result.success
        assert result.data.permission_names == ["campus:enter"]

    def test_duplicate_name_in_same_branch(self, db, make_role, essential, event_bus):
        make_role("Counselor", ["health"], branch_id=3)

        result = role_service.define_role(db, 3, "Counselor", [], essential=essential, event_bus=event_bus)

        assert not result.success
        assert result.code == "DUPLICATE_NAME"

    def test_same_name_allowed_in_other_branch(self, db, make_role):
        make_role("Counselor", ["health"], branch_id=3)
        other = make_role("Counselor", ["health"], branch_id=4)

        assert other.branch_id == 4

    def test_global_duplicate_blocked_by_constraint(self, db, make_role):
        make_role("Auditor", [], branch_id=None)

        db.add(RBACRole(branch_id=None, name="Auditor"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        assert db.query(RBACRole).filter(RBACRole.name == "Auditor").count() == 1

    def test_constraint_race_reports_duplicate(self, db, catalog, essential, event_bus, monkeypatch):
        real_commit = db.commit

        def commit():
            if any(isinstance(obj, RBACRole) for obj in db.new):
                raise IntegrityError("INSERT INTO rbac_roles", {}, Exception("UNIQUE constraint failed"))
            real_commit()

        monkeypatch.setattr(db, "commit", commit)

        result = role_service.define_role(db, 3, "Counselor", [], essential=essential, event_bus=event_bus)

        assert not result.success
        assert result.code == "DUPLICATE_NAME"

    def test_blank_name_rejected(self, db, catalog, essential, event_bus):
        result = role_service.define_role(db, 1, "  ", ["library"], essential=essential, event_bus=event_bus)

        assert not result.success
        assert result.code == "VALIDATION_ERROR"

    def test_publishes_role_created(self, db, catalog, essential, event_bus):
        seen = []
        event_bus.subscribe(seen.append)

        result = role_service.define_role(db, 2, "Nurse", ["health"], essential=essential, event_bus=event_bus)

        assert len(seen) == 1
        assert seen[0].role_id == result.data.id
        assert "health:read" in seen[0].permission_names
        assert seen[0].schema_version == 1

    def test_failed_creation_publishes_nothing(self, db, make_role, essential, event_bus):
        make_role("Nurse", ["health"], branch_id=2)
        seen = []
        event_bus.subscribe(seen.append)

        role_service.define_role(db, 2, "Nurse", [], essential=essential, event_bus=event_bus)

        assert seen == []


class TestCreateRoleWithPermissions:

    def test_explicit_ids_plus_essential(self, db, catalog, essential, event_bus):
        ids = [catalog["grades:read"].id, catalog["grades:update"].id]

        result = role_service.create_role_with_permissions(
            db, 1, "Moderator", ids, essential=essential, event_bus=event_bus,
        )

        assert set(result.data.permission_names) == {"grades:read", "grades:update", "branches:read"}

    def test_unknown_permission_id(self, db, catalog, essential, event_bus):
        result = role_service.create_role_with_permissions(
            db, 1, "Ghost", [999999], essential=essential, event_bus=event_bus,
        )

        assert not result.success
        assert result.code == "NOT_FOUND"
        assert db.query(RBACRole).filter(RBACRole.name == "Ghost").count() == 0


class TestUpdateRolePermissions:

    def test_replaces_exactly(self, db, catalog, make_role):
        role = make_role("Assistant", ["library", "events"])

        result = role_service.update_role_permissions(db, role.id, [catalog["events:read"].id])

        assert result.success
        assert result.data.permission_names == ["events:read"]

    def test_essential_set_not_reapplied(self, db, catalog, make_role):
        role = make_role("Assistant", ["library"])

        result = role_service.update_role_permissions(db, role.id, [catalog["library:read"].id])

        assert "branches:read" not in result.data.permission_names

    def test_empty_list_clears_permissions(self, db, make_role):
        role = make_role("Assistant", ["library"])

        result = role_service.update_role_permissions(db, role.id, [])

        assert result.data.permission_names == []

    def test_unknown_role(self, db, catalog):
        result = role_service.update_role_permissions(db, 4242, [catalog["library:read"].id])

        assert result.code == "NOT_FOUND"


class TestGetRoles:

    def test_global_roles_visible_from_every_branch(self, db, make_role):
        make_role("Auditor", ["analytics"], branch_id=None)
        make_role("North Clerk", ["finance"], branch_id=1)
        make_role("South Clerk", ["finance"], branch_id=2)

        north = {r.name for r in role_service.get_roles(db, branch_id=1)["roles"]}
        south = {r.name for r in role_service.get_roles(db, branch_id=2)["roles"]}

        assert north == {"Auditor", "North Clerk"}
        assert south == {"Auditor", "South Clerk"}

    def test_no_branch_lists_everything(self, db, make_role):
        make_role("Auditor", [], branch_id=None)
        make_role("North Clerk", [], branch_id=1)

        page = role_service.get_roles(db)

        assert page["total"] == 2

    def test_get_role_by_id_missing(self, db):
        from campus_rbac.core.exceptions import NotFoundError

        with pytest.raises(NotFoundError):
            role_service.get_role_by_id(db, 123)


class TestDeleteRole:

    def test_delete_unused_role(self, db, make_role):
        role = make_role("Temp", ["events"])

        result = role_service.delete_role(db, role.id)

        assert result.success
        assert result.data["orphaned_assignments"] == 0
        assert db.query(RBACRole).filter(RBACRole.id == role.id).first() is None

    def test_refuses_role_in_use(self, db, make_role, grant):
        role = make_role("Temp", ["events"])
        grant(7, role)

        result = role_service.delete_role(db, role.id)

        assert not result.success
        assert result.code == "ROLE_IN_USE"

    def test_force_leaves_assignments_behind(self, db, make_role, grant):
        role = make_role("Temp", ["events"])
        grant(7, role)

        result = role_service.delete_role(db, role.id, force=True)

        assert result.success
        assert result.data["orphaned_assignments"] == 1
        assert db.query(UserRoleAssignment).filter(UserRoleAssignment.user_id == 7).count() == 1

    def test_system_role_protected(self, db, make_role):
        role = make_role("Core", [], is_system=True)

        result = role_service.delete_role(db, role.id, force=True)

        assert result.code == "VALIDATION_ERROR"
