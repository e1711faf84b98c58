"""Tests for the permission catalog."""

import pytest
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError

from campus_rbac.core.exceptions import ValidationError
from campus_rbac.db.seeds.seed_permissions import CATALOG, seed_permissions
from campus_rbac.models.permission import Permission
from campus_rbac.services.permission_service import permission_service, split_permission_name


class TestSplitPermissionName:

    def test_valid_name(self):
        assert split_permission_name("students:read_own") == ("students", "read_own")

    @pytest.mark.parametrize("name", ["", "students", "Students:read", "students:", ":read", "a:b:c"])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValidationError):
            split_permission_name(name)


class TestCreatePermission:

    def test_create(self, db):
        result = permission_service.create_permission(db, "inspections:read", "inspections", "read", "View inspections")

        assert result.success
        assert result.data.id is not None
        assert result.data.name == "inspections:read"
        assert permission_service.get_by_name(db, "inspections:read") is not None

    def test_duplicate_name(self, db, catalog):
        result = permission_service.create_permission(db, "students:read", "students", "read")

        assert not result.success
        assert result.code == "DUPLICATE_NAME"
        assert db.query(Permission).filter(Permission.name == "students:read").count() == 1

    def test_name_must_match_resource_and_action(self, db):
        result = permission_service.create_permission(db, "students:read", "teachers", "read")

        assert not result.success
        assert result.code == "VALIDATION_ERROR"

    def test_store_failure_reported_with_operation_code(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        result = permission_service.create_permission(db, "x:read", "x", "read")

        assert not result.success
        assert result.code == "PERMISSION_CREATE_ERROR"
        assert "gone" not in result.message
        db.rollback.assert_called_once()


class TestCatalogQueries:

    def test_seed_is_idempotent(self, db):
        first = seed_permissions(db)
        second = seed_permissions(db)

        assert first == len(CATALOG)
        assert second == 0
        assert db.query(Permission).count() == len(CATALOG)

    def test_list_permissions_paginates(self, db, catalog):
        page = permission_service.list_permissions(db, limit=10, offset=5)

        assert page["total"] == len(CATALOG)
        assert len(page["permissions"]) == 10
        assert page["offset"] == 5

    def test_group_by_resource(self, db, catalog):
        grouped = permission_service.group_by_resource(db)

        assert {"action": "read_own", "permission": "grades:read_own"} in grouped["grades"]
        assert all(entry["permission"].startswith("system:") for entry in grouped["system"])

    def test_resolve_modules_ignores_unknown(self, db, catalog):
        permissions = permission_service.resolve_modules(db, ["library", "nonexistent"])

        assert {p.name for p in permissions} == {
            "library:create", "library:read", "library:update", "library:delete",
        }

    def test_update_description_keeps_name(self, db, catalog):
        perm = catalog["health:read"]

        result = permission_service.update_permission_description(db, perm.id, "View clinic visits")

        assert result.success
        assert result.data.description == "View clinic visits"
        assert result.data.name == "health:read"

    def test_update_unknown_permission(self, db):
        result = permission_service.update_permission_description(db, 9999, "nope")

        assert not result.success
        assert result.code == "NOT_FOUND"

    def test_ensure_permissions_creates_missing(self, db, catalog):
        rows = permission_service.ensure_permissions(db, ["branches:read", "campus:visit"])
        db.commit()

        assert [r.name for r in rows] == ["branches:read", "campus:visit"]
        assert rows[0].id == catalog["branches:read"].id
        assert permission_service.get_by_name(db, "campus:visit").resource == "campus"
