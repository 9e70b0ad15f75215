"""Tests for authzcore.models."""

from __future__ import annotations

from authzcore.models import Group, NestedGroup, Organization, Permission, Role, User


class TestDirectoryModels:
    """Tests for wire-shape parsing and rendering."""

    def test_group_from_wire(self) -> None:
        group = Group.model_validate({"_id": "g-1", "name": "ACME", "nested": ["g-2"], "extra": 1})
        assert group.id == "g-1"
        assert group.nested == ["g-2"]
        assert group.members == []

    def test_nested_edge_list_defaults(self) -> None:
        assert Group(id="g-2", name="ACME-OWNER").nested is None
        assert NestedGroup(id="g-2", name="ACME-OWNER", organization_id="g-1").nested is None
        assert Organization(name="ACME").nested == []

    def test_to_wire_uses_aliases(self) -> None:
        role = Role(id="r-1", name="ACME:Owner", application_id="app-1", permissions=["p-1"])
        wire = role.to_wire()
        assert wire["_id"] == "r-1"
        assert wire["applicationId"] == "app-1"
        assert wire["applicationType"] == "client"
        assert "nested" not in Group(name="ACME-OWNER").to_wire()

    def test_permission_from_wire(self) -> None:
        permission = Permission.model_validate({"_id": "p-1", "name": "ACME:read:layers", "applicationId": "app-1"})
        assert permission.name == "ACME:read:layers"
        assert permission.application_id == "app-1"

    def test_user_keeps_extra_fields(self) -> None:
        user = User.model_validate({"user_id": "user-1", "email": "one@example.org", "picture": "p.png"})
        assert user.model_dump()["picture"] == "p.png"
