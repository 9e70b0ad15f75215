"""Tests for authzcore.membership.admin."""

from __future__ import annotations

import pytest

from authzcore.exceptions import (
    InvalidParameterError,
    ParameterRequiredError,
    RecordNotFound,
    UnauthorizedError,
)
from authzcore.membership import MembershipAdmin
from authzcore.permissions import WorkspaceRole

MEMBERS = {
    WorkspaceRole.OWNER: ["owner-1"],
    WorkspaceRole.ADMIN: ["admin-1", "admin-2"],
    WorkspaceRole.EDITOR: ["editor-1"],
    WorkspaceRole.VIEWER: ["viewer-1"],
}


@pytest.fixture
def admin(directory) -> MembershipAdmin:
    return MembershipAdmin(directory)


@pytest.fixture
def acme(directory):
    return directory.seed_workspace("ACME", members=MEMBERS)


class TestAssignableGroups:
    """Tests for list_assignable_groups."""

    @pytest.mark.asyncio
    async def test_owner_may_assign_admin(self, acme, admin) -> None:
        groups = await admin.list_assignable_groups("owner-1", "ACME")
        assert sorted(g.kind for g in groups) == ["ADMIN", "EDITOR", "VIEWER"]
        assert all(g.roles for g in groups)

    @pytest.mark.asyncio
    async def test_admin_may_not_assign_admin(self, acme, admin) -> None:
        groups = await admin.list_assignable_groups("admin-1", "ACME")
        assert sorted(g.kind for g in groups) == ["EDITOR", "VIEWER"]

    @pytest.mark.asyncio
    async def test_actor_outside_organization(self, acme, admin) -> None:
        with pytest.raises(RecordNotFound):
            await admin.list_assignable_groups("stranger", "ACME")


class TestSetMemberGroups:
    """Tests for set_member_groups."""

    @pytest.mark.asyncio
    async def test_moves_user_between_groups(self, directory, acme, admin) -> None:
        editor = directory.by_name("ACME-EDITOR")
        await admin.set_member_groups("admin-1", "ACME", "viewer-1", [editor.id])

        assert "viewer-1" in directory.by_name("ACME-EDITOR").members
        assert "viewer-1" not in directory.by_name("ACME-VIEWER").members

    @pytest.mark.asyncio
    async def test_empty_list_removes_role_groups(self, directory, acme, admin) -> None:
        await admin.set_member_groups("owner-1", "ACME", "editor-1", [])
        assert "editor-1" not in directory.by_name("ACME-EDITOR").members

    @pytest.mark.asyncio
    async def test_owner_promotes_to_admin(self, directory, acme, admin) -> None:
        admin_group = directory.by_name("ACME-ADMIN")
        await admin.set_member_groups("owner-1", "ACME", "editor-1", [admin_group.id, admin_group.id])
        assert "editor-1" in directory.by_name("ACME-ADMIN").members

    @pytest.mark.asyncio
    async def test_admin_cannot_promote_to_admin(self, directory, acme, admin) -> None:
        admin_group = directory.by_name("ACME-ADMIN")
        with pytest.raises(RecordNotFound, match="Invalid groups specified."):
            await admin.set_member_groups("admin-1", "ACME", "editor-1", [admin_group.id])

    @pytest.mark.asyncio
    async def test_nobody_assigns_owner(self, directory, acme, admin) -> None:
        owner_group = directory.by_name("ACME-OWNER")
        with pytest.raises(RecordNotFound):
            await admin.set_member_groups("owner-1", "ACME", "editor-1", [owner_group.id])

    @pytest.mark.asyncio
    async def test_single_role_group(self, directory, acme, admin) -> None:
        ids = [directory.by_name("ACME-EDITOR").id, directory.by_name("ACME-VIEWER").id]
        with pytest.raises(InvalidParameterError):
            await admin.set_member_groups("owner-1", "ACME", "editor-1", ids)

    @pytest.mark.asyncio
    async def test_cannot_update_self(self, directory, acme, admin) -> None:
        with pytest.raises(UnauthorizedError, match="You cannot update your own user."):
            await admin.set_member_groups("admin-1", "ACME", "admin-1", [])

    @pytest.mark.asyncio
    async def test_cannot_update_owner(self, directory, acme, admin) -> None:
        with pytest.raises(UnauthorizedError, match="You cannot update an owner."):
            await admin.set_member_groups("admin-1", "ACME", "owner-1", [])

    @pytest.mark.asyncio
    async def test_admin_cannot_update_admin(self, directory, acme, admin) -> None:
        with pytest.raises(UnauthorizedError, match="You cannot update an admin."):
            await admin.set_member_groups("admin-1", "ACME", "admin-2", [])
        assert "admin-2" in directory.by_name("ACME-ADMIN").members

    @pytest.mark.asyncio
    async def test_owner_may_update_admin(self, directory, acme, admin) -> None:
        await admin.set_member_groups("owner-1", "ACME", "admin-2", [directory.by_name("ACME-EDITOR").id])
        assert "admin-2" not in directory.by_name("ACME-ADMIN").members
        assert "admin-2" in directory.by_name("ACME-EDITOR").members

    @pytest.mark.asyncio
    async def test_user_required(self, acme, admin) -> None:
        with pytest.raises(ParameterRequiredError):
            await admin.set_member_groups("owner-1", "ACME", "", [])


class TestRemoveMember:
    """Tests for remove_member."""

    @pytest.mark.asyncio
    async def test_removes_from_every_nested_group(self, directory, acme, admin) -> None:
        public = directory.by_name("ACME-PUBLIC")
        public.members.append("viewer-1")

        await admin.remove_member("owner-1", "ACME", "viewer-1")

        memberships = await directory.calculate_group_memberships("viewer-1")
        assert memberships == []

    @pytest.mark.asyncio
    async def test_rank_checked(self, acme, admin) -> None:
        with pytest.raises(UnauthorizedError):
            await admin.remove_member("editor-1", "ACME", "owner-1")


class TestOwners:
    """Tests for update_owners and ensure_can_leave."""

    @pytest.mark.asyncio
    async def test_update_owners(self, directory, acme, admin) -> None:
        await admin.update_owners(acme.id, ["owner-2", "owner-3"])
        assert sorted(directory.by_name("ACME-OWNER").members) == ["owner-2", "owner-3"]

    @pytest.mark.asyncio
    async def test_update_owners_without_owner_group(self, directory, admin) -> None:
        root = await directory.create_group("LONELY", "Lonely")
        with pytest.raises(RecordNotFound):
            await admin.update_owners(root.id, ["owner-1"])

    @pytest.mark.asyncio
    async def test_sole_owner_cannot_leave(self, acme, admin) -> None:
        with pytest.raises(UnauthorizedError, match="only owner of it"):
            await admin.ensure_can_leave("owner-1", ["ACME"])

    @pytest.mark.asyncio
    async def test_co_owner_may_leave(self, directory, acme, admin) -> None:
        directory.by_name("ACME-OWNER").members.append("owner-2")
        await admin.ensure_can_leave("owner-1", ["ACME"])

    @pytest.mark.asyncio
    async def test_sole_super_admin_cannot_leave(self, directory, admin) -> None:
        directory.seed_super_admins(["root-admin"])
        with pytest.raises(UnauthorizedError, match="only super admin"):
            await admin.ensure_can_leave("root-admin", [])

    @pytest.mark.asyncio
    async def test_member_may_leave(self, acme, admin) -> None:
        await admin.ensure_can_leave("editor-1", ["ACME", "BETA"])
