"""Tests for authzcore.workspaces.reconciler."""

from __future__ import annotations

import pytest

from authzcore.exceptions import ParameterRequiredError
from authzcore.permissions import WORKSPACE_ROLES, WorkspaceRole
from authzcore.workspaces import ReconcileReport, WorkspaceReconciler

APP_ID = "app-1"


@pytest.fixture
def reconciler(directory) -> WorkspaceReconciler:
    return WorkspaceReconciler(directory, application_id=APP_ID)


class TestWorkspaceReconciler:
    """Tests for WorkspaceReconciler."""

    @pytest.mark.asyncio
    async def test_complete_workspace_needs_nothing(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        directory.seed_workspace("BETA")

        report = await reconciler.reconcile()

        assert report.success is True
        assert report.organizations == 2
        assert report.mutations == 0
        assert directory.mutations == 0

    @pytest.mark.asyncio
    async def test_recreates_missing_nested_group(self, directory, reconciler) -> None:
        root = directory.seed_workspace("ACME")
        editor = directory.by_name("ACME-EDITOR")
        await directory.delete_group(editor.id)
        directory.mutations = 0

        report = await reconciler.reconcile()

        assert report.groups_created == 1
        assert report.groups_attached == 1
        assert report.roles_attached == 1
        recreated = directory.by_name("ACME-EDITOR")
        assert recreated.id in directory.groups[root.id].nested
        assert recreated.roles == [directory.role_by_name("ACME:Editor").id]

    @pytest.mark.asyncio
    async def test_reattaches_detached_group(self, directory, reconciler) -> None:
        root = directory.seed_workspace("ACME")
        viewer = directory.by_name("ACME-VIEWER")
        await directory.delete_nested_groups(root.id, [viewer.id])

        report = await reconciler.reconcile()

        assert report.groups_created == 0
        assert report.groups_attached == 1
        assert viewer.id in directory.groups[root.id].nested

    @pytest.mark.asyncio
    async def test_new_catalog_scope_updates_role(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        admin = directory.role_by_name("ACME:Admin")
        stale = admin.permissions[:-1]
        admin.permissions = stale

        report = await reconciler.reconcile()

        assert report.roles_updated == 1
        assert report.roles_created == 0
        assert len(directory.role_by_name("ACME:Admin").permissions) == len(WORKSPACE_ROLES[WorkspaceRole.ADMIN].scopes)

    @pytest.mark.asyncio
    async def test_recreates_missing_permission(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        permission = next(p for p in directory.permissions.values() if p.name == "ACME:read:layers")
        await directory.delete_permission(permission.id)

        report = await reconciler.reconcile()

        assert report.permissions_created == 1
        assert any(p.name == "ACME:read:layers" for p in directory.permissions.values())
        # every role that lost the permission is rewritten
        assert report.roles_updated == 1

    @pytest.mark.asyncio
    async def test_never_touches_members(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME", members={WorkspaceRole.OWNER: ["user-1"]})
        await directory.delete_role(directory.role_by_name("ACME:Owner").id)

        await reconciler.reconcile()

        assert directory.by_name("ACME-OWNER").members == ["user-1"]
        assert "add_group_members" not in directory.calls
        assert "delete_group_members" not in directory.calls

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        for role in list(directory.roles.values()):
            await directory.delete_role(role.id)

        first = await reconciler.reconcile()
        mutations = directory.mutations
        second = await reconciler.reconcile()

        assert first.roles_created == len(WORKSPACE_ROLES)
        assert second.mutations == 0
        assert directory.mutations == mutations

    @pytest.mark.asyncio
    async def test_directory_failure_reported(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        directory.fail("get_roles")

        report = await reconciler.reconcile()

        assert report.success is False
        assert bool(report) is False
        assert "get_roles unavailable" in report.error

    def test_report_mutations(self) -> None:
        report = ReconcileReport(groups_created=1, permissions_created=3, roles_updated=2)
        assert report.mutations == 6

    @pytest.mark.asyncio
    async def test_application_id_required(self, directory) -> None:
        directory.seed_workspace("ACME")
        with pytest.raises(ParameterRequiredError):
            await WorkspaceReconciler(directory).reconcile()
        assert directory.mutations == 0

    @pytest.mark.asyncio
    async def test_updated_role_keeps_its_application(self, directory, reconciler) -> None:
        directory.seed_workspace("ACME")
        admin = directory.role_by_name("ACME:Admin")
        admin.permissions = admin.permissions[:-1]

        report = await reconciler.reconcile(application_id="app-2")

        assert report.roles_updated == 1
        assert directory.role_by_name("ACME:Admin").application_id == APP_ID
