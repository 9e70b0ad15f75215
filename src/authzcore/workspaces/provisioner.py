"""Workspace provisioning.

Provides:
- ``WorkspaceProvisioner`` — builds and tears down the full group/role/
  permission graph of an organization, bootstraps the global roles, and
  lists/reads/updates organizations.

Only the root-group creation aborts ``create_workspace``. Every later step
runs through the report ledger: the first failure is logged, the remaining
steps are recorded as skipped, and the organization is returned with
``success=False``. ``WorkspaceReconciler`` is the repair path. Nothing is
rolled back.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from ..directory import DirectoryClient
from ..exceptions import (
    AlreadyExistsError,
    DirectoryError,
    InvalidParameterError,
    ParameterRequiredError,
    RecordNotFound,
)
from ..logging import get_authz_logger
from ..membership import MembershipResolver
from ..models import Group, Organization
from ..permissions import (
    GLOBAL_PREFIX,
    GLOBAL_ROLES,
    SCOPES_READ,
    SCOPES_READ_GLOBAL,
    SCOPES_WRITE,
    SCOPES_WRITE_GLOBAL,
    WORKSPACE_ROLES,
    WorkspaceRole,
    enforce_workspace_name,
    name_prefix,
    nested_group_description,
    nested_group_name,
    nested_group_parent,
    permission_name,
    role_name,
    scope_description,
)
from .reports import ProvisioningReport

logger = logging.getLogger(__name__)


def _organization(group: Group) -> Organization:
    fields = group.model_dump(include=set(Group.model_fields) - {"nested"})
    return Organization(**fields, nested=list(group.nested or []))


class WorkspaceProvisioner:
    """Creates and deletes organizations in the Directory.

    Args:
        directory: Directory client.
        application_id: Default application owning permissions and roles.
        resolver: Resolver used to list nested groups (built when omitted).
    """

    def __init__(
        self,
        directory: DirectoryClient,
        application_id: str = "",
        resolver: Optional[MembershipResolver] = None,
    ) -> None:
        self.directory = directory
        self.application_id = application_id
        self.resolver = resolver or MembershipResolver(directory)

    def _application(self, application_id: Optional[str]) -> str:
        app = application_id or self.application_id
        if not app:
            raise ParameterRequiredError("Missing required field: application id")
        return app

    # ── Create ───────────────────────────────────────────────────

    async def create_workspace(
        self,
        name: str,
        description: str,
        owner_ids: Sequence[str],
        application_id: Optional[str] = None,
    ) -> ProvisioningReport:
        """Create an organization and its nested groups, permissions and roles.

        ``name`` is a slug (``^[a-z0-9](-?[a-z0-9])*$``, case-insensitive);
        the organization is stored under its uppercase form.

        Raises:
            InvalidParameterError: ``name`` is not a valid slug.
            ParameterRequiredError: No owners or no application id.
            AlreadyExistsError: An organization with that name exists, the name
                collides with a nested group name, or the root group could not
                be created.
        """
        if not name or not enforce_workspace_name(name.lower()):
            raise InvalidParameterError("Invalid format for field: slug", slug=name)
        if isinstance(owner_ids, str):
            raise InvalidParameterError("Invalid type for field: owners")
        app = self._application(application_id)
        org = name.upper()
        log = get_authz_logger(__name__, org=org)

        names = {g.name for g in await self.directory.get_groups()}
        # A new name must not read as a nested group of an existing one, or the other way round
        if (
            org in names
            or nested_group_parent(org, names)
            or any(nested_group_parent(n, {org}) for n in names)
        ):
            raise AlreadyExistsError(org=org)
        try:
            log.debug("creating workspace primary group")
            root = await self.directory.create_group(org, description)
        except DirectoryError as e:
            raise AlreadyExistsError(org=org) from e

        report = ProvisioningReport(operation="create_workspace", organization=_organization(root))
        groups: dict[WorkspaceRole, str] = {}
        permissions: dict[str, str] = {}
        roles: dict[WorkspaceRole, str] = {}

        async def create_nested_groups() -> None:
            created = await asyncio.gather(
                *(
                    self.directory.create_group(nested_group_name(org, role), nested_group_description(org, role))
                    for role in WORKSPACE_ROLES
                )
            )
            groups.update(zip(WORKSPACE_ROLES, (g.id for g in created)))

        async def attach_nested_groups() -> None:
            await self.directory.add_nested_groups(root.id, list(groups.values()))
            report.organization.nested = list(groups.values())

        async def create_permissions() -> None:
            scopes = SCOPES_READ + SCOPES_WRITE
            created = await asyncio.gather(
                *(
                    self.directory.create_permission(permission_name(org, scope), scope_description(scope), app)
                    for scope in scopes
                )
            )
            permissions.update(zip(scopes, (p.id for p in created)))

        async def create_roles() -> None:
            created = await asyncio.gather(
                *(
                    self.directory.create_role(
                        role_name(org, role),
                        template.description,
                        app,
                        [permissions[scope] for scope in template.scopes],
                    )
                    for role, template in WORKSPACE_ROLES.items()
                )
            )
            roles.update(zip(WORKSPACE_ROLES, (r.id for r in created)))

        async def attach_roles() -> None:
            await asyncio.gather(
                *(self.directory.add_group_roles(groups[role], [roles[role]]) for role in WORKSPACE_ROLES)
            )

        async def add_owners() -> None:
            if owner_ids:
                await self.directory.add_group_members(groups[WorkspaceRole.OWNER], list(owner_ids))

        await report.run("create_nested_groups", create_nested_groups)
        await report.run("attach_nested_groups", attach_nested_groups)
        await report.run("create_permissions", create_permissions)
        await report.run("create_roles", create_roles)
        await report.run("attach_roles", attach_roles)
        await report.run("add_owners", add_owners)

        if report.success:
            log.info("Workspace created (owners=%d)", len(owner_ids))
        else:
            log.warning("Workspace created with an incomplete graph; failed at '%s'", report.failed_step.name)
        return report

    # ── Delete ───────────────────────────────────────────────────

    async def delete_workspace(
        self, root_group_id: str, application_id: Optional[str] = None
    ) -> ProvisioningReport:
        """Delete an organization, its nested groups, roles and permissions.

        Any failing step stops the run; what was already deleted stays deleted.

        Raises:
            RecordNotFound: ``root_group_id`` is not an organization.
        """
        app = self._application(application_id)
        root = await self._get_root(root_group_id)
        log = get_authz_logger(__name__, org=root.name)

        report = ProvisioningReport(operation="delete_workspace", organization=_organization(root))
        nested_ids: list[str] = []

        async def resolve_nested_groups() -> None:
            # Public included: nothing named after the organization may survive
            nested = await self.resolver.get_all_nested_groups(root.id)
            nested_ids.extend(g.id for g in nested)

        async def detach_nested_groups() -> None:
            if nested_ids:
                log.debug("detaching nested groups: %s", ", ".join(nested_ids))
                await self.directory.delete_nested_groups(root.id, nested_ids)

        async def delete_nested_groups() -> None:
            await asyncio.gather(*(self.directory.delete_group(gid) for gid in nested_ids))

        async def delete_roles() -> None:
            owned = [
                r for r in await self.directory.get_roles()
                if name_prefix(r.name) == root.name and r.application_id == app
            ]
            await asyncio.gather(*(self.directory.delete_role(r.id) for r in owned))

        async def delete_permissions() -> None:
            owned = [
                p for p in await self.directory.get_permissions()
                if name_prefix(p.name) == root.name and p.application_id == app
            ]
            await asyncio.gather(*(self.directory.delete_permission(p.id) for p in owned))

        async def delete_root_group() -> None:
            await self.directory.delete_group(root.id)

        await report.run("resolve_nested_groups", resolve_nested_groups)
        await report.run("detach_nested_groups", detach_nested_groups)
        await report.run("delete_nested_groups", delete_nested_groups)
        await report.run("delete_roles", delete_roles)
        await report.run("delete_permissions", delete_permissions)
        await report.run("delete_root_group", delete_root_group)

        if report.success:
            log.info("Workspace deleted")
        return report

    # ── Global roles ─────────────────────────────────────────────

    async def create_global_roles(self, application_id: Optional[str] = None) -> ProvisioningReport:
        """Create the ``*:`` permissions and the global roles; existing ones are kept."""
        app = self._application(application_id)
        report = ProvisioningReport(operation="create_global_roles")
        permissions: dict[str, str] = {}

        async def create_global_permissions() -> None:
            existing = {p.name: p.id for p in await self.directory.get_permissions()}
            scopes = SCOPES_READ_GLOBAL + SCOPES_WRITE_GLOBAL
            missing = [s for s in scopes if permission_name(GLOBAL_PREFIX, s) not in existing]
            created = await asyncio.gather(
                *(
                    self.directory.create_permission(
                        permission_name(GLOBAL_PREFIX, scope), scope_description(scope, is_global=True), app
                    )
                    for scope in missing
                )
            )
            for scope in scopes:
                if permission_name(GLOBAL_PREFIX, scope) in existing:
                    permissions[scope] = existing[permission_name(GLOBAL_PREFIX, scope)]
            permissions.update(zip(missing, (p.id for p in created)))

        async def create_roles() -> None:
            existing = {r.name for r in await self.directory.get_roles()}
            await asyncio.gather(
                *(
                    self.directory.create_role(
                        role_name(GLOBAL_PREFIX, role),
                        template.description,
                        app,
                        [permissions[scope] for scope in template.scopes],
                    )
                    for role, template in GLOBAL_ROLES.items()
                    if role_name(GLOBAL_PREFIX, role) not in existing
                )
            )

        await report.run("create_global_permissions", create_global_permissions)
        await report.run("create_global_roles", create_roles)
        return report

    # ── Read / update ────────────────────────────────────────────

    async def _get_root(self, root_group_id: str) -> Group:
        group = await self.directory.get_group(root_group_id)
        roots = self.resolver.root_groups(await self.directory.get_groups())
        if not any(g.id == group.id for g in roots):
            raise RecordNotFound("Could not retrieve document.", id=root_group_id)
        return group

    async def list_workspaces(self) -> list[Organization]:
        return [_organization(g) for g in self.resolver.root_groups(await self.directory.get_groups())]

    async def get_workspace(self, root_group_id: str) -> Organization:
        return _organization(await self._get_root(root_group_id))

    async def update_workspace(self, root_group_id: str, description: str) -> Organization:
        """Change the description (display name) of an organization. The slug is immutable."""
        group = await self.get_workspace(root_group_id)
        description = description.strip() if description and description.strip() else group.description
        updated = await self.directory.update_group(group.id, group.name, description)
        return _organization(updated.model_copy(update={"nested": updated.nested or group.nested}))


__all__ = ["WorkspaceProvisioner"]
