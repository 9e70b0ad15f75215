"""Workspace reconciliation.

Provides:
- ``WorkspaceReconciler`` — converges every existing organization onto the
  current scope catalog.

For each organization and role template the reconciler creates what is
missing (nested group, permissions, role), attaches what is detached, and
rewrites a role's permissions when they differ from the catalog. It never
removes groups, roles, permissions or memberships, and every write is
preceded by an existence check, so a run right after a successful one makes
no Directory mutations.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..directory import DirectoryClient
from ..exceptions import ParameterRequiredError
from ..membership import MembershipResolver
from ..models import Group, Permission, Role
from ..permissions import (
    WORKSPACE_ROLES,
    RoleTemplate,
    WorkspaceRole,
    nested_group_description,
    nested_group_name,
    permission_name,
    role_name,
    scope_description,
)
from .reports import ReconcileReport

logger = logging.getLogger(__name__)


class WorkspaceReconciler:
    """Idempotent upsert of workspace structure."""

    def __init__(self, directory: DirectoryClient, application_id: str = "") -> None:
        self.directory = directory
        self.application_id = application_id

    async def reconcile(self, application_id: Optional[str] = None) -> ReconcileReport:
        """Repair every organization. Errors are logged and end the run with ``success=False``.

        Raises:
            ParameterRequiredError: No application id.
        """
        app = application_id or self.application_id
        if not app:
            raise ParameterRequiredError("Missing required field: application id")
        report = ReconcileReport()
        try:
            groups, permissions, roles = await asyncio.gather(
                self.directory.get_groups(),
                self.directory.get_permissions(),
                self.directory.get_roles(),
            )
            group_map = {g.name: g for g in groups}
            permission_map = {p.name: p for p in permissions}
            role_map = {r.name: r for r in roles}

            for root in MembershipResolver.root_groups(groups):
                report.organizations += 1
                for role, template in WORKSPACE_ROLES.items():
                    await self._reconcile_role(
                        root, role, template, app, group_map, permission_map, role_map, report
                    )
        except Exception as e:
            logger.error("Workspace reconciliation failed: %s", e)
            report.success = False
            report.error = str(e)
            return report

        logger.info(
            "Reconciled %d organizations (%d mutations)", report.organizations, report.mutations
        )
        return report

    async def _reconcile_role(
        self,
        root: Group,
        role: WorkspaceRole,
        template: RoleTemplate,
        app: str,
        group_map: dict[str, Group],
        permission_map: dict[str, Permission],
        role_map: dict[str, Role],
        report: ReconcileReport,
    ) -> None:
        org = root.name
        root_nested = root.nested if root.nested is not None else []

        # Nested group
        nested_name = nested_group_name(org, role)
        nested = group_map.get(nested_name)
        if nested is None:
            logger.debug("creating nested group: %s", nested_name)
            nested = await self.directory.create_group(nested_name, nested_group_description(org, role))
            group_map[nested.name] = nested
            report.groups_created += 1
        if nested.id not in root_nested:
            logger.debug("attaching nested group: %s to primary group: %s", nested.id, root.id)
            await self.directory.add_nested_groups(root.id, [nested.id])
            root_nested.append(nested.id)
            root.nested = root_nested
            report.groups_attached += 1

        # Permissions
        missing = [s for s in template.scopes if permission_name(org, s) not in permission_map]
        if missing:
            logger.debug("creating permissions for %s: %s", nested_name, ", ".join(missing))
            created = await asyncio.gather(
                *(
                    self.directory.create_permission(permission_name(org, s), scope_description(s), app)
                    for s in missing
                )
            )
            for permission in created:
                permission_map[permission.name] = permission
            report.permissions_created += len(created)
        expected = [permission_map[permission_name(org, s)].id for s in template.scopes]

        # Role
        name = role_name(org, role)
        existing = role_map.get(name)
        if existing is None:
            logger.debug("creating role: %s for group: %s", name, nested_name)
            existing = await self.directory.create_role(name, template.description, app, expected)
            role_map[name] = existing
            report.roles_created += 1
        elif set(existing.permissions) != set(expected):
            logger.debug("updating permissions for role: %s", name)
            existing = await self.directory.update_role(
                existing.id,
                existing.name,
                existing.description,
                existing.application_id or app,
                expected,
            )
            role_map[name] = existing
            report.roles_updated += 1

        if existing.id not in nested.roles:
            logger.debug("assigning role: %s to group: %s", existing.id, nested_name)
            await self.directory.add_group_roles(nested.id, [existing.id])
            nested.roles.append(existing.id)
            report.roles_attached += 1


__all__ = ["WorkspaceReconciler"]
