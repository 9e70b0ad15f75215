"""Membership resolution over the Directory.

Provides:
- ``MembershipResolver`` — read-only queries: a user's memberships, the
  nested groups and role bindings of an organization, and ownership/admin/
  super-admin status.

Nested groups are returned as ``NestedGroup`` with ``organization_id`` set
from the parent edge and ``kind`` parsed from the name.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional, Sequence, Union

from ..directory import DirectoryClient
from ..exceptions import RecordNotFound
from ..models import (
    Group,
    GroupRoleBinding,
    GroupRoles,
    MembersPage,
    NestedGroup,
    RoleRef,
    User,
)
from ..permissions import GlobalRole, GroupKind, group_kind, nested_group_parent

logger = logging.getLogger(__name__)

KindFilter = Iterable[Union[GroupKind, str]]


def _kinds(values: KindFilter) -> list[str]:
    return [v.value if isinstance(v, GroupKind) else str(v) for v in values]


def _kind_value(name: str) -> str:
    kind = group_kind(name)
    return kind.value if kind else ""


class MembershipResolver:
    """Read-side queries for memberships, roles and ownership."""

    def __init__(self, directory: DirectoryClient) -> None:
        self.directory = directory

    # ── Memberships ──────────────────────────────────────────────

    async def calculate_memberships(self, user_id: str) -> list[Group]:
        """Every group the user belongs to, directly or through nesting."""
        return await self.directory.calculate_group_memberships(user_id)

    @staticmethod
    def find_primary_group_id(memberships: Sequence[Group], org_name: str) -> str:
        """Id of the membership named exactly ``org_name``.

        Raises:
            RecordNotFound: No membership carries that name.
        """
        for group in memberships:
            if group.name == org_name:
                return group.id
        raise RecordNotFound(f"Could not resolve primary group for: {org_name}", org=org_name)

    @staticmethod
    def root_groups(groups: Sequence[Group]) -> list[Group]:
        """Organizations among ``groups``.

        A group is a root unless another group nests it or its name is the
        ``{ORG}-{KIND}`` name of another listed group. The ``nested`` edge list
        only appears once a child is attached, so it is not consulted.
        """
        nested_ids = {gid for g in groups for gid in g.nested or []}
        names = {g.name for g in groups}
        return [
            g for g in groups
            if g.id not in nested_ids and nested_group_parent(g.name, names) is None
        ]

    # ── Nested groups ────────────────────────────────────────────

    async def get_all_nested_groups(
        self,
        root_id: str,
        include_kinds: KindFilter = (),
        exclude_kinds: KindFilter = (),
    ) -> list[NestedGroup]:
        """Children of ``root_id``, the PUBLIC kind included.

        A name matches a kind when it ends with it; every kind in
        ``include_kinds`` must match.
        """
        include = _kinds(include_kinds)
        exclude = _kinds(exclude_kinds)

        children = await self.directory.get_nested_groups(root_id)
        result = []
        for child in children:
            if include and not all(child.name.endswith(k) for k in include):
                continue
            if any(child.name.endswith(k) for k in exclude):
                continue
            fields = child.model_dump(include=set(Group.model_fields))
            result.append(
                NestedGroup(**fields, organization_id=root_id, kind=_kind_value(child.name))
            )
        return result

    async def get_nested_groups(
        self,
        root_id: str,
        include_kinds: KindFilter = (),
        exclude_kinds: KindFilter = (),
    ) -> list[NestedGroup]:
        """Children of ``root_id`` without the PUBLIC kind."""
        exclude = [GroupKind.PUBLIC, *_kinds(exclude_kinds)]
        return await self.get_all_nested_groups(root_id, include_kinds, exclude)

    async def get_nested_group_members(
        self, root_id: str, page: int = 1, per_page: int = 10
    ) -> MembersPage:
        return await self.directory.get_nested_group_members(root_id, page=page, per_page=per_page)

    # ── Roles ────────────────────────────────────────────────────

    async def get_nested_group_roles(self, group_id: str) -> list[GroupRoleBinding]:
        return await self.directory.get_nested_group_roles(group_id)

    @staticmethod
    def map_nested_group_roles(
        nested_group_roles: Iterable[Iterable[GroupRoleBinding]],
    ) -> list[GroupRoles]:
        """Merge role bindings per group id; each group's roles accumulate in order."""
        merged: dict[str, GroupRoles] = {}
        for bindings in nested_group_roles:
            for binding in bindings:
                group = binding.group
                role = RoleRef(
                    id=binding.role.id,
                    name=binding.role.name,
                    description=binding.role.description,
                )
                previous = merged.get(group.id)
                merged[group.id] = GroupRoles(
                    id=group.id,
                    name=group.name,
                    description=group.description,
                    members=list(group.members),
                    organization_id=group.organization_id,
                    kind=group.kind or _kind_value(group.name),
                    roles=[*(previous.roles if previous else []), role],
                )
        return list(merged.values())

    async def get_member_groups(self, user_id: str, org_names: Sequence[str]) -> list[GroupRoles]:
        """Nested groups (with roles) the user belongs to, across claimed organizations.

        Organizations the user is not a member of are skipped. Failures are
        logged and degrade to an empty result for the organization concerned.
        """
        try:
            memberships = await self.calculate_memberships(user_id)
        except Exception as e:
            logger.error("Could not resolve member groups for: %s (%s)", user_id, e)
            return []

        names = {g.name for g in memberships}
        root_ids = [self.find_primary_group_id(memberships, org) for org in org_names if org in names]

        per_org = await asyncio.gather(
            *(self._member_groups_in(user_id, root_id) for root_id in root_ids)
        )
        return [group for groups in per_org for group in groups]

    async def _member_groups_in(self, user_id: str, root_id: str) -> list[GroupRoles]:
        try:
            children = await self.get_nested_groups(root_id)
            bindings = await asyncio.gather(
                *(self.get_nested_group_roles(child.id) for child in children)
            )
        except Exception as e:
            logger.error("Could not resolve member groups for: %s in %s (%s)", user_id, root_id, e)
            return []

        # Bindings do not carry the parent edge
        parents = {child.id: child for child in children}
        for group_bindings in bindings:
            for binding in group_bindings:
                parent = parents.get(binding.group.id)
                if parent is not None:
                    binding.group.organization_id = parent.organization_id
                    binding.group.kind = parent.kind

        group_roles = self.map_nested_group_roles(bindings)
        return [g for g in group_roles if user_id in g.members]

    # ── Ownership ────────────────────────────────────────────────

    async def _kind_members(
        self, root_id: str, kind: GroupKind, only_ids: bool
    ) -> Union[list[str], list[User]]:
        groups = await self.get_nested_groups(root_id, [kind])
        if not groups:
            return []
        members = list(groups[0].members)
        if only_ids:
            return members
        return list(await asyncio.gather(*(self.directory.get_user(uid) for uid in members)))

    async def get_group_owners(self, root_id: str, only_ids: bool = False) -> Union[list[str], list[User]]:
        return await self._kind_members(root_id, GroupKind.OWNER, only_ids)

    async def get_group_admins(self, root_id: str, only_ids: bool = False) -> Union[list[str], list[User]]:
        return await self._kind_members(root_id, GroupKind.ADMIN, only_ids)

    async def is_group_owner(self, user_id: str, root_id: str) -> bool:
        return user_id in await self.get_group_owners(root_id, only_ids=True)

    async def is_group_admin(self, user_id: str, root_id: str) -> bool:
        return user_id in await self.get_group_admins(root_id, only_ids=True)

    async def get_super_admins(self, only_ids: bool = False) -> Union[list[str], list[User]]:
        """Users of the global role whose name ends with ``SuperAdmin``."""
        roles = await self.directory.get_roles()
        role = next((r for r in roles if r.name and r.name.endswith(GlobalRole.SUPER_ADMIN.value)), None)
        if role is None:
            return []
        if only_ids:
            return list(role.users)
        return list(await asyncio.gather(*(self.directory.get_user(uid) for uid in role.users)))

    async def is_super_admin(self, user_id: str) -> bool:
        return user_id in await self.get_super_admins(only_ids=True)

    async def resolve_organization(self, org_name: str) -> Optional[Group]:
        """Root group named ``org_name``, or None."""
        for group in self.root_groups(await self.directory.get_groups()):
            if group.name == org_name:
                return group
        return None


__all__ = ["MembershipResolver"]
