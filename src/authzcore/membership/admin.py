"""Administrative membership changes inside an organization.

Provides:
- ``MembershipAdmin`` — assigns users to role groups while enforcing rank:
  nobody modifies themselves, owners are untouchable, and only owners may
  modify admins. An owner may hand out every role group except OWNER;
  everyone else may not hand out OWNER or ADMIN.

A user holds at most one role group per organization.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from ..directory import DirectoryClient
from ..exceptions import (
    InvalidParameterError,
    ParameterRequiredError,
    RecordNotFound,
    UnauthorizedError,
)
from ..logging import get_authz_logger
from ..models import GroupRoles, NestedGroup
from ..permissions import GroupKind
from .resolver import MembershipResolver

logger = logging.getLogger(__name__)


class MembershipAdmin:
    """Rank-checked membership mutations for one organization at a time."""

    def __init__(self, directory: DirectoryClient, resolver: Optional[MembershipResolver] = None) -> None:
        self.directory = directory
        self.resolver = resolver or MembershipResolver(directory)

    # ── Helpers ──────────────────────────────────────────────────

    async def _root_id(self, actor_id: str, org_name: str) -> str:
        memberships = await self.resolver.calculate_memberships(actor_id)
        return self.resolver.find_primary_group_id(memberships, org_name)

    async def _assignable(self, root_id: str, actor_is_owner: bool) -> list[NestedGroup]:
        excluded = [GroupKind.OWNER] if actor_is_owner else [GroupKind.OWNER, GroupKind.ADMIN]
        return await self.resolver.get_nested_groups(root_id, exclude_kinds=excluded)

    async def _check_rank(self, actor_id: str, user_id: str, root_id: str) -> bool:
        """Raise UnauthorizedError when ``actor_id`` may not modify ``user_id``.

        Returns whether the actor owns the organization.
        """
        if not user_id:
            raise ParameterRequiredError("Missing required field: user")
        if actor_id == user_id:
            raise UnauthorizedError("You cannot update your own user.", status=403)

        target_is_owner, target_is_admin, actor_is_owner = await asyncio.gather(
            self.resolver.is_group_owner(user_id, root_id),
            self.resolver.is_group_admin(user_id, root_id),
            self.resolver.is_group_owner(actor_id, root_id),
        )
        if target_is_owner:
            raise UnauthorizedError("You cannot update an owner.", status=403)
        if target_is_admin and not actor_is_owner:
            raise UnauthorizedError("You cannot update an admin.", status=403)
        return actor_is_owner

    # ── Operations ───────────────────────────────────────────────

    async def list_assignable_groups(self, actor_id: str, org_name: str) -> list[GroupRoles]:
        """Role groups the actor may assign in ``org_name``, with their roles."""
        root_id = await self._root_id(actor_id, org_name)
        actor_is_owner = await self.resolver.is_group_owner(actor_id, root_id)
        groups = await self._assignable(root_id, actor_is_owner)
        bindings = await asyncio.gather(*(self.resolver.get_nested_group_roles(g.id) for g in groups))
        return self.resolver.map_nested_group_roles(bindings)

    async def set_member_groups(
        self,
        actor_id: str,
        org_name: str,
        user_id: str,
        group_ids: Sequence[str],
    ) -> None:
        """Converge ``user_id`` onto exactly ``group_ids`` among the assignable groups.

        Raises:
            UnauthorizedError: Rank check failed.
            RecordNotFound: A group id is not assignable by the actor.
            InvalidParameterError: More than one role group requested.
        """
        wanted = list(dict.fromkeys(group_ids))
        if len(wanted) > 1:
            raise InvalidParameterError(
                "A user can hold a single role group per organization.", group_ids=wanted
            )

        root_id = await self._root_id(actor_id, org_name)
        actor_is_owner = await self._check_rank(actor_id, user_id, root_id)

        groups = await self._assignable(root_id, actor_is_owner)
        available = {g.id for g in groups}
        if any(gid not in available for gid in wanted):
            raise RecordNotFound("Invalid groups specified.", group_ids=wanted)

        tasks = []
        for group in groups:
            if group.id in wanted and user_id not in group.members:
                tasks.append(self.directory.add_group_members(group.id, [user_id]))
            elif group.id not in wanted and user_id in group.members:
                tasks.append(self.directory.delete_group_members(group.id, [user_id]))
        await asyncio.gather(*tasks)

        get_authz_logger(__name__, org=org_name, subject=actor_id).info(
            "Role groups of %s set to %s", user_id, ", ".join(wanted) or "none"
        )

    async def remove_member(self, actor_id: str, org_name: str, user_id: str) -> None:
        """Remove ``user_id`` from every nested group of ``org_name``."""
        root_id = await self._root_id(actor_id, org_name)
        await self._check_rank(actor_id, user_id, root_id)

        groups = await self.resolver.get_all_nested_groups(root_id)
        await asyncio.gather(
            *(
                self.directory.delete_group_members(g.id, [user_id])
                for g in groups
                if user_id in g.members
            )
        )
        get_authz_logger(__name__, org=org_name, subject=actor_id).info("Removed member %s", user_id)

    async def update_owners(self, root_id: str, owner_ids: Sequence[str]) -> None:
        """Make the Owner group of ``root_id`` hold exactly ``owner_ids``."""
        groups = await self.resolver.get_nested_groups(root_id, [GroupKind.OWNER])
        if not groups:
            raise RecordNotFound(f"Could not resolve owner group for: {root_id}", root_id=root_id)
        owner_group = groups[0]

        to_add = [uid for uid in dict.fromkeys(owner_ids) if uid not in owner_group.members]
        to_remove = [uid for uid in owner_group.members if uid not in owner_ids]
        if to_add:
            await self.directory.add_group_members(owner_group.id, to_add)
        if to_remove:
            await self.directory.delete_group_members(owner_group.id, to_remove)
        logger.debug("Owners of %s: +%d -%d", root_id, len(to_add), len(to_remove))

    async def ensure_can_leave(self, user_id: str, org_names: Sequence[str]) -> None:
        """Raise UnauthorizedError when leaving would orphan an organization or the system.

        Checks every claimed organization the user belongs to, then the
        super admin role.
        """
        memberships = await self.resolver.calculate_memberships(user_id)
        names = {g.name for g in memberships}

        for org in org_names:
            if org not in names:
                continue
            root_id = self.resolver.find_primary_group_id(memberships, org)
            owners = await self.resolver.get_group_owners(root_id, only_ids=True)
            if user_id in owners and len(owners) == 1:
                raise UnauthorizedError(f"You cannot leave {org} because you're the only owner of it.", status=403)

        super_admins = await self.resolver.get_super_admins(only_ids=True)
        if user_id in super_admins and len(super_admins) == 1:
            raise UnauthorizedError("You cannot leave because you're the only super admin.", status=403)


__all__ = ["MembershipAdmin"]
