"""Directory client contract.

Provides:
- ``DirectoryClient`` — Protocol for the external Directory (groups, roles,
  permissions, memberships). Every call is asynchronous, may fail with
  ``DirectoryError`` and has no transactional or compensating support.

Single-resource reads raise ``RecordNotFound`` when the record is absent.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

from ..models import Group, GroupRoleBinding, MembersPage, Permission, Role, User


@runtime_checkable
class DirectoryClient(Protocol):
    """Operations consumed from the Directory."""

    # ── Groups ───────────────────────────────────────────────────

    async def create_group(
        self, name: str, description: str, members: Optional[Sequence[str]] = None
    ) -> Group: ...

    async def get_group(self, group_id: str) -> Group: ...

    async def get_groups(self) -> list[Group]: ...

    async def update_group(
        self,
        group_id: str,
        name: str,
        description: str,
        members: Optional[Sequence[str]] = None,
    ) -> Group: ...

    async def delete_group(self, group_id: str) -> None: ...

    # ── Nesting ──────────────────────────────────────────────────

    async def add_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None: ...

    async def delete_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None: ...

    async def get_nested_groups(self, group_id: str) -> list[Group]: ...

    async def get_nested_group_members(
        self, group_id: str, page: int = 1, per_page: int = 10
    ) -> MembersPage: ...

    async def get_nested_group_roles(self, group_id: str) -> list[GroupRoleBinding]: ...

    # ── Group roles and members ──────────────────────────────────

    async def get_group_roles(self, group_id: str) -> list[Role]: ...

    async def add_group_roles(self, group_id: str, role_ids: Sequence[str]) -> None: ...

    async def add_group_members(self, group_id: str, user_ids: Sequence[str]) -> None: ...

    async def delete_group_members(self, group_id: str, user_ids: Sequence[str]) -> None: ...

    # ── Users ────────────────────────────────────────────────────

    async def calculate_group_memberships(self, user_id: str) -> list[Group]: ...

    async def get_user_groups(self, user_id: str) -> list[Group]: ...

    async def get_user(self, user_id: str) -> User: ...

    # ── Permissions ──────────────────────────────────────────────

    async def create_permission(
        self,
        name: str,
        description: str,
        application_id: str,
        application_type: str = "client",
    ) -> Permission: ...

    async def get_permissions(self) -> list[Permission]: ...

    async def delete_permission(self, permission_id: str) -> None: ...

    # ── Roles ────────────────────────────────────────────────────

    async def create_role(
        self,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str] = (),
        application_type: str = "client",
    ) -> Role: ...

    async def get_role(self, role_id: str) -> Role: ...

    async def get_roles(self) -> list[Role]: ...

    async def update_role(
        self,
        role_id: str,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str],
        application_type: str = "client",
    ) -> Role: ...

    async def delete_role(self, role_id: str) -> None: ...


__all__ = ["DirectoryClient"]
