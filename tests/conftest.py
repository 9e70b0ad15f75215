"""Shared fixtures: an in-memory Directory and an in-memory Redis."""

from __future__ import annotations

import fnmatch
import itertools
from typing import Any, Optional, Sequence

import pytest

from authzcore.exceptions import DirectoryError, RecordNotFound
from authzcore.models import (
    Group,
    GroupRoleBinding,
    MembersPage,
    NestedGroup,
    NestedMember,
    Permission,
    Role,
    User,
)
from authzcore.permissions import (
    GLOBAL_PREFIX,
    GLOBAL_ROLES,
    SCOPES_READ,
    SCOPES_WRITE,
    WORKSPACE_ROLES,
    GlobalRole,
    WorkspaceRole,
    nested_group_description,
    nested_group_name,
    permission_name,
    role_name,
    scope_description,
)

APP_ID = "app-1"


class FakeDirectory:
    """In-memory ``DirectoryClient``.

    Every write bumps ``mutations``. ``fail(method)`` makes every later call
    of that method raise ``DirectoryError``.
    """

    def __init__(self) -> None:
        self.groups: dict[str, Group] = {}
        self.permissions: dict[str, Permission] = {}
        self.roles: dict[str, Role] = {}
        self.users: dict[str, User] = {}
        self.mutations = 0
        self.calls: list[str] = []
        self._failing: set[str] = set()
        self._ids = itertools.count(1)

    # ── Test controls ────────────────────────────────────────────

    def fail(self, *methods: str) -> None:
        self._failing.update(methods)

    def heal(self) -> None:
        self._failing.clear()

    def _call(self, method: str, write: bool = False) -> None:
        self.calls.append(method)
        if method in self._failing:
            raise DirectoryError(f"{method} unavailable")
        if write:
            self.mutations += 1

    def _id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _group(self, group_id: str) -> Group:
        if group_id not in self.groups:
            raise RecordNotFound(f"Could not retrieve document: /groups/{group_id}")
        return self.groups[group_id]

    def by_name(self, name: str) -> Group:
        return next(g for g in self.groups.values() if g.name == name)

    def role_by_name(self, name: str) -> Role:
        return next(r for r in self.roles.values() if r.name == name)

    # ── Seeding (no mutation count) ──────────────────────────────

    def seed_workspace(
        self,
        org: str,
        members: Optional[dict[WorkspaceRole, Sequence[str]]] = None,
        application_id: str = APP_ID,
    ) -> Group:
        """Build a complete organization directly in the store."""
        members = members or {}
        root = Group(id=self._id("grp"), name=org, description=org.title(), nested=[])
        self.groups[root.id] = root

        permission_ids = {}
        for scope in SCOPES_READ + SCOPES_WRITE:
            permission = Permission(
                id=self._id("perm"),
                name=permission_name(org, scope),
                description=scope_description(scope),
                application_id=application_id,
            )
            self.permissions[permission.id] = permission
            permission_ids[scope] = permission.id

        for role, template in WORKSPACE_ROLES.items():
            r = Role(
                id=self._id("role"),
                name=role_name(org, role),
                description=template.description,
                application_id=application_id,
                permissions=[permission_ids[s] for s in template.scopes],
            )
            self.roles[r.id] = r
            nested = Group(
                id=self._id("grp"),
                name=nested_group_name(org, role),
                description=nested_group_description(org, role),
                members=list(members.get(role, [])),
                roles=[r.id],
            )
            self.groups[nested.id] = nested
            root.nested.append(nested.id)
        return root.model_copy(deep=True)

    def seed_super_admins(self, user_ids: Sequence[str], application_id: str = APP_ID) -> Role:
        template = GLOBAL_ROLES[GlobalRole.SUPER_ADMIN]
        role = Role(
            id=self._id("role"),
            name=role_name(GLOBAL_PREFIX, GlobalRole.SUPER_ADMIN),
            description=template.description,
            application_id=application_id,
            users=list(user_ids),
        )
        self.roles[role.id] = role
        return role

    # ── Groups ───────────────────────────────────────────────────

    async def create_group(
        self, name: str, description: str, members: Optional[Sequence[str]] = None
    ) -> Group:
        self._call("create_group", write=True)
        group = Group(id=self._id("grp"), name=name, description=description, members=list(members or []))
        self.groups[group.id] = group
        return group.model_copy(deep=True)

    async def get_group(self, group_id: str) -> Group:
        self._call("get_group")
        return self._group(group_id).model_copy(deep=True)

    async def get_groups(self) -> list[Group]:
        self._call("get_groups")
        return [g.model_copy(deep=True) for g in self.groups.values()]

    async def update_group(
        self,
        group_id: str,
        name: str,
        description: str,
        members: Optional[Sequence[str]] = None,
    ) -> Group:
        self._call("update_group", write=True)
        group = self._group(group_id)
        group.name = name
        group.description = description
        if members is not None:
            group.members = list(members)
        return group.model_copy(deep=True)

    async def delete_group(self, group_id: str) -> None:
        self._call("delete_group", write=True)
        self.groups.pop(group_id, None)
        for group in self.groups.values():
            if group.nested and group_id in group.nested:
                group.nested.remove(group_id)

    # ── Nesting ──────────────────────────────────────────────────

    async def add_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None:
        self._call("add_nested_groups", write=True)
        root = self._group(group_id)
        nested = root.nested if root.nested is not None else []
        nested.extend(gid for gid in nested_group_ids if gid not in nested)
        root.nested = nested

    async def delete_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None:
        self._call("delete_nested_groups", write=True)
        root = self._group(group_id)
        root.nested = [gid for gid in root.nested or [] if gid not in nested_group_ids]

    async def get_nested_groups(self, group_id: str) -> list[Group]:
        self._call("get_nested_groups")
        root = self._group(group_id)
        return [self.groups[gid].model_copy(deep=True) for gid in root.nested or [] if gid in self.groups]

    async def get_nested_group_members(
        self, group_id: str, page: int = 1, per_page: int = 10
    ) -> MembersPage:
        self._call("get_nested_group_members")
        root = self._group(group_id)
        docs = [
            NestedMember(user=User(user_id=uid), group=self.groups[gid])
            for gid in root.nested or []
            if gid in self.groups
            for uid in self.groups[gid].members
        ]
        start = (page - 1) * per_page
        return MembersPage(docs=docs[start:start + per_page], total=len(docs))

    async def get_nested_group_roles(self, group_id: str) -> list[GroupRoleBinding]:
        self._call("get_nested_group_roles")
        group = self._group(group_id)
        nested = NestedGroup(**group.model_dump(include=set(Group.model_fields)))
        return [
            GroupRoleBinding(group=nested.model_copy(deep=True), role=self.roles[rid])
            for rid in group.roles
            if rid in self.roles
        ]

    # ── Group roles and members ──────────────────────────────────

    async def get_group_roles(self, group_id: str) -> list[Role]:
        self._call("get_group_roles")
        return [self.roles[rid].model_copy(deep=True) for rid in self._group(group_id).roles if rid in self.roles]

    async def add_group_roles(self, group_id: str, role_ids: Sequence[str]) -> None:
        self._call("add_group_roles", write=True)
        group = self._group(group_id)
        group.roles.extend(rid for rid in role_ids if rid not in group.roles)

    async def add_group_members(self, group_id: str, user_ids: Sequence[str]) -> None:
        self._call("add_group_members", write=True)
        group = self._group(group_id)
        group.members.extend(uid for uid in user_ids if uid not in group.members)

    async def delete_group_members(self, group_id: str, user_ids: Sequence[str]) -> None:
        self._call("delete_group_members", write=True)
        group = self._group(group_id)
        group.members = [uid for uid in group.members if uid not in user_ids]

    # ── Users ────────────────────────────────────────────────────

    async def calculate_group_memberships(self, user_id: str) -> list[Group]:
        self._call("calculate_group_memberships")
        direct = [g for g in self.groups.values() if user_id in g.members]
        direct_ids = {g.id for g in direct}
        parents = [
            g for g in self.groups.values()
            if g.nested and direct_ids.intersection(g.nested) and g.id not in direct_ids
        ]
        return [g.model_copy(deep=True) for g in direct + parents]

    async def get_user_groups(self, user_id: str) -> list[Group]:
        self._call("get_user_groups")
        return [g.model_copy(deep=True) for g in self.groups.values() if user_id in g.members]

    async def get_user(self, user_id: str) -> User:
        self._call("get_user")
        return self.users.get(user_id) or User(user_id=user_id, email=f"{user_id}@example.org")

    # ── Permissions ──────────────────────────────────────────────

    async def create_permission(
        self,
        name: str,
        description: str,
        application_id: str,
        application_type: str = "client",
    ) -> Permission:
        self._call("create_permission", write=True)
        permission = Permission(
            id=self._id("perm"),
            name=name,
            description=description,
            application_id=application_id,
            application_type=application_type,
        )
        self.permissions[permission.id] = permission
        return permission.model_copy(deep=True)

    async def get_permissions(self) -> list[Permission]:
        self._call("get_permissions")
        return [p.model_copy(deep=True) for p in self.permissions.values()]

    async def delete_permission(self, permission_id: str) -> None:
        self._call("delete_permission", write=True)
        self.permissions.pop(permission_id, None)
        for role in self.roles.values():
            if permission_id in role.permissions:
                role.permissions.remove(permission_id)

    # ── Roles ────────────────────────────────────────────────────

    async def create_role(
        self,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str] = (),
        application_type: str = "client",
    ) -> Role:
        self._call("create_role", write=True)
        role = Role(
            id=self._id("role"),
            name=name,
            description=description,
            application_id=application_id,
            application_type=application_type,
            permissions=list(permissions),
        )
        self.roles[role.id] = role
        return role.model_copy(deep=True)

    async def get_role(self, role_id: str) -> Role:
        self._call("get_role")
        if role_id not in self.roles:
            raise RecordNotFound(f"Could not retrieve document: /roles/{role_id}")
        return self.roles[role_id].model_copy(deep=True)

    async def get_roles(self) -> list[Role]:
        self._call("get_roles")
        return [r.model_copy(deep=True) for r in self.roles.values()]

    async def update_role(
        self,
        role_id: str,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str],
        application_type: str = "client",
    ) -> Role:
        self._call("update_role", write=True)
        if role_id not in self.roles:
            raise RecordNotFound(f"Could not retrieve document: /roles/{role_id}")
        role = self.roles[role_id]
        role.name = name
        role.description = description
        role.application_id = application_id
        role.application_type = application_type
        role.permissions = list(permissions)
        return role.model_copy(deep=True)

    async def delete_role(self, role_id: str) -> None:
        self._call("delete_role", write=True)
        self.roles.pop(role_id, None)
        for group in self.groups.values():
            if role_id in group.roles:
                group.roles.remove(role_id)


class FakeRedis:
    """The subset of ``redis.asyncio.Redis`` used by ``DirectoryCache``."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def get(self, key: str) -> Optional[str]:
        return self.store.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.store[key] = value
        self.ttls[key] = ttl

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match: str = "*") -> Any:
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()
