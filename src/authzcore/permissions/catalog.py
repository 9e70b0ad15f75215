"""Scope catalog: role templates and naming rules for workspace structure.

Provides:
- ``RoleTemplate`` — scopes carried by a role.
- ``WORKSPACE_ROLES`` / ``GLOBAL_ROLES`` — the templates, in provisioning order.
- ``SCOPES_READ`` / ``SCOPES_WRITE`` — permissions created for every workspace.
- Naming helpers for nested groups, permissions and roles.

The catalog is read-only. Changing it is applied to existing organizations
by the reconciler; memberships are never touched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Collection, Optional

from .constants import GlobalRole, GroupKind, Scopes, WorkspaceRole

GLOBAL_PREFIX = "*"

WORKSPACE_NAME_PATTERN = re.compile(r"^[a-z0-9](-?[a-z0-9])*$")


@dataclass(frozen=True)
class RoleTemplate:
    """Scopes and description of one role."""

    name: str
    read_scopes: tuple[str, ...]
    write_scopes: tuple[str, ...]
    description: str

    @property
    def scopes(self) -> tuple[str, ...]:
        """Read scopes followed by write scopes; the order of role permission ids."""
        return self.read_scopes + self.write_scopes


# ── Scope sets ───────────────────────────────────────────────────

SCOPES_READ: tuple[str, ...] = (
    Scopes.READ_ALL,
    Scopes.READ_LOCATIONS,
    Scopes.READ_METRICS,
    Scopes.READ_COLLECTIONS,
    Scopes.READ_LAYERS,
    Scopes.READ_WIDGETS,
    Scopes.READ_DASHBOARDS,
    Scopes.READ_USERS,
    Scopes.READ_STATS,
)
SCOPES_WRITE: tuple[str, ...] = (
    Scopes.WRITE_ALL,
    Scopes.WRITE_LOCATIONS,
    Scopes.WRITE_METRICS,
    Scopes.WRITE_COLLECTIONS,
    Scopes.WRITE_LAYERS,
    Scopes.WRITE_WIDGETS,
    Scopes.WRITE_DASHBOARDS,
    Scopes.WRITE_USERS,
)
SCOPES_READ_GLOBAL: tuple[str, ...] = (Scopes.READ_ORGANIZATIONS,)
SCOPES_WRITE_GLOBAL: tuple[str, ...] = (Scopes.WRITE_ORGANIZATIONS,)

SCOPES_READ_DESCRIPTION = "Provides the ability to read data from a specific resource inside an organization."
SCOPES_WRITE_DESCRIPTION = "Provides the ability to modify data on a specific resource inside an organization."
SCOPES_READ_GLOBAL_DESCRIPTION = "Provides read-only access for administrative tasks."
SCOPES_WRITE_GLOBAL_DESCRIPTION = "Provides the ability to perform administrative tasks."


# ── Role templates ───────────────────────────────────────────────

WORKSPACE_ROLES: dict[WorkspaceRole, RoleTemplate] = {
    WorkspaceRole.PUBLIC: RoleTemplate(
        name=WorkspaceRole.PUBLIC.value,
        read_scopes=(
            Scopes.READ_LOCATIONS,
            Scopes.READ_LAYERS,
            Scopes.READ_WIDGETS,
            Scopes.READ_DASHBOARDS,
            Scopes.READ_COLLECTIONS,
        ),
        write_scopes=(),
        description="Can view public content managed by the organization.",
    ),
    WorkspaceRole.VIEWER: RoleTemplate(
        name=WorkspaceRole.VIEWER.value,
        read_scopes=(Scopes.READ_ALL,),
        write_scopes=(Scopes.WRITE_COLLECTIONS,),
        description="Can view content managed by the organization.",
    ),
    WorkspaceRole.EDITOR: RoleTemplate(
        name=WorkspaceRole.EDITOR.value,
        read_scopes=(Scopes.READ_ALL,),
        write_scopes=(Scopes.WRITE_ALL,),
        description="Full content permission across the entire organization.",
    ),
    WorkspaceRole.ADMIN: RoleTemplate(
        name=WorkspaceRole.ADMIN.value,
        read_scopes=(Scopes.READ_ALL, Scopes.READ_USERS),
        write_scopes=(Scopes.WRITE_ALL, Scopes.WRITE_USERS),
        description="Power over the assets managed by an organization.",
    ),
    WorkspaceRole.OWNER: RoleTemplate(
        name=WorkspaceRole.OWNER.value,
        read_scopes=(Scopes.READ_ALL, Scopes.READ_USERS),
        write_scopes=(Scopes.WRITE_ALL, Scopes.WRITE_USERS),
        description="Complete power over the assets managed by an organization.",
    ),
}

GLOBAL_ROLES: dict[GlobalRole, RoleTemplate] = {
    GlobalRole.SUPER_ADMIN: RoleTemplate(
        name=GlobalRole.SUPER_ADMIN.value,
        read_scopes=SCOPES_READ_GLOBAL,
        write_scopes=SCOPES_WRITE_GLOBAL,
        description="Manage system assets outside of an organization scope.",
    ),
}


# ── Naming ───────────────────────────────────────────────────────


def nested_group_name(org: str, role: WorkspaceRole | str) -> str:
    """``nested_group_name("ACME", WorkspaceRole.ADMIN)`` → ``"ACME-ADMIN"``."""
    return f"{org}-{_role_value(role).upper()}"


def nested_group_description(org: str, role: WorkspaceRole | str) -> str:
    return f"{org} {_role_value(role)}"


def permission_name(org: str, scope: str) -> str:
    """``permission_name("ACME", "read:layers")`` → ``"ACME:read:layers"``."""
    return Scopes.scoped(org, scope)


def role_name(org: str, role: WorkspaceRole | GlobalRole | str) -> str:
    """``role_name("ACME", WorkspaceRole.OWNER)`` → ``"ACME:Owner"``."""
    return f"{org}:{_role_value(role)}"


def scope_description(scope: str, is_global: bool = False) -> str:
    is_read = scope.startswith("read:")
    if is_global:
        return SCOPES_READ_GLOBAL_DESCRIPTION if is_read else SCOPES_WRITE_GLOBAL_DESCRIPTION
    return SCOPES_READ_DESCRIPTION if is_read else SCOPES_WRITE_DESCRIPTION


def name_prefix(name: str) -> str:
    """Organization part of a role or permission name (text before the first ``:``)."""
    return name.split(":")[0]


def group_kind(name: str, org: Optional[str] = None) -> Optional[GroupKind]:
    """Parse the kind of a nested group from its name.

    With ``org`` the name must be exactly ``{org}-{KIND}``; without it the
    text after the last ``-`` is used. Returns None for anything else.
    """
    if org is not None:
        prefix = f"{org}-"
        if not name.startswith(prefix):
            return None
        suffix = name[len(prefix):]
    else:
        suffix = name.rsplit("-", 1)[-1]
    try:
        return GroupKind(suffix)
    except ValueError:
        return None


def nested_group_parent(name: str, org_names: Collection[str]) -> Optional[str]:
    """Organization among ``org_names`` that ``name`` is the ``{ORG}-{KIND}`` group of, or None.

    ``nested_group_parent("ACME-OWNER", {"ACME", "BETA"})`` → ``"ACME"``.
    """
    kind = group_kind(name)
    if kind is None:
        return None
    parent = name[: -len(kind.value) - 1]
    return parent if parent and parent in org_names else None


def enforce_workspace_name(slug: str) -> bool:
    """True when ``slug`` is URL friendly: lowercase alphanumerics separated by single dashes."""
    return bool(WORKSPACE_NAME_PATTERN.match(slug))


def _role_value(role: WorkspaceRole | GlobalRole | str) -> str:
    return role.value if isinstance(role, Enum) else role


__all__ = [
    "GLOBAL_PREFIX",
    "RoleTemplate",
    "SCOPES_READ",
    "SCOPES_WRITE",
    "SCOPES_READ_GLOBAL",
    "SCOPES_WRITE_GLOBAL",
    "SCOPES_READ_DESCRIPTION",
    "SCOPES_WRITE_DESCRIPTION",
    "SCOPES_READ_GLOBAL_DESCRIPTION",
    "SCOPES_WRITE_GLOBAL_DESCRIPTION",
    "WORKSPACE_ROLES",
    "GLOBAL_ROLES",
    "nested_group_name",
    "nested_group_description",
    "permission_name",
    "role_name",
    "scope_description",
    "name_prefix",
    "group_kind",
    "nested_group_parent",
    "enforce_workspace_name",
]
