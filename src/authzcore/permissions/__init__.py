"""Scope catalog for workspaces.

Defines:
- Scopes: every ``verb:resource`` scope string
- WorkspaceRole / GlobalRole / GroupKind: role templates and nested-group kinds
- WORKSPACE_ROLES / GLOBAL_ROLES: scopes carried by each role
- Naming helpers: nested_group_name(), permission_name(), role_name()
- enforce_workspace_name(): slug validation for new organizations
"""

from .catalog import (
    GLOBAL_PREFIX,
    GLOBAL_ROLES,
    SCOPES_READ,
    SCOPES_READ_GLOBAL,
    SCOPES_WRITE,
    SCOPES_WRITE_GLOBAL,
    WORKSPACE_ROLES,
    RoleTemplate,
    enforce_workspace_name,
    group_kind,
    name_prefix,
    nested_group_description,
    nested_group_name,
    nested_group_parent,
    permission_name,
    role_name,
    scope_description,
)
from .constants import GlobalRole, GroupKind, Scopes, WorkspaceRole

__all__ = [
    "GLOBAL_PREFIX",
    "GLOBAL_ROLES",
    "GlobalRole",
    "GroupKind",
    "RoleTemplate",
    "SCOPES_READ",
    "SCOPES_READ_GLOBAL",
    "SCOPES_WRITE",
    "SCOPES_WRITE_GLOBAL",
    "Scopes",
    "WORKSPACE_ROLES",
    "WorkspaceRole",
    "enforce_workspace_name",
    "group_kind",
    "name_prefix",
    "nested_group_description",
    "nested_group_name",
    "nested_group_parent",
    "permission_name",
    "role_name",
    "scope_description",
]
