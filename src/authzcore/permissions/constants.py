"""Scope and role constants.

Provides:
- ``Scopes`` — every ``verb:resource`` scope string.
- ``WorkspaceRole`` — per-organization role templates.
- ``GlobalRole`` — roles that live outside any organization.
- ``GroupKind`` — nested-group name suffixes derived from ``WorkspaceRole``.
"""

from __future__ import annotations

from enum import Enum


class Scopes:
    """Canonical scope constants.

    Format: ``{verb}:{resource}``. A claimed permission token is a scope
    prefixed by the group it applies to: ``{group}:{verb}:{resource}``.
    """

    # ── Wildcards ───────────────────────────────────────
    READ_ALL = "read:*"
    WRITE_ALL = "write:*"

    # ── Workspace resources ─────────────────────────────
    READ_LOCATIONS = "read:locations"
    WRITE_LOCATIONS = "write:locations"
    READ_METRICS = "read:metrics"
    WRITE_METRICS = "write:metrics"
    READ_COLLECTIONS = "read:collections"
    WRITE_COLLECTIONS = "write:collections"
    READ_LAYERS = "read:layers"
    WRITE_LAYERS = "write:layers"
    READ_WIDGETS = "read:widgets"
    WRITE_WIDGETS = "write:widgets"
    READ_DASHBOARDS = "read:dashboards"
    WRITE_DASHBOARDS = "write:dashboards"
    READ_USERS = "read:users"
    WRITE_USERS = "write:users"
    READ_STATS = "read:stats"

    # ── Global (administrative) ─────────────────────────
    READ_ORGANIZATIONS = "read:organizations"
    WRITE_ORGANIZATIONS = "write:organizations"

    @staticmethod
    def scoped(group: str, scope: str) -> str:
        """Prefix a scope by a group: ``scoped("ACME", "read:layers")`` → ``"ACME:read:layers"``."""
        return f"{group}:{scope}"


class WorkspaceRole(str, Enum):
    PUBLIC = "Public"
    VIEWER = "Viewer"
    EDITOR = "Editor"
    ADMIN = "Admin"
    OWNER = "Owner"


class GlobalRole(str, Enum):
    SUPER_ADMIN = "SuperAdmin"


class GroupKind(str, Enum):
    """Suffix of a nested group name (``{ORG}-{KIND}``)."""

    PUBLIC = "PUBLIC"
    VIEWER = "VIEWER"
    EDITOR = "EDITOR"
    ADMIN = "ADMIN"
    OWNER = "OWNER"


__all__ = [
    "Scopes",
    "WorkspaceRole",
    "GlobalRole",
    "GroupKind",
]
