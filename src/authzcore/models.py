"""Directory data models.

Pydantic models for the groups, roles and permissions stored in the
Directory. Wire names (``_id``, ``applicationId``) are accepted as aliases
next to the Python field names; ``to_wire()`` renders the Directory shape.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DirectoryModel(BaseModel):
    """Base for Directory records: alias-or-name population, extra keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class Group(DirectoryModel):
    """A Directory group.

    Root groups (organizations) carry a ``nested`` edge list once a child has
    been attached; nested groups carry ``members``.
    """

    id: str = Field(default="", alias="_id")
    name: str
    description: str = ""
    members: list[str] = Field(default_factory=list)
    nested: Optional[list[str]] = None
    roles: list[str] = Field(default_factory=list)


class Organization(Group):
    """Root group of a tenant."""

    nested: Optional[list[str]] = Field(default_factory=list)


class NestedGroup(Group):
    """Child group of an organization, one per role template.

    ``organization_id`` and ``kind`` are filled in from the parent edge when
    the group is listed through its organization.
    """

    organization_id: str = ""
    kind: str = ""


class Permission(DirectoryModel):
    id: str = Field(default="", alias="_id")
    name: str
    description: str = ""
    application_id: str = Field(default="", alias="applicationId")
    application_type: str = Field(default="client", alias="applicationType")


class Role(DirectoryModel):
    id: str = Field(default="", alias="_id")
    name: str
    description: str = ""
    application_id: str = Field(default="", alias="applicationId")
    application_type: str = Field(default="client", alias="applicationType")
    permissions: list[str] = Field(default_factory=list)
    users: list[str] = Field(default_factory=list)


class User(DirectoryModel):
    """Identity record as returned by the Directory."""

    user_id: str
    email: str = ""
    name: str = ""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class NestedMember(DirectoryModel):
    """A user reached through one of the nested groups of an organization."""

    user: User
    group: Group


class MembersPage(BaseModel):
    docs: list[NestedMember] = Field(default_factory=list)
    total: int = 0


class RoleRef(BaseModel):
    """Role summary attached to a group in merged bindings."""

    id: str
    name: str
    description: str = ""


class GroupRoleBinding(BaseModel):
    """One role bound to one group, as reported by the Directory."""

    group: NestedGroup
    role: Role


class GroupRoles(BaseModel):
    """A nested group together with every role bound to it."""

    id: str
    name: str
    description: str = ""
    members: list[str] = Field(default_factory=list)
    organization_id: str = ""
    kind: str = ""
    roles: list[RoleRef] = Field(default_factory=list)


__all__ = [
    "DirectoryModel",
    "Group",
    "Organization",
    "NestedGroup",
    "Permission",
    "Role",
    "User",
    "NestedMember",
    "MembersPage",
    "RoleRef",
    "GroupRoleBinding",
    "GroupRoles",
]
