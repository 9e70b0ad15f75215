"""Membership queries and administration."""

from .admin import MembershipAdmin
from .resolver import MembershipResolver

__all__ = ["MembershipAdmin", "MembershipResolver"]
