"""Token claims as seen by the authorization guard.

The token carries groups and permissions under namespaced keys, each either a
space-delimited string or a list of strings. ``Claims.from_payload()``
normalizes both shapes into tuples once, when the payload enters the process;
the guard only ever sees tuples.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from .config import ClaimsConfig

logger = logging.getLogger(__name__)

GROUPS = "groups"
PERMISSIONS = "permissions"


def normalize_claim(value: Any) -> tuple[Optional[tuple[str, ...]], bool]:
    """Normalize one claim value.

    Returns ``(values, valid)``:
    - missing or empty string → ``(None, True)``
    - space-delimited string → ``(tuple of tokens, True)``
    - list/tuple of strings → ``(tuple, True)``
    - anything else → ``(None, False)``
    """
    if value is None or value == "":
        return None, True
    if isinstance(value, str):
        return tuple(value.split()), True
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) for item in value):
            return tuple(value), True
        return None, False
    return None, False


@dataclass(frozen=True)
class Claims:
    """Identity projection of an authenticated request.

    Attributes:
        subject: Subject (user) id.
        groups: Claimed group names, primary and nested flattened. None when absent.
        permissions: Claimed ``{group}:{verb}:{resource}`` tokens. None when absent.
        invalid: Names of claims present in the token with an unusable shape.
    """

    subject: Optional[str] = None
    groups: Optional[tuple[str, ...]] = None
    permissions: Optional[tuple[str, ...]] = None
    invalid: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        config: Optional[ClaimsConfig] = None,
    ) -> "Claims":
        """Build Claims from a decoded token payload."""
        config = config or ClaimsConfig()

        groups, groups_ok = normalize_claim(payload.get(config.group_key))
        permissions, permissions_ok = normalize_claim(payload.get(config.permission_key))

        invalid = set()
        if not groups_ok:
            invalid.add(GROUPS)
        if not permissions_ok:
            invalid.add(PERMISSIONS)
        if invalid:
            logger.warning("Malformed claims in token: %s", ", ".join(sorted(invalid)))

        subject = payload.get(config.subject_key)
        return cls(
            subject=str(subject) if subject is not None else None,
            groups=groups,
            permissions=permissions,
            invalid=frozenset(invalid),
        )

    @property
    def has_wildcard(self) -> bool:
        """True when any permission token is global (``*:verb:resource``)."""
        return any(p.startswith("*:") for p in self.permissions or ())


__all__ = [
    "Claims",
    "normalize_claim",
]
