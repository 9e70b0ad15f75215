"""Authorization guard: request admission from token claims alone.

Provides:
- ``AuthzRequest`` — per-request state the guard reads and narrows.
- ``AuthzGuard`` — ``enforce()`` and ``enforce_primary_group()`` checks.
- ``AuthzGuards`` — predefined route checks mirroring the scope catalog.

The guard is synchronous and performs no I/O. A check takes an
``AuthzRequest``, raises ``UnauthorizedError`` (401 without identity, 403
otherwise) or returns the request with ``groups`` narrowed.

Two behaviours are kept exactly as observed in production:
- a claimed ``*:verb:resource`` token adds the synthetic group ``*`` to the
  candidates, whatever group was requested;
- primary groups are told apart from nested ones by substring containment:
  a claimed group is primary when it is contained in at least two claimed
  entries (itself included). An organization whose name is contained in
  another organization's name is therefore ambiguous.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, Union

from ..claims import GROUPS, PERMISSIONS, Claims
from ..config import AuthzConfig
from ..exceptions import UnauthorizedError
from ..permissions import Scopes

logger = logging.getLogger(__name__)

WILDCARD_GROUP = "*"

Required = Union[str, Sequence[str], Sequence[Sequence[str]]]


# ── Request ──────────────────────────────────────────────────────


@dataclass
class AuthzRequest:
    """Authorization state of one inbound request.

    Attributes:
        claims: Normalized token claims; None for anonymous requests.
        groups: Group context. Set by ``enforce_primary_group`` and narrowed
            by ``enforce``; None until a check sets it.
        group: Caller-supplied group parameter (``sep``-delimited).
        service_account: Request authenticated with the service api key.
        anonymous_allowed: The route accepts requests without identity.
        metadata: Call metadata the request was built from.
    """

    claims: Optional[Claims] = None
    groups: Optional[list[str]] = None
    group: Optional[str] = None
    service_account: bool = False
    anonymous_allowed: bool = False
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def subject(self) -> Optional[str]:
        return self.claims.subject if self.claims else None


Check = Callable[[AuthzRequest], AuthzRequest]


def normalize_required(required: Required) -> tuple[tuple[str, ...], ...]:
    """Turn ``required`` into a disjunction of conjunctions.

    - ``"read:x"`` → ``(("read:x",),)``
    - ``["read:x", "read:y"]`` → ``(("read:x", "read:y"),)`` (all of them)
    - ``[["read:x"], ["read:*"]]`` → ``(("read:x",), ("read:*",))`` (any clause)
    """
    if isinstance(required, str):
        return ((required,),)
    if all(isinstance(item, str) for item in required):
        return (tuple(required),)
    return tuple(tuple(clause) for clause in required)


# ── Guard ────────────────────────────────────────────────────────


class AuthzGuard:
    """Builds request checks.

    Args:
        public_org: Organization assigned to anonymous requests on routes
            that allow them.
    """

    def __init__(self, public_org: str = "") -> None:
        self.public_org = public_org

    @classmethod
    def from_config(cls, config: AuthzConfig) -> "AuthzGuard":
        return cls(public_org=config.public_org)

    def enforce(self, required: Required) -> Check:
        """Admit the request when some clause of ``required`` is fully granted for some group.

        Surviving groups replace ``request.groups``. Candidates are the
        request's group context, or the claimed groups when no context is set.
        """
        scopes = normalize_required(required)

        def check(request: AuthzRequest) -> AuthzRequest:
            logger.debug("evaluating scopes: %s", scopes)

            if request.service_account:
                logger.debug("service account, skipping authz checks")
                return request

            claims = request.claims
            if claims is None:
                if request.anonymous_allowed:
                    logger.debug("anonymous account, skipping authz checks")
                    return request
                raise UnauthorizedError("Permission denied. Anonymous access not allowed.", status=401)

            if PERMISSIONS in claims.invalid:
                raise UnauthorizedError(
                    "Permission denied. Invalid scope/permission included in token", status=403
                )
            if claims.permissions is None:
                raise UnauthorizedError(
                    "Permission denied. Scope/permission not included in token", status=403
                )
            permissions = set(claims.permissions)

            if request.groups is not None:
                candidates = list(request.groups)
            else:
                candidates = list(claims.groups or ())
            if claims.has_wildcard:
                candidates.append(WILDCARD_GROUP)

            scoped = [
                group
                for group in candidates
                if any(
                    all(Scopes.scoped(group, token) in permissions for token in clause)
                    for clause in scopes
                )
            ]
            if not scoped:
                raise UnauthorizedError(
                    "Permission denied. Insufficient permissions for this resource", status=403
                )

            request.groups = scoped
            return request

        return check

    def enforce_primary_group(
        self,
        service_accounts_allowed: bool = False,
        allow_multiple: bool = False,
        sep: str = ",",
    ) -> Check:
        """Resolve which organization(s) the request targets.

        Args:
            service_accounts_allowed: Service accounts must name their group(s)
                in the group parameter. When False they proceed without context.
            allow_multiple: Accept several ``sep``-delimited groups.
            sep: Group parameter separator.
        """

        def check(request: AuthzRequest) -> AuthzRequest:
            if request.service_account:
                if service_accounts_allowed:
                    if not request.group:
                        raise UnauthorizedError(
                            "Permission denied. Service accounts need to specify a primary group.",
                            status=403,
                        )
                    request.groups = request.group.split(sep)
                return request

            claims = request.claims
            if claims is None:
                if request.anonymous_allowed:
                    logger.debug("anonymous user, setting public group: %s", self.public_org)
                    request.groups = [self.public_org]
                    return request
                raise UnauthorizedError("Permission denied. Anonymous access not allowed.", status=401)

            if GROUPS in claims.invalid:
                raise UnauthorizedError("Permission denied. Invalid groups included in token", status=403)
            if claims.groups is None:
                raise UnauthorizedError("Permission denied. Groups not included in token", status=403)

            primary_groups = self.remove_nested_groups(claims.groups)
            if not primary_groups:
                raise UnauthorizedError("Permission denied. No primary groups found for user", status=403)
            logger.debug("token primary groups: %s", ", ".join(primary_groups))

            if not request.group:
                raise UnauthorizedError(
                    "Permission denied. No primary groups specified for user", status=403
                )
            groups = request.group.split(sep)
            if not all(group in primary_groups for group in groups):
                raise UnauthorizedError(
                    "Permission denied. Invalid primary groups specified for user", status=403
                )
            if not allow_multiple and len(groups) > 1:
                raise UnauthorizedError(
                    "Permission denied. Multiple primary groups specified for user", status=403
                )

            request.groups = groups
            return request

        return check

    @staticmethod
    def remove_nested_groups(groups: Sequence[str]) -> list[str]:
        """Keep the claimed groups contained in at least two claimed entries."""
        return [group for group in groups if sum(1 for g in groups if group in g) >= 2]

    @staticmethod
    def chain(*checks: Check) -> Check:
        """Run checks in order on the same request."""

        def check(request: AuthzRequest) -> AuthzRequest:
            for step in checks:
                request = step(request)
            return request

        return check


# ── Route guards ─────────────────────────────────────────────────

ROUTE_SCOPES: dict[str, Required] = {
    "read_all": [Scopes.READ_ALL],
    "write_all": [Scopes.WRITE_ALL],
    "read_locations": [[Scopes.READ_LOCATIONS], [Scopes.READ_ALL]],
    "write_locations": [[Scopes.WRITE_LOCATIONS], [Scopes.WRITE_ALL]],
    "read_metrics": [[Scopes.READ_METRICS], [Scopes.READ_ALL]],
    "write_metrics": [[Scopes.WRITE_METRICS], [Scopes.WRITE_ALL]],
    "read_collections": [[Scopes.READ_COLLECTIONS], [Scopes.READ_ALL]],
    "write_collections": [[Scopes.WRITE_COLLECTIONS], [Scopes.WRITE_ALL]],
    "read_layers": [[Scopes.READ_LAYERS], [Scopes.READ_ALL]],
    "write_layers": [[Scopes.WRITE_LAYERS], [Scopes.WRITE_ALL]],
    "read_widgets": [[Scopes.READ_WIDGETS], [Scopes.READ_ALL]],
    "write_widgets": [[Scopes.WRITE_WIDGETS], [Scopes.WRITE_ALL]],
    "read_dashboards": [[Scopes.READ_DASHBOARDS], [Scopes.READ_ALL]],
    "write_dashboards": [[Scopes.WRITE_DASHBOARDS], [Scopes.WRITE_ALL]],
    "read_users": [[Scopes.READ_USERS]],
    "write_users": [[Scopes.WRITE_USERS]],
    "read_organizations": [Scopes.READ_ORGANIZATIONS],
    "write_organizations": [Scopes.WRITE_ORGANIZATIONS],
    "read_stats": [[Scopes.READ_STATS], [Scopes.READ_ALL]],
}


class AuthzGuards:
    """Route checks for every catalog resource, e.g. ``guards.read_locations(request)``."""

    def __init__(self, guard: AuthzGuard) -> None:
        self.guard = guard
        for name, required in ROUTE_SCOPES.items():
            setattr(self, name, guard.enforce(required))

    def __getitem__(self, name: str) -> Check:
        if name not in ROUTE_SCOPES:
            raise KeyError(name)
        return getattr(self, name)


__all__ = [
    "AuthzGuard",
    "AuthzGuards",
    "AuthzRequest",
    "Check",
    "ROUTE_SCOPES",
    "Required",
    "WILDCARD_GROUP",
    "normalize_required",
]
