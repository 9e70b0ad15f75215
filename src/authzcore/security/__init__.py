"""Request authorization for authzcore services.

Usage (in any service)::

    from authzcore.security import AuthzInterceptor, RouteRule, ROUTE_SCOPES

    interceptor = AuthzInterceptor.from_config(
        config,
        route_map={
            "ListLayers": RouteRule(required=ROUTE_SCOPES["read_layers"], anonymous=True),
            "UpdateLayer": RouteRule(required=ROUTE_SCOPES["write_layers"]),
        },
        identity_resolver=verify_jwt,
    )
    server = grpc.aio.server(interceptors=[interceptor])

    # Inside a handler:
    request = current_authz_request()
    request.groups  # organizations the caller may act on
"""

from __future__ import annotations

from .guard import (
    ROUTE_SCOPES,
    WILDCARD_GROUP,
    AuthzGuard,
    AuthzGuards,
    AuthzRequest,
    Check,
    Required,
    normalize_required,
)
from .interceptors import (
    AuthzInterceptor,
    IdentityResolver,
    RouteRule,
    _extract_rpc_name,
    _should_skip,
    current_authz_request,
)

__all__ = [
    # Guard
    "AuthzGuard",
    "AuthzGuards",
    "AuthzRequest",
    "Check",
    "ROUTE_SCOPES",
    "Required",
    "WILDCARD_GROUP",
    "normalize_required",
    # Interceptors
    "AuthzInterceptor",
    "IdentityResolver",
    "RouteRule",
    "current_authz_request",
    "_extract_rpc_name",
    "_should_skip",
]
