"""gRPC server interceptor running the authorization guard per RPC.

Provides:
- ``RouteRule`` — what an RPC requires: scopes, primary-group policy, anonymity.
- ``AuthzInterceptor`` — builds an ``AuthzRequest`` from call metadata and
  runs the rule's checks before the handler.
- ``current_authz_request`` — the admitted request, inside a handler.
- ``_extract_rpc_name``, ``_should_skip`` — helper utilities.

Metadata read by the interceptor:

    authorization: Bearer <token>   — resolved to claims by ``identity_resolver``
    apikey: <key>                   — service account when it equals the service key
    x-authz-group: ORG[,ORG2]       — group parameter for primary-group resolution

Token signature and expiry verification is the job of ``identity_resolver``;
the interceptor only sees its decoded payload. Unmapped RPCs are **denied**.
``current_authz_request()`` is bound for unary-unary handlers only.
"""

from __future__ import annotations

import contextvars
import hmac
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Union

import grpc

from ..claims import Claims
from ..config import AuthzConfig, ClaimsConfig
from ..exceptions import UnauthorizedError, get_grpc_status_code
from .guard import AuthzGuard, AuthzRequest, Check, Required

logger = logging.getLogger(__name__)

GROUP_METADATA_KEY = "x-authz-group"
APIKEY_METADATA_KEY = "apikey"
_CREDENTIAL_KEYS = ("authorization", APIKEY_METADATA_KEY)

# Method prefixes that bypass authorization
_SKIP_PREFIXES = (
    "grpc.health.v1",
    "grpc.reflection.v1",
)

IdentityResolver = Callable[[str], Union[Mapping[str, Any], Claims, None]]

_current_request: contextvars.ContextVar[Optional[AuthzRequest]] = contextvars.ContextVar(
    "authz_request", default=None
)


def current_authz_request() -> Optional[AuthzRequest]:
    """Return the request admitted for the RPC being handled, if any."""
    return _current_request.get()


# ── Helpers ──────────────────────────────────────────────────────


def _extract_rpc_name(full_method: str) -> str:
    """Extract RPC name from fully-qualified method string.

    ``/workspaces.WorkspaceService/CreateWorkspace`` → ``CreateWorkspace``
    """
    return full_method.rsplit("/", 1)[-1] if "/" in full_method else full_method


def _should_skip(method: str) -> bool:
    return any(prefix in method for prefix in _SKIP_PREFIXES)


# ── Route rules ──────────────────────────────────────────────────


@dataclass(frozen=True)
class RouteRule:
    """Authorization policy of one RPC.

    Attributes:
        required: Scopes passed to ``AuthzGuard.enforce``; None skips the scope check.
        primary_group: Resolve the target organization before scope checks.
        service_accounts_allowed: Service accounts must name their group(s).
        allow_multiple: Accept several organizations in the group parameter.
        anonymous: Admit requests without identity (public organization).
    """

    required: Optional[Required] = None
    primary_group: bool = True
    service_accounts_allowed: bool = False
    allow_multiple: bool = False
    anonymous: bool = False

    def build(self, guard: AuthzGuard) -> Check:
        checks: list[Check] = []
        if self.primary_group:
            checks.append(
                guard.enforce_primary_group(
                    service_accounts_allowed=self.service_accounts_allowed,
                    allow_multiple=self.allow_multiple,
                )
            )
        if self.required is not None:
            checks.append(guard.enforce(self.required))
        return guard.chain(*checks)


# ── Interceptor ──────────────────────────────────────────────────


class AuthzInterceptor(grpc.aio.ServerInterceptor):
    """Guards every RPC of a service with its ``RouteRule``.

    Args:
        route_map: Mapping of RPC name → ``RouteRule``.
        identity_resolver: Verifies a bearer token and returns its payload
            (or ready ``Claims``); returns None or raises for invalid tokens.
        guard: Guard building the checks.
        service_api_key: Shared service-account key; empty disables service accounts.
        claims_config: Namespaced claim keys of the token payload.
        service_name: Human-readable service name for log messages.

    Usage::

        interceptor = AuthzInterceptor.from_config(
            config,
            route_map={"GetLayer": RouteRule(required=ROUTE_SCOPES["read_layers"], anonymous=True)},
            identity_resolver=verify_jwt,
        )
        server = grpc.aio.server(interceptors=[interceptor])
    """

    def __init__(
        self,
        route_map: Mapping[str, RouteRule],
        identity_resolver: IdentityResolver,
        *,
        guard: Optional[AuthzGuard] = None,
        service_api_key: str = "",
        claims_config: Optional[ClaimsConfig] = None,
        service_name: str = "Service",
    ) -> None:
        self._guard = guard or AuthzGuard()
        self._rules = dict(route_map)
        self._checks = {name: rule.build(self._guard) for name, rule in self._rules.items()}
        self._resolve_identity = identity_resolver
        self._service_api_key = service_api_key.strip()
        self._claims_config = claims_config or ClaimsConfig()
        self._service_name = service_name

    @classmethod
    def from_config(
        cls,
        config: AuthzConfig,
        route_map: Mapping[str, RouteRule],
        identity_resolver: IdentityResolver,
        service_name: str = "Service",
    ) -> "AuthzInterceptor":
        return cls(
            route_map,
            identity_resolver,
            guard=AuthzGuard.from_config(config),
            service_api_key=config.service_api_key,
            claims_config=config.claims,
            service_name=service_name,
        )

    def _is_service_account(self, apikey: str) -> bool:
        if not self._service_api_key or not apikey:
            return False
        return hmac.compare_digest(apikey.strip().encode(), self._service_api_key.encode())

    def _claims(self, token: str) -> Claims:
        try:
            resolved = self._resolve_identity(token)
        except Exception as e:
            logger.debug("token rejected by identity resolver: %s", e)
            raise UnauthorizedError("Permission denied. Invalid token.", status=401) from e
        if resolved is None:
            raise UnauthorizedError("Permission denied. Invalid token.", status=401)
        if isinstance(resolved, Claims):
            return resolved
        return Claims.from_payload(resolved, self._claims_config)

    def build_request(self, metadata: Mapping[str, str], rule: RouteRule) -> AuthzRequest:
        """Project call metadata onto an ``AuthzRequest``."""
        request = AuthzRequest(
            group=metadata.get(GROUP_METADATA_KEY) or None,
            service_account=self._is_service_account(metadata.get(APIKEY_METADATA_KEY, "")),
            anonymous_allowed=rule.anonymous,
            metadata={k: v for k, v in metadata.items() if k not in _CREDENTIAL_KEYS},
        )
        auth = metadata.get("authorization", "")
        if auth.startswith("Bearer ") and auth[7:].strip():
            request.claims = self._claims(auth[7:].strip())
        return request

    async def intercept_service(
        self,
        continuation: Any,
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        """Intercept incoming gRPC calls for authorization."""
        method = handler_call_details.method or ""
        if _should_skip(method):
            return await continuation(handler_call_details)

        rpc_name = _extract_rpc_name(method)
        metadata = dict(handler_call_details.invocation_metadata or [])

        rule = self._rules.get(rpc_name)
        try:
            if rule is None:
                raise UnauthorizedError("Permission denied. RPC not mapped to a route rule.", status=403)
            request = self._checks[rpc_name](self.build_request(metadata, rule))
        except UnauthorizedError as e:
            logger.warning("%s DENIED '%s' — %s", self._service_name, rpc_name, e.message)
            return self._deny(e)

        logger.debug(
            "%s ALLOWED '%s' for %s (groups=%s)",
            self._service_name,
            rpc_name,
            "service account" if request.service_account else request.subject or "anonymous",
            request.groups,
        )

        handler = await continuation(handler_call_details)
        if handler is None or handler.unary_unary is None:
            return handler
        return self._bind(handler, request)

    @staticmethod
    def _deny(error: UnauthorizedError) -> grpc.RpcMethodHandler:
        deny_status = get_grpc_status_code(error)
        deny_msg = error.message

        async def _denied(request, context):
            await context.abort(deny_status, deny_msg)

        return grpc.unary_unary_rpc_method_handler(_denied)

    @staticmethod
    def _bind(handler: grpc.RpcMethodHandler, authz_request: AuthzRequest) -> grpc.RpcMethodHandler:
        behavior = handler.unary_unary

        async def _guarded(request, context):
            token = _current_request.set(authz_request)
            try:
                result = behavior(request, context)
                if inspect.isawaitable(result):
                    result = await result
                return result
            finally:
                _current_request.reset(token)

        return grpc.unary_unary_rpc_method_handler(
            _guarded,
            request_deserializer=handler.request_deserializer,
            response_serializer=handler.response_serializer,
        )


__all__ = [
    "AuthzInterceptor",
    "IdentityResolver",
    "RouteRule",
    "current_authz_request",
    "_extract_rpc_name",
    "_should_skip",
]
