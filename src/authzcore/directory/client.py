"""HTTP adapter for the authorization-extension Directory API.

Provides:
- ``HttpDirectoryClient`` — ``DirectoryClient`` over ``httpx.AsyncClient``.

The client authenticates with a client-credentials grant against
``https://{domain}/oauth/token`` and reuses the access token until shortly
before it expires. Reads go through an optional ``DirectoryCache``; writes
invalidate the keys they affect.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Optional, Sequence

import httpx

from ..config import AuthzConfig, DirectoryConfig
from ..exceptions import ConfigurationError, DirectoryError, RecordNotFound
from ..logging import safe_preview
from ..models import Group, GroupRoleBinding, MembersPage, Permission, Role, User
from .cache import CacheKeys, DirectoryCache

logger = logging.getLogger(__name__)

# Refresh the access token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60


class HttpDirectoryClient:
    """Directory client backed by the authorization-extension REST API.

    Usage:
        async with HttpDirectoryClient.from_config(config) as directory:
            groups = await directory.get_groups()
    """

    def __init__(
        self,
        config: DirectoryConfig,
        cache: Optional[DirectoryCache] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not config.extension_url:
            raise ConfigurationError("Directory extension URL is not configured")
        self.config = config
        self.cache = cache
        self._client = client
        self._owns_client = client is None
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: AuthzConfig) -> "HttpDirectoryClient":
        cache = None
        if config.cache_enabled and config.redis_url:
            cache = DirectoryCache.from_url(config.redis_url, ttl=config.cache_ttl)
        return cls(config.directory, cache=cache)

    # ── Lifecycle ────────────────────────────────────────────────

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        if self.cache is not None:
            await self.cache.aclose()

    async def __aenter__(self) -> "HttpDirectoryClient":
        self._get_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # ── Transport ────────────────────────────────────────────────

    async def _access_token(self) -> str:
        async with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token

            if not self.config.domain:
                raise ConfigurationError("Directory domain is not configured")
            try:
                response = await self._get_client().post(
                    f"https://{self.config.domain}/oauth/token",
                    json={
                        "grant_type": "client_credentials",
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "audience": self.config.audience,
                    },
                )
            except httpx.HTTPError as e:
                raise DirectoryError(f"Token request failed: {e}") from e
            if response.status_code >= 400:
                raise DirectoryError(
                    f"Token request failed with status {response.status_code}",
                    status_code=response.status_code,
                )

            data = response.json()
            self._token = data["access_token"]
            expires_in = int(data.get("expires_in", 86400))
            self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
            logger.debug("Directory access token refreshed (expires_in=%ds)", expires_in)
            return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
        not_found: bool = False,
    ) -> Any:
        """Send one request; return the decoded body (None when empty).

        With ``not_found`` a 404 raises RecordNotFound instead of DirectoryError.
        """
        token = await self._access_token()
        url = f"{self.config.extension_url}/{path.lstrip('/')}"
        try:
            response = await self._get_client().request(
                method,
                url,
                json=json,
                params=params,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.warning("Directory %s %s failed: %s", method, path, e)
            raise DirectoryError(f"Directory request failed: {method} {path}") from e

        if response.status_code == 404 and not_found:
            raise RecordNotFound(f"Could not retrieve document: {path}", path=path)
        if response.status_code >= 400:
            logger.warning(
                "Directory %s %s returned %d: %s",
                method,
                path,
                response.status_code,
                safe_preview(response.text),
            )
            raise DirectoryError(
                f"Directory request failed: {method} {path} ({response.status_code})",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        return response.json()

    async def _cached_get(self, key: tuple[Any, ...], path: str, **kwargs: Any) -> Any:
        if self.cache is not None:
            hit = await self.cache.get(*key)
            if hit is not None:
                return hit
        data = await self._request("GET", path, **kwargs)
        if self.cache is not None:
            await self.cache.set(data, *key)
        return data

    async def _invalidate(self, *keys: tuple[Any, ...], prefixes: Sequence[tuple[Any, ...]] = ()) -> None:
        if self.cache is None:
            return
        await asyncio.gather(
            *(self.cache.delete(*key) for key in keys),
            *(self.cache.delete_prefix(*prefix) for prefix in prefixes),
        )

    # ── Groups ───────────────────────────────────────────────────

    async def get_groups(self) -> list[Group]:
        data = await self._cached_get((CacheKeys.GROUPS,), "/groups")
        return [Group.model_validate(g) for g in (data or {}).get("groups", [])]

    async def get_group(self, group_id: str) -> Group:
        data = await self._cached_get((CacheKeys.GROUPS, group_id), f"/groups/{group_id}", not_found=True)
        return Group.model_validate(data)

    async def create_group(
        self, name: str, description: str, members: Optional[Sequence[str]] = None
    ) -> Group:
        body: dict[str, Any] = {"name": name, "description": description}
        if members:
            body["members"] = list(members)
        data = await self._request("POST", "/groups", json=body)
        await self._invalidate((CacheKeys.GROUPS,))
        return Group.model_validate(data)

    async def update_group(
        self,
        group_id: str,
        name: str,
        description: str,
        members: Optional[Sequence[str]] = None,
    ) -> Group:
        body: dict[str, Any] = {"name": name, "description": description}
        if members is not None:
            body["members"] = list(members)
        data = await self._request("PUT", f"/groups/{group_id}", json=body, not_found=True)
        await self._invalidate((CacheKeys.GROUPS, group_id), (CacheKeys.GROUPS,))
        return Group.model_validate(data)

    async def delete_group(self, group_id: str) -> None:
        await self._request("DELETE", f"/groups/{group_id}")
        await self._invalidate(
            (CacheKeys.NESTED_GROUPS_ROLES, group_id),
            (CacheKeys.GROUP_ROLES, group_id),
            (CacheKeys.GROUPS, group_id),
            (CacheKeys.GROUPS,),
            prefixes=[(CacheKeys.NESTED_GROUPS_MEMBERS, group_id)],
        )

    # ── Nesting ──────────────────────────────────────────────────

    async def add_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None:
        await self._request("PATCH", f"/groups/{group_id}/nested", json=list(nested_group_ids))
        await self._invalidate(
            (CacheKeys.GROUPS, group_id),
            (CacheKeys.GROUPS,),
            (CacheKeys.NESTED_GROUPS, group_id),
        )

    async def delete_nested_groups(self, group_id: str, nested_group_ids: Sequence[str]) -> None:
        await self._request("DELETE", f"/groups/{group_id}/nested", json=list(nested_group_ids))
        await self._invalidate(
            (CacheKeys.GROUPS, group_id),
            (CacheKeys.GROUPS,),
            (CacheKeys.NESTED_GROUPS, group_id),
        )

    async def get_nested_groups(self, group_id: str) -> list[Group]:
        data = await self._cached_get((CacheKeys.NESTED_GROUPS, group_id), f"/groups/{group_id}/nested")
        return [Group.model_validate(g) for g in data or []]

    async def get_nested_group_members(
        self, group_id: str, page: int = 1, per_page: int = 10
    ) -> MembersPage:
        # The extension pages from zero
        data = await self._cached_get(
            (CacheKeys.NESTED_GROUPS_MEMBERS, group_id, page, per_page),
            f"/groups/{group_id}/members/nested",
            params={"page": max(page - 1, 0), "per_page": per_page},
        )
        data = data or {}
        return MembersPage(docs=data.get("nested", []), total=data.get("total", 0))

    async def get_nested_group_roles(self, group_id: str) -> list[GroupRoleBinding]:
        data = await self._cached_get(
            (CacheKeys.NESTED_GROUPS_ROLES, group_id), f"/groups/{group_id}/roles/nested"
        )
        return [GroupRoleBinding.model_validate(b) for b in data or []]

    # ── Group roles and members ──────────────────────────────────

    async def get_group_roles(self, group_id: str) -> list[Role]:
        data = await self._cached_get((CacheKeys.GROUP_ROLES, group_id), f"/groups/{group_id}/roles")
        return [Role.model_validate(r) for r in data or []]

    async def add_group_roles(self, group_id: str, role_ids: Sequence[str]) -> None:
        await self._request("PATCH", f"/groups/{group_id}/roles", json=list(role_ids))
        await self._invalidate(
            (CacheKeys.GROUPS,),
            (CacheKeys.GROUPS, group_id),
            (CacheKeys.GROUP_ROLES, group_id),
            (CacheKeys.NESTED_GROUPS_ROLES, group_id),
        )

    async def add_group_members(self, group_id: str, user_ids: Sequence[str]) -> None:
        await self._request("PATCH", f"/groups/{group_id}/members", json=list(user_ids))
        await self._invalidate_membership(group_id, user_ids)

    async def delete_group_members(self, group_id: str, user_ids: Sequence[str]) -> None:
        await self._request("DELETE", f"/groups/{group_id}/members", json=list(user_ids))
        await self._invalidate_membership(group_id, user_ids)

    async def _invalidate_membership(self, group_id: str, user_ids: Sequence[str]) -> None:
        await self._invalidate(
            (CacheKeys.NESTED_GROUPS_ROLES, group_id),
            *[(CacheKeys.GROUP_MEMBERSHIP, user_id) for user_id in user_ids],
            *[(CacheKeys.USER_GROUPS, user_id) for user_id in user_ids],
            prefixes=[(CacheKeys.NESTED_GROUPS,), (CacheKeys.NESTED_GROUPS_MEMBERS,)],
        )

    # ── Users ────────────────────────────────────────────────────

    async def calculate_group_memberships(self, user_id: str) -> list[Group]:
        data = await self._cached_get(
            (CacheKeys.GROUP_MEMBERSHIP, user_id), f"/users/{user_id}/groups/calculate"
        )
        return [Group.model_validate(g) for g in data or []]

    async def get_user_groups(self, user_id: str) -> list[Group]:
        data = await self._cached_get((CacheKeys.USER_GROUPS, user_id), f"/users/{user_id}/groups")
        return [Group.model_validate(g) for g in data or []]

    async def get_user(self, user_id: str) -> User:
        data = await self._request("GET", f"/users/{user_id}", not_found=True)
        return User.model_validate(data)

    # ── Permissions ──────────────────────────────────────────────

    async def get_permissions(self) -> list[Permission]:
        data = await self._cached_get((CacheKeys.PERMISSIONS,), "/permissions")
        return [Permission.model_validate(p) for p in (data or {}).get("permissions", [])]

    async def create_permission(
        self,
        name: str,
        description: str,
        application_id: str,
        application_type: str = "client",
    ) -> Permission:
        data = await self._request(
            "POST",
            "/permissions",
            json={
                "name": name,
                "description": description,
                "applicationId": application_id,
                "applicationType": application_type,
            },
        )
        await self._invalidate((CacheKeys.PERMISSIONS,))
        return Permission.model_validate(data)

    async def delete_permission(self, permission_id: str) -> None:
        await self._request("DELETE", f"/permissions/{permission_id}")
        await self._invalidate((CacheKeys.PERMISSIONS, permission_id), (CacheKeys.PERMISSIONS,))

    # ── Roles ────────────────────────────────────────────────────

    async def get_roles(self) -> list[Role]:
        data = await self._cached_get((CacheKeys.ROLES,), "/roles")
        return [Role.model_validate(r) for r in (data or {}).get("roles", [])]

    async def get_role(self, role_id: str) -> Role:
        data = await self._cached_get((CacheKeys.ROLES, role_id), f"/roles/{role_id}", not_found=True)
        return Role.model_validate(data)

    async def create_role(
        self,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str] = (),
        application_type: str = "client",
    ) -> Role:
        data = await self._request(
            "POST",
            "/roles",
            json={
                "name": name,
                "description": description,
                "applicationId": application_id,
                "applicationType": application_type,
                "permissions": list(permissions),
            },
        )
        await self._invalidate((CacheKeys.ROLES,))
        return Role.model_validate(data)

    async def update_role(
        self,
        role_id: str,
        name: str,
        description: str,
        application_id: str,
        permissions: Sequence[str],
        application_type: str = "client",
    ) -> Role:
        data = await self._request(
            "PUT",
            f"/roles/{role_id}",
            json={
                "name": name,
                "description": description,
                "applicationId": application_id,
                "applicationType": application_type,
                "permissions": list(permissions),
            },
            not_found=True,
        )
        await self._invalidate((CacheKeys.ROLES, role_id), (CacheKeys.ROLES,))
        return Role.model_validate(data)

    async def delete_role(self, role_id: str) -> None:
        await self._request("DELETE", f"/roles/{role_id}")
        await self._invalidate((CacheKeys.ROLES, role_id), (CacheKeys.ROLES,))


__all__ = ["HttpDirectoryClient", "TOKEN_EXPIRY_MARGIN"]
