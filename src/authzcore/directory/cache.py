"""Redis read-through cache for Directory responses.

Keys are built from parts joined with ``-`` under a namespace prefix, e.g.
``authz:NESTED_GROUPS-<group id>``. Values are JSON. A TTL of 0 disables the
cache entirely.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class CacheKeys(str, Enum):
    GROUPS = "GROUPS"
    NESTED_GROUPS = "NESTED_GROUPS"
    NESTED_GROUPS_MEMBERS = "NESTED_GROUPS_MEMBERS"
    NESTED_GROUPS_ROLES = "NESTED_GROUPS_ROLES"
    GROUP_ROLES = "GROUP_ROLES"
    USER_GROUPS = "USER_GROUPS"
    GROUP_MEMBERSHIP = "GROUP_MEMBERSHIP"
    ROLES = "ROLES"
    PERMISSIONS = "PERMISSIONS"


def make_cache_key(*parts: Any) -> str:
    return "-".join(p.value if isinstance(p, Enum) else str(p) for p in parts)


class DirectoryCache:
    """JSON cache over ``redis.asyncio``.

    Usage:
        cache = DirectoryCache.from_url("redis://localhost:6379/0", ttl=600)
        hit = await cache.get(CacheKeys.GROUPS)
    """

    def __init__(
        self,
        client: Any,
        ttl: int = 600,
        namespace: str = "authz",
    ) -> None:
        self._client = client
        self.ttl = ttl
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, ttl: int = 600, namespace: str = "authz") -> "DirectoryCache":
        return cls(aioredis.from_url(url, decode_responses=True), ttl=ttl, namespace=namespace)

    @property
    def enabled(self) -> bool:
        return self.ttl > 0 and self._client is not None

    def _key(self, *parts: Any) -> str:
        return f"{self.namespace}:{make_cache_key(*parts)}"

    async def get(self, *parts: Any) -> Optional[Any]:
        if not self.enabled:
            return None
        key = self._key(*parts)
        raw = await self._client.get(key)
        if raw is None:
            logger.debug("cache-miss: %s", key)
            return None
        logger.debug("cache-hit: %s", key)
        return json.loads(raw)

    async def set(self, value: Any, *parts: Any) -> None:
        if not self.enabled:
            return
        key = self._key(*parts)
        await self._client.setex(key, self.ttl, json.dumps(value, default=str))
        logger.debug("cache-save: %s", key)

    async def delete(self, *parts: Any) -> None:
        if not self.enabled:
            return
        key = self._key(*parts)
        await self._client.delete(key)
        logger.debug("cache-remove: %s", key)

    async def delete_prefix(self, *parts: Any) -> list[str]:
        """Delete every key starting with the given parts. Returns the removed keys."""
        if not self.enabled:
            return []
        pattern = self._key(*parts) + "*"
        keys = [key async for key in self._client.scan_iter(match=pattern)]
        if keys:
            await self._client.delete(*keys)
        logger.debug("cache-remove: %s", ", ".join(keys) or pattern)
        return keys

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


__all__ = [
    "CacheKeys",
    "DirectoryCache",
    "make_cache_key",
]
