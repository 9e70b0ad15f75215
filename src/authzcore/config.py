"""Configuration contract for authzcore.

This module provides Pydantic-validated configuration models for the
authorization layer: logging, the Directory connection, the read cache,
the namespaced claim keys and the anonymous/public organization.

Services build one ``AuthzConfig`` at startup and pass it down.
Direct os.environ/os.getenv usage is FORBIDDEN outside
``load_authz_config_from_env()``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class DirectoryConfig(BaseModel):
    """Connection settings for the external Directory (authorization extension).

    Environment variables:
        AUTH0_DOMAIN                — tenant domain used for the token endpoint
        AUTH0_CLIENT_ID             — machine-to-machine client id
        AUTH0_CLIENT_SECRET         — machine-to-machine client secret
        AUTH0_EXTENSION_URL         — base URL of the authorization extension API
        AUTH0_APPLICATION_CLIENT_ID — application owning permissions and roles
        AUTH0_EXTENSION_AUDIENCE    — API audience for the client-credentials grant
        DIRECTORY_TIMEOUT           — request timeout in seconds
    """

    model_config = {"extra": "ignore"}

    domain: str = Field(default="", description="Tenant domain (e.g. 'example.eu.auth0.com')")
    client_id: str = Field(default="", description="Client id for the client-credentials grant")
    client_secret: str = Field(default="", description="Client secret for the client-credentials grant")
    extension_url: str = Field(default="", description="Authorization extension API base URL")
    application_id: str = Field(
        default="",
        description="Application id that owns workspace permissions and roles",
    )
    audience: str = Field(
        default="urn:auth0-authz-api",
        description="Audience requested when minting the Directory access token",
    )
    timeout: float = Field(default=30.0, description="Request timeout in seconds")

    @field_validator("extension_url")
    @classmethod
    def validate_extension_url(cls, v: str) -> str:
        """Strip trailing slashes; require an http(s) scheme when set."""
        if not v:
            return v
        if not v.startswith(("http://", "https://")):
            raise ValueError("Directory extension URL must start with http:// or https://")
        return v.rstrip("/")


class ClaimsConfig(BaseModel):
    """Namespaced claim keys carried by the bearer token.

    Identity providers drop custom claims without an http(s) namespace, so
    groups and permissions live under URL-like keys.
    """

    model_config = {"extra": "ignore"}

    group_key: str = Field(
        default="https://marapp.org/groups",
        description="Claim key holding primary and nested group names",
    )
    permission_key: str = Field(
        default="https://marapp.org/permissions",
        description="Claim key holding '{group}:{verb}:{resource}' permission tokens",
    )
    subject_key: str = Field(default="sub", description="Claim key holding the subject (user) id")


class AuthzConfig(BaseModel):
    """Top-level configuration for the authorization layer."""

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Read-through cache in front of the Directory
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL (e.g., redis://localhost:6379/0)",
    )
    cache_ttl: int = Field(
        default=600,
        ge=0,
        description="Directory cache TTL in seconds (0 disables caching)",
    )

    # Guard
    public_org: str = Field(
        default="",
        description="Organization assigned to anonymous requests on public routes",
    )
    service_api_key: str = Field(
        default="",
        description="Shared key identifying service accounts (empty = no service accounts)",
    )

    directory: DirectoryConfig = Field(default_factory=DirectoryConfig)
    claims: ClaimsConfig = Field(default_factory=ClaimsConfig)

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @property
    def cache_enabled(self) -> bool:
        return bool(self.redis_url) and self.cache_ttl > 0

    model_config = {
        "use_enum_values": True,
        "extra": "forbid",
    }


def load_authz_config_from_env() -> AuthzConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL for the Directory cache
    - REDIS_CACHE_TTL: Cache TTL in seconds (default: 600)
    - PUBLIC_ORG: Organization used for anonymous access
    - SERVICE_API_KEY: Shared service-account key
    - JWT_GROUP_KEY / JWT_PERMISSION_KEY: namespaced claim keys
    - AUTH0_*: Directory connection (see DirectoryConfig)

    Returns:
        AuthzConfig instance with values from environment or defaults.
    """
    import os

    directory = DirectoryConfig(
        domain=os.getenv("AUTH0_DOMAIN", ""),
        client_id=os.getenv("AUTH0_CLIENT_ID", ""),
        client_secret=os.getenv("AUTH0_CLIENT_SECRET", ""),
        extension_url=os.getenv("AUTH0_EXTENSION_URL", ""),
        application_id=os.getenv("AUTH0_APPLICATION_CLIENT_ID", ""),
        audience=os.getenv("AUTH0_EXTENSION_AUDIENCE", "urn:auth0-authz-api"),
        timeout=float(os.getenv("DIRECTORY_TIMEOUT", "30")),
    )

    claims = ClaimsConfig(
        group_key=os.getenv("JWT_GROUP_KEY", "https://marapp.org/groups"),
        permission_key=os.getenv("JWT_PERMISSION_KEY", "https://marapp.org/permissions"),
    )

    return AuthzConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in ("true", "1", "yes"),
        redis_url=os.getenv("REDIS_URL") or None,
        cache_ttl=int(os.getenv("REDIS_CACHE_TTL", "600")),
        public_org=os.getenv("PUBLIC_ORG", ""),
        service_api_key=os.getenv("SERVICE_API_KEY", ""),
        directory=directory,
        claims=claims,
    )


__all__ = [
    "AuthzConfig",
    "ClaimsConfig",
    "DirectoryConfig",
    "LogLevel",
    "load_authz_config_from_env",
]
