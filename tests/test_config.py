"""Tests for AuthzConfig."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from authzcore import AuthzConfig, ClaimsConfig, DirectoryConfig, LogLevel, load_authz_config_from_env


class TestAuthzConfig:
    """Tests for AuthzConfig model."""

    def test_create_default_config(self) -> None:
        """Test creating an AuthzConfig with defaults."""
        config = AuthzConfig()
        assert config.log_level == LogLevel.INFO
        assert config.log_json is False
        assert config.redis_url is None
        assert config.cache_ttl == 600
        assert config.public_org == ""
        assert config.service_api_key == ""
        assert config.cache_enabled is False
        assert config.claims.group_key == "https://marapp.org/groups"
        assert config.claims.permission_key == "https://marapp.org/permissions"
        assert config.claims.subject_key == "sub"

    def test_log_level_from_string(self) -> None:
        config = AuthzConfig(log_level="debug")
        assert config.log_level == LogLevel.DEBUG

    def test_log_level_invalid(self) -> None:
        with pytest.raises(ValueError, match="Invalid log level"):
            AuthzConfig(log_level="INVALID")

    def test_redis_url_validation_valid(self) -> None:
        """Test valid Redis URL formats."""
        for url in ("redis://localhost:6379/0", "rediss://localhost:6379/0", "unix:///tmp/redis.sock"):
            assert AuthzConfig(redis_url=url).redis_url == url

    def test_redis_url_validation_invalid(self) -> None:
        with pytest.raises(ValueError, match="Redis URL must start with"):
            AuthzConfig(redis_url="http://localhost:6379")

    def test_cache_enabled(self) -> None:
        assert AuthzConfig(redis_url="redis://localhost:6379/0").cache_enabled is True
        assert AuthzConfig(redis_url="redis://localhost:6379/0", cache_ttl=0).cache_enabled is False

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AuthzConfig(cache_ttl=-1)

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            AuthzConfig(unknown_field="x")


class TestDirectoryConfig:
    """Tests for DirectoryConfig."""

    def test_extension_url_trailing_slash(self) -> None:
        config = DirectoryConfig(extension_url="https://authz.example.org/api/")
        assert config.extension_url == "https://authz.example.org/api"

    def test_extension_url_scheme(self) -> None:
        with pytest.raises(ValueError, match="must start with http"):
            DirectoryConfig(extension_url="authz.example.org/api")

    def test_defaults(self) -> None:
        config = DirectoryConfig()
        assert config.audience == "urn:auth0-authz-api"
        assert config.timeout == 30.0


class TestLoadAuthzConfigFromEnv:
    """Tests for load_authz_config_from_env function."""

    @patch.dict(os.environ, {}, clear=True)
    def test_load_defaults(self) -> None:
        config = load_authz_config_from_env()
        assert config.log_level == LogLevel.INFO
        assert config.redis_url is None
        assert config.directory.extension_url == ""
        assert config.claims == ClaimsConfig()

    @patch.dict(
        os.environ,
        {
            "LOG_LEVEL": "DEBUG",
            "LOG_JSON": "yes",
            "REDIS_URL": "redis://localhost:6379/0",
            "REDIS_CACHE_TTL": "60",
            "PUBLIC_ORG": "MARAPP",
            "SERVICE_API_KEY": "service-key",
            "JWT_GROUP_KEY": "https://example.org/groups",
            "AUTH0_DOMAIN": "tenant.example.org",
            "AUTH0_CLIENT_ID": "cid",
            "AUTH0_CLIENT_SECRET": "secret",
            "AUTH0_EXTENSION_URL": "https://authz.example.org/api",
            "AUTH0_APPLICATION_CLIENT_ID": "app-1",
            "DIRECTORY_TIMEOUT": "5",
        },
        clear=True,
    )
    def test_load_from_env(self) -> None:
        config = load_authz_config_from_env()
        assert config.log_level == LogLevel.DEBUG
        assert config.log_json is True
        assert config.redis_url == "redis://localhost:6379/0"
        assert config.cache_ttl == 60
        assert config.public_org == "MARAPP"
        assert config.service_api_key == "service-key"
        assert config.claims.group_key == "https://example.org/groups"
        assert config.directory.domain == "tenant.example.org"
        assert config.directory.client_secret == "secret"
        assert config.directory.application_id == "app-1"
        assert config.directory.timeout == 5.0
