"""Tests for PermissionSettings."""

import pytest
from pydantic import ValidationError

from neo_permissions.config import PermissionSettings
from neo_permissions.config.logging_config import LoggingConfig


def test_defaults():
    settings = PermissionSettings(_env_file=None)

    assert settings.cache_local_ttl_seconds == 300
    assert settings.cache_shared_ttl_seconds == 3600
    assert settings.superadmin_role_name == "SuperAdmin"
    assert settings.default_role_name == "Member"
    assert settings.is_shared_cache_enabled is False
    assert settings.is_store_configured is False


def test_environment_override(monkeypatch):
    monkeypatch.setenv("NEO_PERM_REDIS_URL", "redis://cache:6379/2")
    monkeypatch.setenv("NEO_PERM_CACHE_LOCAL_TTL_SECONDS", "60")
    monkeypatch.setenv("NEO_PERM_DEFAULT_ROLE_NAME", "Viewer")

    settings = PermissionSettings(_env_file=None)

    assert settings.is_shared_cache_enabled is True
    assert settings.cache_local_ttl_seconds == 60
    assert settings.default_role_name == "Viewer"


def test_shared_ttl_must_cover_local_ttl():
    with pytest.raises(ValidationError):
        PermissionSettings(_env_file=None, cache_local_ttl_seconds=600, cache_shared_ttl_seconds=60)


def test_ttls_must_be_positive():
    with pytest.raises(ValidationError):
        PermissionSettings(_env_file=None, cache_local_ttl_seconds=0)


def test_pool_bounds():
    with pytest.raises(ValidationError):
        PermissionSettings(_env_file=None, db_pool_min_size=10, db_pool_max_size=5)


def test_logging_config_quiets_hot_paths():
    config = LoggingConfig.build("info", "json")

    assert config["root"]["level"] == "INFO"
    assert config["loggers"]["neo_permissions.features.cache.services.tiered_cache"]["level"] == "WARNING"
    assert config["formatters"]["default"]["format"].startswith('{"time"')


def test_logging_config_unknown_format_falls_back():
    config = LoggingConfig.build("DEBUG", "fancy")

    assert config["loggers"]["neo_permissions.features.cache.services.tiered_cache"]["level"] == "DEBUG"
    assert config["formatters"]["default"]["format"].startswith("%(asctime)s - %(levelname)s")
