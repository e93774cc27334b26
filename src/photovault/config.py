"""Configuration for PhotoVault.

Values come from environment variables first and ``st.secrets`` second.
Reads are cached per (key, type) on the process-wide ``Config``; tests and
anything else that changes the environment at runtime call ``clear_cache``.
"""

import os
from typing import Any

import streamlit as st

from .logging_config import get_logger

logger = get_logger(__name__)

DEVELOPMENT_JWT_SECRET = "photovault-development-secret-change-me"  # nosec B105

DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local", "test")
PRODUCTION_ENVIRONMENTS = ("production", "prod")
TRUE_VALUES = ("true", "1", "yes", "on")

MEGABYTE = 1024 * 1024

# Always required; AUTH_JWT_SECRET joins them in production
REQUIRED_KEYS = ("GOOGLE_CLOUD_PROJECT", "GCS_PHOTOS_BUCKET")


def _cast(value: Any, cast_type: type) -> Any:
    if cast_type is bool:
        return value.lower() in TRUE_VALUES if isinstance(value, str) else bool(value)
    if cast_type is str:
        return value
    return cast_type(value)


def _read_secret(key: str) -> Any:
    try:
        return st.secrets.get(key)
    except Exception:  # nosec B110
        # No secrets file outside of a Streamlit run
        return None


class Config:
    """Environment-then-secrets lookup with a per-instance cache."""

    def __init__(self):
        self._cache: dict[tuple[str, str], Any] = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get a configuration value cast to ``cast_type``.

        A value that cannot be cast is logged and replaced by ``default``.
        """
        cache_key = (key, cast_type.__name__)
        if cache_key not in self._cache:
            self._cache[cache_key] = self._load(key, default, cast_type)
        return self._cache[cache_key]

    def _load(self, key: str, default: Any, cast_type: type) -> Any:
        raw = os.getenv(key)
        if raw is None:
            raw = _read_secret(key)
        if raw is None:
            return default if default is None else _cast(default, cast_type)

        try:
            return _cast(raw, cast_type)
        except (ValueError, TypeError) as e:
            logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
            return default

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get a configuration value that must be present.

        Raises:
            ValueError: If the key is not set anywhere
        """
        value = self.get(key, cast_type=cast_type)
        if value is None:
            raise ValueError(f"Required configuration '{key}' not found")
        return value

    @property
    def environment(self) -> str:
        return str(self.get("ENVIRONMENT", "development")).lower()

    def is_development(self) -> bool:
        return self.environment in DEVELOPMENT_ENVIRONMENTS

    def is_production(self) -> bool:
        return self.environment in PRODUCTION_ENVIRONMENTS

    def clear_cache(self):
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    return get_config().get(key, default, cast_type)


def get_required_env(key: str, cast_type: type = str) -> Any:
    return get_config().get_required(key, cast_type)


def is_development() -> bool:
    return get_config().is_development()


def is_production() -> bool:
    return get_config().is_production()


def get_photos_bucket() -> str:
    """Name of the GCS bucket backing the ``photos`` storage bucket."""
    return str(get_required_env("GCS_PHOTOS_BUCKET"))


def get_database_path() -> str:
    return str(get_env("DATABASE_PATH", "data/photovault.duckdb"))


def get_environment() -> str:
    return str(get_env("ENVIRONMENT", "development"))


def get_jwt_secret() -> str:
    """Secret used to sign session tokens.

    Production must set AUTH_JWT_SECRET; other environments fall back to a
    fixed development secret.
    """
    secret = get_env("AUTH_JWT_SECRET")
    if secret:
        return str(secret)
    if is_production():
        raise ValueError("Required configuration 'AUTH_JWT_SECRET' not found")
    return DEVELOPMENT_JWT_SECRET


def get_session_ttl() -> int:
    """Session lifetime in seconds."""
    return int(get_env("AUTH_SESSION_TTL", 3600, int))


def get_max_upload_size() -> int:
    """Client-side upload limit in bytes (``MAX_UPLOAD_SIZE_MB``, default 10)."""
    return int(get_env("MAX_UPLOAD_SIZE_MB", 10, int)) * MEGABYTE


def get_upload_max_workers() -> int:
    return max(1, int(get_env("UPLOAD_MAX_WORKERS", 4, int)))


def get_enforce_photo_path_prefix() -> bool:
    """Whether photo rows must point into the caller's own storage folder."""
    return bool(get_env("ENFORCE_PHOTO_PATH_PREFIX", False, bool))


def get_missing_required_keys() -> list[str]:
    required = list(REQUIRED_KEYS)
    if is_production():
        required.append("AUTH_JWT_SECRET")
    return [key for key in required if not get_env(key)]


def describe_settings() -> dict[str, Any]:
    """Non-secret settings, for the health page."""
    return {
        "environment": get_environment(),
        "google_cloud_project": get_env("GOOGLE_CLOUD_PROJECT"),
        "photos_bucket": get_env("GCS_PHOTOS_BUCKET"),
        "database_path": get_database_path(),
        "session_ttl": get_session_ttl(),
        "max_upload_size_mb": get_max_upload_size() // MEGABYTE,
        "upload_max_workers": get_upload_max_workers(),
        "enforce_photo_path_prefix": get_enforce_photo_path_prefix(),
    }
