"""
Compass Configuration — Load and validate compass.yaml at startup.

Secrets are never expected in the YAML file; they are read from the
environment (SUPABASE_URL, SUPABASE_ANON_KEY, SUPABASE_SERVICE_ROLE_KEY,
SITE_URL) and override whatever the file contains.

Usage:
    from compass.engine.config import load_settings, get_settings
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from compass.engine.errors import CompassConfigError

CONFIG_FILENAME = "compass.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for compass.yaml
# ---------------------------------------------------------------------------

class RedisConfig(BaseModel):
    url: str = "redis://localhost:6379/0"
    rate_limit_db: int = 5


class RateLimitConfig(BaseModel):
    max_requests: int = Field(default=10, gt=0)
    window_ms: int = Field(default=60_000, gt=0)
    backend: str = "memory"
    max_entries: int = Field(default=10_000, gt=0)
    sweep_interval_s: float = Field(default=60.0, ge=0)

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("memory", "redis"):
            raise ValueError(f"rate_limit.backend must be memory/redis, got '{v}'")
        return v


class LookupConfig(BaseModel):
    page_size: int = Field(default=50, gt=0)
    max_pages: int = Field(default=20, gt=0)
    uniform_error_status: bool = False


class CorsConfig(BaseModel):
    site_url: str = ""
    production_origin: str = "https://project-compass-nine.vercel.app"
    dev_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:8080", "http://localhost:5173"]
    )
    allowed_suffix: str = ".vercel.app"


class IdentityConfig(BaseModel):
    url: str = ""
    anon_key: str = ""
    service_role_key: str = ""
    timeout: float = 10.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".compass/logs"
    flush_interval_ms: int = 100
    flush_batch_size: int = 50
    max_queue_size: int = 10000


class Settings(BaseModel):
    """Root model for compass.yaml."""
    name: str = "Project Compass"
    environment: str = "dev"

    redis: RedisConfig = RedisConfig()
    rate_limit: RateLimitConfig = RateLimitConfig()
    lookup: LookupConfig = LookupConfig()
    cors: CorsConfig = CorsConfig()
    identity: IdentityConfig = IdentityConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_settings: Optional[Settings] = None

# env var → (section, field)
_ENV_OVERRIDES = {
    "SUPABASE_URL": ("identity", "url"),
    "SUPABASE_ANON_KEY": ("identity", "anon_key"),
    "SUPABASE_SERVICE_ROLE_KEY": ("identity", "service_role_key"),
    "SITE_URL": ("cors", "site_url"),
    "COMPASS_REDIS_URL": ("redis", "url"),
}


def _find_project_root() -> Path:
    """Find the project root by looking for compass.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, (section, field) in _ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            data.setdefault(section, {})
            data[section][field] = value
    return data


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load and validate compass.yaml.

    Args:
        config_path: Explicit path to compass.yaml. If None, auto-discovers.

    Returns:
        Validated Settings instance. Defaults when no file exists.
    """
    global _settings

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    raw: Dict[str, Any] = {}
    path = Path(config_path)
    if path.exists():
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise CompassConfigError(
                f"{path} must contain a mapping", config_path=str(path)
            )

    raw = _apply_env_overrides(raw)

    try:
        _settings = Settings(**raw)
    except ValidationError as e:
        raise CompassConfigError(
            f"Invalid configuration in {path}: {e}", config_path=str(path)
        ) from e
    return _settings


def get_settings() -> Settings:
    """Get the currently loaded settings, loading if necessary."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_environment() -> str:
    """Get the current environment."""
    return get_settings().environment
