"""
Configuration management for the writeflow service.

Loads configuration from YAML with ZERO defaults.
Every value must be explicitly specified or startup fails.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

REDACTION_MARKER = "***REDACTED***"
_SENSITIVE_KEYS = frozenset({"jwt_secret"})


class ConfigurationError(Exception):
    """Raised when the configuration file is missing or malformed."""


class ServiceConfig(BaseModel):
    """Service identity configuration."""

    model_config = ConfigDict(extra="forbid")
    name: str
    version: str


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    model_config = ConfigDict(extra="forbid")
    host: str
    port: int
    log_level: str


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")
    level: str
    directory: str


class DatabaseConfig(BaseModel):
    """Database configuration."""

    model_config = ConfigDict(extra="forbid")
    path: str
    busy_timeout_ms: int

    @field_validator("busy_timeout_ms")
    @classmethod
    def busy_timeout_must_be_positive(cls, value: int) -> int:
        """Reject a zero or negative lock wait."""
        if value <= 0:
            msg = "database.busy_timeout_ms must be positive"
            raise ValueError(msg)
        return value


class AuthConfig(BaseModel):
    """Bearer token verification configuration."""

    model_config = ConfigDict(extra="forbid")
    jwt_secret: str
    algorithm: str

    @field_validator("jwt_secret")
    @classmethod
    def secret_must_not_be_empty(cls, value: str) -> str:
        """Reject an empty signing secret at startup."""
        if not value.strip():
            msg = "auth.jwt_secret must not be empty"
            raise ValueError(msg)
        return value


class NotificationsConfig(BaseModel):
    """Notification collaborator connection configuration."""

    model_config = ConfigDict(extra="forbid")
    enabled: bool
    base_url: str
    path: str
    timeout_seconds: int
    admin_recipients: list[str]


class RequestConfig(BaseModel):
    """Request handling configuration."""

    model_config = ConfigDict(extra="forbid")
    max_body_size: int


class PaginationConfig(BaseModel):
    """Transaction listing page size limits."""

    model_config = ConfigDict(extra="forbid")
    default_limit: int
    max_limit: int

    @model_validator(mode="after")
    def validate_limits(self) -> PaginationConfig:
        """Default page size must fit inside the maximum."""
        if self.default_limit < 1 or self.default_limit > self.max_limit:
            msg = "pagination.default_limit must be between 1 and pagination.max_limit"
            raise ValueError(msg)
        return self


class Settings(BaseModel):
    """
    Root configuration container.

    All fields are REQUIRED. No defaults exist.
    Missing fields cause immediate startup failure.
    """

    model_config = ConfigDict(extra="forbid")
    service: ServiceConfig
    server: ServerConfig
    logging: LoggingConfig
    database: DatabaseConfig
    auth: AuthConfig
    notifications: NotificationsConfig
    request: RequestConfig
    pagination: PaginationConfig


def get_config_path() -> Path:
    """Determine configuration file path from CONFIG_PATH or the working directory."""
    configured = os.environ.get("CONFIG_PATH")
    if configured:
        return Path(configured)
    return Path.cwd() / "config.yaml"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and validate settings. Cached until clear_settings_cache() is called."""
    config_path = get_config_path()
    if not config_path.is_file():
        msg = f"Configuration file not found: {config_path}"
        raise ConfigurationError(msg)

    raw = yaml.safe_load(config_path.read_text())
    if not isinstance(raw, dict):
        msg = f"Invalid config file: {config_path}"
        raise ConfigurationError(msg)
    return Settings(**raw)


def clear_settings_cache() -> None:
    """Drop cached settings so the next call re-reads the file."""
    get_settings.cache_clear()


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            key: REDACTION_MARKER if key in _SENSITIVE_KEYS else _redact(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [_redact(item) for item in value]
    return value


def get_safe_config() -> dict[str, Any]:
    """Get configuration with sensitive values redacted."""
    redacted: dict[str, Any] = _redact(get_settings().model_dump())
    return redacted
