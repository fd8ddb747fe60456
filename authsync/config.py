"""Configuration system for authsync using pydantic-settings.

Supports layered configuration:
1. Built-in defaults (lowest priority)
2. pyproject.toml [tool.authsync] section (project-level)
3. ./authsync.toml (project-level, explicit)
4. ~/.config/authsync/config.toml (user-level, overrides project)
5. AUTHSYNC_CONFIG_FILE (explicit file)
6. Environment variables (highest priority)

Environment variables use AUTHSYNC_ prefix with nested delimiter __.
Example: AUTHSYNC_BACKEND__ENDPOINT, AUTHSYNC_OAUTH__PLATFORM
"""

from __future__ import annotations

import logging
import os
import sys
import tomllib

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger("authsync.config")


def _find_config_files() -> list[Path]:
    """Find all configuration files in order of precedence (lowest first)."""
    files = []

    pyproject = Path("pyproject.toml")
    if pyproject.exists():
        files.append(pyproject)

    authsync_toml = Path("authsync.toml")
    if authsync_toml.exists():
        files.append(authsync_toml)

    if sys.platform == "win32":
        user_config = Path(os.environ.get("APPDATA", "~")) / "authsync" / "config.toml"
    else:
        user_config = Path("~/.config/authsync/config.toml")
    user_config = user_config.expanduser()
    if user_config.exists():
        files.append(user_config)

    env_config = os.environ.get("AUTHSYNC_CONFIG_FILE")
    if env_config:
        env_path = Path(env_config)
        if env_path.exists():
            files.append(env_path)

    return files


def _load_toml_config() -> dict[str, Any]:
    """Load and merge all TOML configuration files."""
    merged: dict[str, Any] = {}

    for config_file in _find_config_files():
        try:
            data = tomllib.loads(config_file.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning("Ignoring unreadable config file %s: %s", config_file, exc)
            continue

        if config_file.name == "pyproject.toml":
            data = data.get("tool", {}).get("authsync", {})

        merged = _deep_merge(merged, data)

    return merged


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


# Field names that contain sensitive data and must be redacted in output.
_SENSITIVE_FIELDS: set[str] = {"dev_key"}

_REDACTED = "********"


class BackendSettings(BaseSettings):
    """Identity backend connection settings.

    Environment prefix: AUTHSYNC_BACKEND__
    Example: AUTHSYNC_BACKEND__ENDPOINT=https://cloud.appwrite.io/v1
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHSYNC_BACKEND__",
        extra="ignore",
    )

    endpoint: str = Field(
        default="https://cloud.appwrite.io/v1",
        description="Base URL of the backend REST API (including the version path)",
    )
    project_id: str = Field(
        default="",
        description="Backend project identifier",
    )
    platform_id: str = Field(
        default="",
        description="Registered platform identifier (iOS bundle ID or Android package name)",
    )
    dev_key: str = Field(
        default="",
        description="Optional development key sent to relax rate limits in development",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for each backend HTTP request",
    )

    @field_validator("endpoint")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class OAuthSettings(BaseSettings):
    """Delegated-login settings.

    Environment prefix: AUTHSYNC_OAUTH__
    Example: AUTHSYNC_OAUTH__PROVIDER=google
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHSYNC_OAUTH__",
        extra="ignore",
    )

    provider: str = Field(
        default="google",
        description="Delegated-login provider requested from the backend",
    )
    platform: Literal["ios", "android", "web", "desktop"] = Field(
        default="desktop",
        description="Client platform; selects how the redirect URI is built",
    )
    redirect_scheme: str = Field(
        default="",
        description="Custom URL scheme for mobile redirects (default: appwrite-callback-<project_id>)",
    )
    web_redirect_url: str = Field(
        default="",
        description="Redirect URL used on the web platform",
    )
    scopes: list[str] = Field(
        default_factory=lambda: ["openid", "email", "profile"],
        description="Scopes requested from the provider",
    )
    profile_url: str = Field(
        default="https://www.googleapis.com/oauth2/v2/userinfo",
        description="Provider profile endpoint used for enrichment",
    )
    profile_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for the provider profile request",
    )
    expiry_lookahead_seconds: int = Field(
        default=300,
        ge=0,
        description="Tokens expiring within this many seconds are refreshed",
    )
    callback_host: str = Field(
        default="127.0.0.1",
        description="Bind address of the desktop loopback callback server",
    )
    callback_port: int = Field(
        default=0,
        ge=0,
        le=65535,
        description="Port of the desktop loopback callback server (0 = auto-assign)",
    )
    poll_interval_seconds: float = Field(
        default=0.1,
        gt=0,
        description="How often the browser agent checks for the redirect",
    )


class LogSettings(BaseSettings):
    """Logging settings.

    Environment prefix: AUTHSYNC_LOG__
    Example: AUTHSYNC_LOG__LEVEL=DEBUG
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHSYNC_LOG__",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: str = "%(name)s - %(levelname)s - %(message)s"


class AuthSyncSettings(BaseSettings):
    """Main settings aggregating all configuration sections.

    Environment prefix: AUTHSYNC__
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTHSYNC__",
        env_nested_delimiter="__",
        extra="ignore",
    )

    backend: BackendSettings = Field(default_factory=BackendSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    def __init__(self, **data: Any) -> None:
        # Explicit keyword arguments win over TOML files.
        toml_config = _load_toml_config()
        merged = _deep_merge(toml_config, data)
        super().__init__(**merged)

    @property
    def redirect_scheme(self) -> str:
        """Custom scheme for mobile redirects."""
        if self.oauth.redirect_scheme:
            return self.oauth.redirect_scheme
        return f"appwrite-callback-{self.backend.project_id}"

    def show(self) -> str:
        """Format settings as a readable table."""
        lines = ["authsync Configuration", "=" * 60, ""]

        show_sections = [
            ("Backend", "backend"),
            ("Delegated Login", "oauth"),
            ("Logging", "log"),
        ]

        all_data = self.model_dump(
            exclude={attr: _SENSITIVE_FIELDS for _, attr in show_sections},
        )

        for display_name, attr_name in show_sections:
            section_data = all_data.get(attr_name, {})
            lines.append(f"\n{display_name}")
            lines.append("-" * 40)
            for field_name, field_value in section_data.items():
                value_str = str(field_value)
                if len(value_str) > 50:
                    value_str = value_str[:47] + "..."
                lines.append(f"  {field_name:24} = {value_str}")
            section_cls = type(getattr(self, attr_name))
            lines.extend(
                f"  {rn:24} = {_REDACTED}"
                for rn in sorted(_SENSITIVE_FIELDS & section_cls.model_fields.keys())
            )

        return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> AuthSyncSettings:
    """Get the global settings instance (cached).

    Call clear_settings() to reload configuration.
    """
    return AuthSyncSettings()


def clear_settings() -> None:
    """Clear the cached settings to force reload."""
    get_settings.cache_clear()
