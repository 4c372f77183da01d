"""12-factor configuration adapter using environment variables and TOML config."""

import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to bind the server to")
    log_level: str = Field(default="INFO", description="Root log level (DEBUG, INFO, WARNING, ...)")

    # TOML config file path (user and group directory)
    config_file: str | None = Field(
        default="config.example.toml",
        description="Path to TOML configuration file declaring users and groups",
    )

    # Signaling
    websocket_path: str = Field(default="/ws", description="Path of the signaling websocket")
    allow_unknown_users: bool = Field(
        default=True,
        description="Accept users that are not declared in the directory",
    )

    # Rate limiting configuration
    rate_limit_per_minute: int = Field(
        default=100,
        description="Maximum number of HTTP requests allowed per IP address per minute",
    )
    signaling_events_per_minute: int = Field(
        default=600,
        description="Maximum number of signaling events accepted per connection per minute",
    )

    # Admin commands
    admin_command_token: str | None = Field(
        default=None,
        description="Token required in X-Admin-Token for admin endpoints (disabled when unset)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"log_level must be a logging level name, got '{v}'")
        return level

    @field_validator("websocket_path")
    @classmethod
    def validate_websocket_path(cls, v: str) -> str:
        """Validate the websocket path is absolute."""
        if not v.startswith("/"):
            raise ValueError("websocket_path must start with '/'")
        return v

    def _load_toml_data(self) -> dict[str, Any]:
        """Load and parse the TOML file."""
        if not self.config_file:
            return {}

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        return toml_data

    def get_directory_config(self) -> dict[str, list[dict[str, Any]]]:
        """Parse and return the users and groups declared in the TOML file.

        Returns a dict with 'users' and 'groups' lists. Both are empty when no
        config file is set.
        """
        toml_data = self._load_toml_data()

        users = toml_data.get("users", [])
        groups = toml_data.get("groups", [])
        if not isinstance(users, list):
            raise ValueError("TOML config 'users' must be a list")
        if not isinstance(groups, list):
            raise ValueError("TOML config 'groups' must be a list")

        return {"users": users, "groups": groups}
