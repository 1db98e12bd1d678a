"""
Global settings from environment variables.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolgateSettings(BaseSettings):
    """
    Global configuration loaded from environment variables.

    Environment variables are prefixed with TOOLGATE_
    Example: TOOLGATE_AUTO_RUN=true, TOOLGATE_STATE_STORAGE_TYPE=sqlite
    """

    model_config = SettingsConfigDict(
        env_prefix="toolgate_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Core settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Consent protocol
    consent_timeout_seconds: float = Field(default=600.0, gt=0)

    # Policy
    project_root: str | None = None  # None = current working directory
    auto_run: bool = False  # Ask policies become Allow
    first_party_tool_prefixes: list[str] = Field(
        default_factory=lambda: ["toolgate."],
        description="Tool id prefixes treated as first-party tools",
    )

    # Permission state persistence
    state_storage_type: Literal["memory", "file", "sqlite", "mongodb"] = "memory"
    state_key: str = "__TOOLGATE_TOOL_PERMISSIONS__"
    state_file_path: str = "~/.toolgate/permissions.json"
    sqlite_db_path: str = "~/.toolgate/toolgate.db"
    mongo_uri: str | None = None
    mongo_db_name: str = "toolgate"


# Global settings instance (singleton)
settings = ToolgateSettings()


__all__ = ["ToolgateSettings", "settings"]
