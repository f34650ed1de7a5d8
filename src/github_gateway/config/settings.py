"""
Pydantic settings model for the GitHub gateway.

This module defines the configuration schema using pydantic-settings for
validation and type safety. A single ``GatewaySettings`` value is built at
process start and handed to the app factory and the GitHub client.
"""

import json
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class GatewaySettings(BaseSettings):
    """Main gateway settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Authentication
    api_key: str | None = Field(
        default=None,
        alias="MCP_API_KEY",
        description="Shared secret expected in the X-API-Key header",
    )

    # Upstream GitHub
    github_token: str | None = Field(default=None, description="GitHub access token")
    github_org: str | None = Field(
        default=None, description="Organization new repositories are created in"
    )
    github_api_url: str = Field(
        default="https://api.github.com", description="GitHub REST API base URL"
    )
    github_timeout_s: float = Field(
        default=30.0, gt=0, description="Timeout for each GitHub API call in seconds"
    )

    # Commit assembly
    default_branch: str = Field(default="main", description="Default branch name")
    use_base_tree: bool = Field(
        default=True,
        description="Build new trees as a delta on base_tree instead of a full tree",
    )
    commit_conflict_retries: int = Field(
        default=0, ge=0, le=10, description="Retries after a ref update conflict"
    )
    commit_retry_backoff_s: float = Field(
        default=0.5, ge=0, description="Base backoff between conflict retries"
    )

    # HTTP server
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3001, description="Bind port")
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins, comma separated or a JSON list",
    )
    rate_limit_max_requests: int = Field(
        default=1000, ge=0, description="Requests per client per window (0 disables)"
    )
    rate_limit_window_s: int = Field(
        default=3600, gt=0, description="Rate limit window in seconds"
    )

    # Runtime
    environment: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")
    log_dir: str | None = Field(
        default="logs", description="Directory for JSONL log files (None disables)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_environments = ["development", "testing", "staging", "production"]
        if v.lower() not in valid_environments:
            raise ValueError(f"Environment must be one of {valid_environments}")
        return v.lower()

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        if not isinstance(v, str):
            return v
        if v.strip().startswith("["):
            return json.loads(v)
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def get_settings(**overrides) -> GatewaySettings:
    """Load settings from the environment, applying keyword overrides."""
    return GatewaySettings(**overrides)
