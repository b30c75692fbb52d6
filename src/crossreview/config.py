"""Configuration management for crossreview.

This module defines the configuration schema using Pydantic settings,
supporting TOML files, environment variables, and programmatic overrides.

Configuration loading priority (highest to lowest):
1. Environment variables (CROSSREVIEW_* prefix)
2. TOML configuration file (passed to the CrossReviewConfig constructor)
3. Default values defined in this module

Example TOML configuration:
    [review]
    workspace_root = "tasks/reviews"
    max_rounds = 5

Example environment variable override:
    CROSSREVIEW_REVIEW__MAX_ROUNDS=3
    CROSSREVIEW_LOGGING__LEVEL=DEBUG
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomli
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Log format (json or console)
        file: Optional log file path (None for stderr only)
        rotation_size_mb: Log file rotation size in megabytes
        retention_count: Number of rotated log files to keep
    """

    model_config = SettingsConfigDict(
        env_prefix="CROSSREVIEW_LOGGING__",
        extra="forbid",
    )

    level: str = Field(default="INFO")
    format: str = Field(default="console")
    file: Path | None = Field(default=None)
    rotation_size_mb: int = Field(default=10, ge=1, le=1000)
    retention_count: int = Field(default=5, ge=1, le=100)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is recognized."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is recognized."""
        valid_formats = {"json", "console"}
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Invalid log format: {v}. Must be one of {valid_formats}")
        return v_lower


class ReviewConfig(BaseSettings):
    """Review workflow configuration.

    Attributes:
        workspace_root: Directory under which workspaces are created
        max_rounds: Default round budget for new workspaces
        dedup_threshold: Similarity at which new issues are flagged as
            possible duplicates
        min_override_reason_length: Minimum length of a force-approve reason
        confirmation_token: Text an interactive user types to confirm a
            force-approve
    """

    model_config = SettingsConfigDict(
        env_prefix="CROSSREVIEW_REVIEW__",
        extra="forbid",
    )

    workspace_root: Path = Field(default=Path("tasks/reviews"))
    max_rounds: int = Field(default=5, ge=1, le=50)
    dedup_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    min_override_reason_length: int = Field(default=10, ge=1, le=500)
    confirmation_token: str = Field(default="CONFIRM", min_length=1)


class CrossReviewConfig(BaseSettings):
    """Root configuration for crossreview.

    Environment variable format for nested config:
        CROSSREVIEW_<SECTION>__<KEY>=value
    """

    model_config = SettingsConfigDict(
        env_prefix="CROSSREVIEW_",
        env_nested_delimiter="__",
        extra="forbid",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # TOML values arrive as constructor kwargs; the environment wins
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_config(config_path: Path | None = None) -> CrossReviewConfig:
    """Load configuration from TOML file with environment variable overrides.

    Configuration search order (first found is used):
    1. config_path if explicitly provided
    2. ./crossreview.toml (current directory)
    3. ~/.config/crossreview/config.toml (user config directory)

    Args:
        config_path: Explicit path to TOML config file. If None, searches
                    default locations.

    Returns:
        CrossReviewConfig: Fully resolved configuration instance.

    Raises:
        FileNotFoundError: If config_path is explicitly provided but doesn't exist.
        ValueError: If TOML file contains invalid configuration.
    """
    toml_data: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        selected_path: Path | None = config_path
    else:
        search_paths = [
            Path.cwd() / "crossreview.toml",
            Path.home() / ".config" / "crossreview" / "config.toml",
        ]
        selected_path = next((p for p in search_paths if p.exists()), None)

    if selected_path is not None:
        with open(selected_path, "rb") as f:
            toml_data = tomli.load(f)

    # Pydantic overlays environment variables on top of the TOML values
    try:
        return CrossReviewConfig(**toml_data)
    except Exception as e:
        if selected_path:
            raise ValueError(f"Invalid configuration in {selected_path}: {e}") from e
        raise ValueError(f"Invalid configuration: {e}") from e
