"""
Configuration system using Pydantic for type-safe settings management.

This module provides configuration classes for the credential lifecycle
engine: rotation budgets, refresh pacing, STS endpoint policy, session
defaults and the connection store location.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from keysmith.config.parameters import (
    SESSION_DURATION_DEFAULT_MINUTES,
    SESSION_DURATION_MAX_MINUTES,
    SESSION_DURATION_MIN_MINUTES,
)
from keysmith.exceptions import ConfigurationError


class RotationConfig(BaseModel):
    """Timing budgets for key rotation."""

    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Budget for verifying the new key and for confirming the persisted record",
    )
    verification_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Fixed delay between identity verification attempts",
    )
    persistence_poll_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Interval between persisted-record confirmation polls",
    )


class RefreshConfig(BaseModel):
    """Background refresh pacing for session credentials."""

    refresh_fraction: float = Field(
        default=0.8,
        gt=0.0,
        lt=1.0,
        description="Refresh after this fraction of the session lifetime",
    )
    min_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Lower bound for the refresh interval",
    )
    worker_threads: int = Field(default=4, ge=1, le=64, description="Shared scheduler worker threads")


class StsConfig(BaseModel):
    """Security Token Service endpoint policy."""

    endpoint_region: str = Field(
        default="us-east-1",
        description="Signing region used with a custom STS endpoint",
    )
    whitelisted_endpoints: list[str] | None = Field(
        default=None,
        description="Allowed STS endpoints. When unset, every regional STS endpoint is allowed.",
    )


class SessionConfig(BaseModel):
    """Session credential defaults."""

    default_duration_minutes: int = Field(
        default=SESSION_DURATION_DEFAULT_MINUTES,
        ge=SESSION_DURATION_MIN_MINUTES,
        le=SESSION_DURATION_MAX_MINUTES,
        description="Session duration used when a connection does not specify one",
    )
    allow_default_provider: bool = Field(
        default=False,
        description="Allow connections to use the server's ambient credential chain",
    )


class StoreConfig(BaseModel):
    """Connection store configuration."""

    directory: str = Field(default=".keysmith/connections", description="Directory for connection files")


class KeysmithSettings(BaseSettings):
    """Main keysmith settings.

    Combines all configuration sections and provides loading from YAML files
    with environment variable interpolation.
    """

    model_config = SettingsConfigDict(
        env_prefix="KEYSMITH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    rotation: RotationConfig = Field(default_factory=RotationConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    sts: StsConfig = Field(default_factory=StsConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @model_validator(mode="after")
    def validate_poll_interval(self) -> KeysmithSettings:
        """A poll interval longer than the budget would never poll twice."""
        if self.rotation.persistence_poll_interval_seconds > self.rotation.timeout_seconds:
            raise ValueError("rotation.persistence_poll_interval_seconds must not exceed rotation.timeout_seconds")
        return self

    @property
    def store_dir(self) -> Path:
        """Get store directory as Path object."""
        return Path(self.store.directory)

    @classmethod
    def from_yaml(cls, config_path: str) -> KeysmithSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            KeysmithSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
