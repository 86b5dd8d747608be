"""Configuration system for keysmith.

This package provides type-safe configuration management using Pydantic and
the connection parameter vocabulary shared by holders, the rotator and the
CLI.

Key Components:
    - KeysmithSettings: Main configuration container with YAML loading support
    - RotationConfig: Verification and persistence-confirmation budgets
    - RefreshConfig: Background refresh pacing
    - StsConfig: STS endpoint policy
    - parameters: Connection parameter names and helpers

Example:
    >>> from keysmith.config import KeysmithSettings
    >>> settings = KeysmithSettings.from_yaml("keysmith.yaml")
    >>> settings.rotation.timeout_seconds
    30.0
"""

from keysmith.config.settings import (
    KeysmithSettings,
    RefreshConfig,
    RotationConfig,
    SessionConfig,
    StoreConfig,
    StsConfig,
)

__all__ = [
    "KeysmithSettings",
    "RefreshConfig",
    "RotationConfig",
    "SessionConfig",
    "StoreConfig",
    "StsConfig",
]
