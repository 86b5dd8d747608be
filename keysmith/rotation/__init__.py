"""Access key rotation for persisted connections."""

from keysmith.rotation.rotator import KeyRotator

__all__ = ["KeyRotator"]
