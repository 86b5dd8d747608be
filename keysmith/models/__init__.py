"""Domain models for keysmith.

Re-exports the value objects shared across the credential lifecycle engine.
"""

from keysmith.models.domain import (
    AccessKey,
    CallerIdentity,
    ConnectionRecord,
    Credentials,
    CredentialsSnapshot,
    RotationAttempt,
)

__all__ = [
    "AccessKey",
    "CallerIdentity",
    "ConnectionRecord",
    "Credentials",
    "CredentialsSnapshot",
    "RotationAttempt",
]
