"""
Domain models for the credential lifecycle engine.

This module contains the value objects exchanged between holders, the
refresher, the rotator and the external provider and persistence services.
Credentials and snapshots are immutable: a holder replaces its snapshot
wholesale instead of mutating it, so a concurrent reader always sees either
the old or the new value in full.

Example:
    Wrapping a session issued by the token service::

        snapshot = CredentialsSnapshot(
            credentials=Credentials("ASIA...", "secret", session_token="token"),
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from keysmith.config.parameters import (
    ACCESS_KEY_ID_PARAM,
    SECURE_SECRET_ACCESS_KEY_PARAM,
    mask_key,
)
from keysmith.enums import RotationStep


@dataclass(frozen=True)
class Credentials:
    """An access key pair, optionally with a session token.

    The presence of ``session_token`` marks the credentials as temporary.
    ``repr`` never includes the secret or the token.
    """

    access_key_id: str
    secret_access_key: str = field(repr=False)
    session_token: str | None = field(default=None, repr=False)

    @property
    def is_temporary(self) -> bool:
        return self.session_token is not None

    @property
    def masked_key_id(self) -> str:
        return mask_key(self.access_key_id)


@dataclass(frozen=True)
class CredentialsSnapshot:
    """Credentials plus their expiration, as held by exactly one holder.

    ``expires_at`` is ``None`` for non-expiring credentials.
    """

    credentials: Credentials
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) >= self.expires_at


@dataclass(frozen=True)
class AccessKey:
    """A long-lived access key pair issued by the identity service."""

    access_key_id: str
    secret_access_key: str = field(repr=False)
    user_name: str | None = None

    def to_credentials(self) -> Credentials:
        return Credentials(self.access_key_id, self.secret_access_key)


@dataclass(frozen=True)
class CallerIdentity:
    """Principal behind a set of credentials, as reported by the provider."""

    user_id: str
    account: str | None = None
    arn: str | None = None


@dataclass
class ConnectionRecord:
    """A persisted connection, owned by the external connection store.

    Only the access key id and secret parameters matter to rotation; all
    other parameters are carried through unchanged.
    """

    id: str
    project_id: str
    provider_type: str = "AWS"
    parameters: dict[str, str] = field(default_factory=dict)

    @property
    def access_key_id(self) -> str | None:
        return self.parameters.get(ACCESS_KEY_ID_PARAM)

    @property
    def secret_access_key(self) -> str | None:
        return self.parameters.get(SECURE_SECRET_ACCESS_KEY_PARAM)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "provider_type": self.provider_type,
            "parameters": dict(self.parameters),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConnectionRecord":
        return cls(
            id=data["id"],
            project_id=data["project_id"],
            provider_type=data.get("provider_type", "AWS"),
            parameters=dict(data.get("parameters", {})),
        )


@dataclass
class RotationAttempt:
    """In-memory state of one rotation run. Never persisted."""

    connection_id: str
    project_id: str
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    step: RotationStep = RotationStep.LOCATE_CONNECTION
    previous_credentials: Credentials | None = None
    new_credentials: Credentials | None = None
    iam_user_name: str | None = None
    record_changed: bool | None = False

    @property
    def live_key_ids(self) -> tuple[str, ...]:
        """Key ids that may be valid at the provider at this point."""
        keys = []
        if self.previous_credentials is not None:
            keys.append(self.previous_credentials.access_key_id)
        if self.new_credentials is not None:
            keys.append(self.new_credentials.access_key_id)
        return tuple(keys)
