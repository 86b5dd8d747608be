"""Custom exception hierarchy for keysmith.

This module defines a structured exception hierarchy that enables precise
error handling and actionable error messages throughout the credential
lifecycle engine.

Exception Hierarchy:
    KeysmithError (base)
    ├── ConfigurationError
    ├── CredentialError
    │   ├── CredentialResolutionError
    │   └── RefreshFailure
    ├── ConnectionNotFoundError
    ├── KeyRotationError
    ├── RetryTimeoutError
    ├── PollTimeoutError
    └── ExternalServiceError
        └── ProviderError
            ├── NoSuchEntityError
            ├── LimitExceededError
            ├── ServiceFailureError
            └── InvalidCredentialsError

Example Usage:
    >>> from keysmith.exceptions import KeyRotationError
    >>> try:
    ...     rotator.rotate_connection_keys("PROJECT_EXT_1", "root")
    ... except KeyRotationError as e:
    ...     print(e.step, e.live_key_ids)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from keysmith.enums import RotationStep


class KeysmithError(Exception):
    """Base exception for all keysmith errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(KeysmithError):
    """Configuration-related errors.

    Examples:
        - Configuration file not found
        - Invalid YAML syntax
        - Invalid connection parameters
    """

    pass


class CredentialError(KeysmithError):
    """Credential-related errors.

    Attributes:
        message: Human-readable error description
        source: Where the credentials were expected to come from
            (e.g., "default-chain", "session")
        suggestion: Optional suggestion for resolution
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        self.source = source
        self.suggestion = suggestion

        full_message = message
        if source:
            full_message = f"{message} (source: {source})"
        if suggestion:
            full_message = f"{full_message}\nSuggestion: {suggestion}"

        super().__init__(full_message)
        # Preserve original message (super sets self.message to full_message)
        self.message = message


class CredentialResolutionError(CredentialError):
    """No usable credentials could be obtained while constructing a holder."""

    pass


class RefreshFailure(CredentialError):
    """A credentials refresh attempt failed.

    Never raised into callers of a holder: holders record it for
    observability and keep serving the previous snapshot.
    """

    pass


class ConnectionNotFoundError(KeysmithError):
    """A connection record does not exist in the store."""

    def __init__(self, connection_id: str, project_id: str | None = None) -> None:
        self.connection_id = connection_id
        self.project_id = project_id
        message = f"Connection not found: {connection_id}"
        if project_id:
            message = f"{message} (project: {project_id})"
        super().__init__(message)


class KeyRotationError(KeysmithError):
    """A key rotation attempt failed.

    Attributes:
        message: Human-readable error description
        step: Rotation step at which the failure happened
        connection_id: Connection that was being rotated
        record_changed: Whether the connection record was changed. ``None``
            means the persisted state is uncertain.
        live_key_ids: Access key ids that may still be valid at the provider
    """

    def __init__(
        self,
        message: str,
        step: RotationStep | None = None,
        connection_id: str | None = None,
        record_changed: bool | None = False,
        live_key_ids: Sequence[str] = (),
    ) -> None:
        self.step = step
        self.connection_id = connection_id
        self.record_changed = record_changed
        self.live_key_ids = tuple(live_key_ids)

        parts = []
        if step is not None:
            parts.append(f"step: {step.value}")
        if connection_id:
            parts.append(f"connection: {connection_id}")

        full_message = message if not parts else f"{message} ({', '.join(parts)})"
        if step is not None:
            full_message = f"{full_message}\n{self.state_summary}"

        super().__init__(full_message)
        self.message = message

    @property
    def state_summary(self) -> str:
        """Describe what was left behind for manual reconciliation."""
        if self.record_changed is None:
            record = "uncertain (check the persisted connection)"
        elif self.record_changed:
            record = "updated to the new key"
        else:
            record = "unchanged"

        keys = ", ".join(self.live_key_ids) if self.live_key_ids else "none recorded"
        return f"Connection record: {record}; keys possibly active at the provider: {keys}"


class RetryTimeoutError(KeysmithError):
    """The retry budget was exhausted.

    The most recent failure is available as ``last_error`` and as
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        attempts: int | None = None,
        last_error: BaseException | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.attempts = attempts
        self.last_error = last_error
        if timeout_seconds is not None and "timeout" not in message.lower():
            message = f"{message} (timeout: {timeout_seconds}s)"
        super().__init__(message)


class PollTimeoutError(KeysmithError):
    """A bounded poll never observed the expected condition.

    Attributes:
        last_value: Last value fetched, if any fetch succeeded
        last_error: Last exception raised by the fetch, if any
    """

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        last_value: Any = None,
        last_error: BaseException | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.last_value = last_value
        self.last_error = last_error
        super().__init__(message)


class ExternalServiceError(KeysmithError):
    """External service communication errors.

    Attributes:
        service: Name of the remote service (e.g., "sts", "iam")
        operation: Remote operation that failed
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.service = service
        self.operation = operation

        full_message = message
        if service and operation:
            full_message = f"{message} ({service}:{operation})"
        elif service:
            full_message = f"{message} ({service})"

        super().__init__(full_message)
        self.message = message


class ProviderError(ExternalServiceError):
    """The cloud provider rejected or failed a request.

    Attributes:
        code: Provider error code (e.g., "NoSuchEntity"), if one was returned
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        service: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.code = code
        super().__init__(message, service=service, operation=operation)


class NoSuchEntityError(ProviderError):
    """The referenced user or access key does not exist."""

    pass


class LimitExceededError(ProviderError):
    """A provider quota was hit (e.g., two access keys per user)."""

    pass


class ServiceFailureError(ProviderError):
    """The provider failed to process the request."""

    pass


class InvalidCredentialsError(ProviderError):
    """The provider does not accept the presented credentials."""

    pass
