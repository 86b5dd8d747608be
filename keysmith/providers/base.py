"""Protocols for the cloud provider services the engine depends on.

The engine never talks to the provider directly; it goes through these three
narrow services. ``keysmith.providers.aws`` implements them with boto3, and
tests substitute in-memory fakes.

All implementations must raise ``keysmith.exceptions.ProviderError`` (or a
subclass) for provider-side failures so callers can map them without knowing
the wire client.
"""

from typing import Protocol

from keysmith.models.domain import AccessKey, CallerIdentity, Credentials, CredentialsSnapshot


class TokenExchangeService(Protocol):
    """Exchanges long-lived credentials for session credentials."""

    def exchange_for_session_token(
        self,
        base_credentials: Credentials,
        duration_seconds: int,
    ) -> CredentialsSnapshot:
        """Issue session credentials.

        Args:
            base_credentials: Credentials to authenticate the exchange with
            duration_seconds: Requested session lifetime

        Returns:
            Snapshot with temporary credentials and their expiration

        Raises:
            ProviderError: If the provider refuses or fails the exchange
        """
        ...


class IdentityVerificationService(Protocol):
    """Checks whether credentials are accepted by the provider."""

    def get_caller_identity(self, credentials: Credentials) -> CallerIdentity:
        """Return the principal behind ``credentials``.

        Raises:
            ProviderError: If the credentials are not (yet) usable
        """
        ...


class IdentityManagementService(Protocol):
    """Access-key CRUD for the principal owning a set of credentials."""

    def get_user_name(self, credentials: Credentials) -> str:
        """Resolve the user name owning ``credentials``.

        Raises:
            InvalidCredentialsError: If the credentials are rejected
            ProviderError: For other provider failures
        """
        ...

    def create_access_key(self, credentials: Credentials, user_name: str) -> AccessKey:
        """Create a new access key for ``user_name``.

        Raises:
            NoSuchEntityError: The user does not exist
            LimitExceededError: The user already has the maximum number of keys
            ServiceFailureError: The provider failed
        """
        ...

    def delete_access_key(self, credentials: Credentials, user_name: str, access_key_id: str) -> None:
        """Delete ``access_key_id`` of ``user_name``.

        Raises:
            NoSuchEntityError: The key does not exist
            LimitExceededError: Request rate exceeded
            ServiceFailureError: The provider failed
        """
        ...
