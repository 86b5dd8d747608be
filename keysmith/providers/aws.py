"""
boto3-backed implementations of the provider services.

Every call builds a short-lived client authenticated with exactly the
credentials it was given, so one service instance can act on behalf of many
connections. Provider failures are translated from botocore exceptions into
the ``ProviderError`` hierarchy in one place (``translate_client_error``).

Example:
    >>> verifier = StsIdentityVerifier.from_connection_parameters(record.parameters)
    >>> identity = verifier.get_caller_identity(credentials)
    >>> identity.arn
    'arn:aws:iam::123456789012:user/ci'
"""

from collections.abc import Callable, Mapping
from typing import Any

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from keysmith.config.parameters import STS_ENDPOINT_DEFAULT, STS_ENDPOINT_PARAM, mask_key
from keysmith.exceptions import (
    InvalidCredentialsError,
    LimitExceededError,
    NoSuchEntityError,
    ProviderError,
    ServiceFailureError,
)
from keysmith.models.domain import AccessKey, CallerIdentity, Credentials, CredentialsSnapshot

log = structlog.get_logger(__name__)

DEFAULT_STS_REGION = "us-east-1"
USER_AGENT_SUFFIX = "keysmith"

_ERROR_CODES: dict[str, type[ProviderError]] = {
    "NoSuchEntity": NoSuchEntityError,
    "LimitExceeded": LimitExceededError,
    "ServiceFailure": ServiceFailureError,
    "InvalidClientTokenId": InvalidCredentialsError,
    "SignatureDoesNotMatch": InvalidCredentialsError,
    "ExpiredToken": InvalidCredentialsError,
    "AccessDenied": InvalidCredentialsError,
}

ClientFactory = Callable[..., Any]


def client_config(service: str) -> Config:
    """Client configuration shared by every keysmith client."""
    return Config(
        user_agent_extra=f"{USER_AGENT_SUFFIX}-{service}",
        connect_timeout=10,
        read_timeout=30,
        retries={"max_attempts": 3, "mode": "standard"},
    )


def build_client(
    service: str,
    credentials: Credentials | None = None,
    endpoint_url: str | None = None,
    region_name: str | None = None,
) -> Any:
    """Build a boto3 client.

    Args:
        service: Service name ("sts", "iam")
        credentials: Explicit credentials. ``None`` uses the ambient chain.
        endpoint_url: Endpoint override
        region_name: Region to sign requests for
    """
    kwargs: dict[str, Any] = {"config": client_config(service)}
    if credentials is not None:
        kwargs["aws_access_key_id"] = credentials.access_key_id
        kwargs["aws_secret_access_key"] = credentials.secret_access_key
        if credentials.session_token is not None:
            kwargs["aws_session_token"] = credentials.session_token
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    if region_name:
        kwargs["region_name"] = region_name
    return boto3.client(service, **kwargs)


def translate_client_error(error: Exception, service: str, operation: str) -> ProviderError:
    """Map a botocore exception to the ``ProviderError`` hierarchy."""
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        code = details.get("Code")
        message = details.get("Message") or str(error)
        error_class = _ERROR_CODES.get(code or "", ProviderError)
        return error_class(message, code=code, service=service, operation=operation)
    return ProviderError(str(error), service=service, operation=operation)


def _sts_endpoint_from_parameters(parameters: Mapping[str, str]) -> str | None:
    endpoint = (parameters.get(STS_ENDPOINT_PARAM) or "").strip()
    if not endpoint or endpoint == STS_ENDPOINT_DEFAULT:
        return None
    return endpoint


class _StsService:
    def __init__(
        self,
        endpoint_url: str | None = None,
        region_name: str = DEFAULT_STS_REGION,
        client_factory: ClientFactory = build_client,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.region_name = region_name
        self._client_factory = client_factory

    @classmethod
    def from_connection_parameters(
        cls,
        parameters: Mapping[str, str],
        region_name: str = DEFAULT_STS_REGION,
        client_factory: ClientFactory = build_client,
    ) -> Any:
        """Configure the service for a connection's STS endpoint.

        The default global endpoint needs no override; any other endpoint is
        used as-is and signed for ``region_name``.
        """
        return cls(
            endpoint_url=_sts_endpoint_from_parameters(parameters),
            region_name=region_name,
            client_factory=client_factory,
        )

    def _client(self, credentials: Credentials) -> Any:
        return self._client_factory(
            "sts",
            credentials=credentials,
            endpoint_url=self.endpoint_url,
            region_name=self.region_name,
        )


class StsTokenExchangeService(_StsService):
    """Session credentials through ``sts:GetSessionToken``."""

    def exchange_for_session_token(self, base_credentials: Credentials, duration_seconds: int) -> CredentialsSnapshot:
        try:
            response = self._client(base_credentials).get_session_token(DurationSeconds=duration_seconds)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "sts", "GetSessionToken") from e

        issued = response["Credentials"]
        log.debug(
            "session_token_issued",
            base_key=mask_key(base_credentials.access_key_id),
            expires_at=str(issued.get("Expiration")),
        )
        return CredentialsSnapshot(
            credentials=Credentials(
                access_key_id=issued["AccessKeyId"],
                secret_access_key=issued["SecretAccessKey"],
                session_token=issued["SessionToken"],
            ),
            expires_at=issued.get("Expiration"),
        )


class StsIdentityVerifier(_StsService):
    """Credential verification through ``sts:GetCallerIdentity``."""

    def get_caller_identity(self, credentials: Credentials) -> CallerIdentity:
        try:
            response = self._client(credentials).get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "sts", "GetCallerIdentity") from e

        return CallerIdentity(
            user_id=response["UserId"],
            account=response.get("Account"),
            arn=response.get("Arn"),
        )


class IamKeyManager:
    """Access-key management through IAM."""

    def __init__(self, client_factory: ClientFactory = build_client) -> None:
        self._client_factory = client_factory

    def _client(self, credentials: Credentials) -> Any:
        return self._client_factory("iam", credentials=credentials)

    def get_user_name(self, credentials: Credentials) -> str:
        try:
            response = self._client(credentials).get_user()
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "iam", "GetUser") from e
        return response["User"]["UserName"]

    def create_access_key(self, credentials: Credentials, user_name: str) -> AccessKey:
        try:
            response = self._client(credentials).create_access_key(UserName=user_name)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "iam", "CreateAccessKey") from e

        key = response["AccessKey"]
        log.info("access_key_created", user=user_name, access_key=mask_key(key["AccessKeyId"]))
        return AccessKey(
            access_key_id=key["AccessKeyId"],
            secret_access_key=key["SecretAccessKey"],
            user_name=key.get("UserName", user_name),
        )

    def delete_access_key(self, credentials: Credentials, user_name: str, access_key_id: str) -> None:
        try:
            self._client(credentials).delete_access_key(UserName=user_name, AccessKeyId=access_key_id)
        except (ClientError, BotoCoreError) as e:
            raise translate_client_error(e, "iam", "DeleteAccessKey") from e
        log.info("access_key_deleted", user=user_name, access_key=mask_key(access_key_id))
