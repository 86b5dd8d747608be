"""Build credentials holders from connection parameters.

A connection's ``awsCredentialsType`` selects the holder:

- ``AwsAccessKeys``: the stored key pair. Unless ``awsSessionCredentials`` is
  ``false``, it is exchanged for session credentials that a
  ``CredentialsRefresher`` keeps fresh.
- ``DefaultProvider``: the server's ambient credential chain. Only
  available when ``session.allow_default_provider`` is enabled.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

import structlog

from keysmith.config.parameters import (
    ACCESS_KEY_ID_PARAM,
    CREDENTIALS_TYPE_PARAM,
    REGION_NAME_PARAM,
    SECURE_SECRET_ACCESS_KEY_PARAM,
    SESSION_DURATION_PARAM,
    STS_ENDPOINT_DEFAULT,
    STS_ENDPOINT_PARAM,
    get_session_duration_minutes,
    is_valid_session_duration,
    mask_key,
    use_session_credentials,
)
from keysmith.config.settings import KeysmithSettings
from keysmith.credentials.default_chain_holder import DefaultChainCredentialsHolder
from keysmith.credentials.holder import CredentialsHolder
from keysmith.credentials.refresher import CredentialsRefresher
from keysmith.credentials.session_holder import SessionCredentialsHolder
from keysmith.credentials.static_holder import StaticCredentialsHolder
from keysmith.enums import CredentialsType
from keysmith.exceptions import ConfigurationError
from keysmith.providers.base import TokenExchangeService
from keysmith.providers.endpoints import is_valid_sts_endpoint
from keysmith.utils.scheduling import BackgroundScheduler, get_default_scheduler

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InvalidProperty:
    """A connection parameter that failed validation."""

    name: str
    reason: str


class CredentialsHolderFactory:
    """Create the right holder for a connection.

    Args:
        exchange_service_factory: Builds a token exchange service for the
            connection parameters (e.g., honouring its STS endpoint)
        settings: keysmith settings
        scheduler: Scheduler for refreshers. Defaults to the shared one.
    """

    def __init__(
        self,
        exchange_service_factory: Callable[[Mapping[str, str]], TokenExchangeService],
        settings: KeysmithSettings | None = None,
        scheduler: BackgroundScheduler | None = None,
    ) -> None:
        self.settings = settings or KeysmithSettings()
        self._exchange_service_factory = exchange_service_factory
        self._scheduler = scheduler

    def credentials_type(self, parameters: Mapping[str, str]) -> CredentialsType:
        raw = parameters.get(CREDENTIALS_TYPE_PARAM, CredentialsType.STATIC.value)
        try:
            credentials_type = CredentialsType(raw)
        except ValueError as e:
            raise ConfigurationError(f"Unknown credentials type: {raw}") from e

        if credentials_type is CredentialsType.DEFAULT_PROVIDER and not self.settings.session.allow_default_provider:
            raise ConfigurationError(
                "The default credential provider is disabled; enable session.allow_default_provider to use it"
            )
        return credentials_type

    def validate_properties(self, parameters: Mapping[str, str]) -> list[InvalidProperty]:
        """Return every problem with a connection's parameters."""
        try:
            credentials_type = self.credentials_type(parameters)
        except ConfigurationError as e:
            return [InvalidProperty(CREDENTIALS_TYPE_PARAM, e.message)]

        if credentials_type is CredentialsType.DEFAULT_PROVIDER:
            return []

        invalid = []
        if not parameters.get(ACCESS_KEY_ID_PARAM):
            invalid.append(InvalidProperty(ACCESS_KEY_ID_PARAM, "Please provide the access key ID"))
        if not parameters.get(SECURE_SECRET_ACCESS_KEY_PARAM):
            invalid.append(InvalidProperty(SECURE_SECRET_ACCESS_KEY_PARAM, "Please provide the secret access key"))
        if not (parameters.get(REGION_NAME_PARAM) or "").strip():
            invalid.append(
                InvalidProperty(REGION_NAME_PARAM, "Please choose the region where this connection will be used")
            )
        if not is_valid_session_duration(parameters.get(SESSION_DURATION_PARAM)):
            invalid.append(InvalidProperty(SESSION_DURATION_PARAM, "Session duration is not valid"))

        endpoint = parameters.get(STS_ENDPOINT_PARAM, STS_ENDPOINT_DEFAULT)
        if not is_valid_sts_endpoint(endpoint, self.settings.sts.whitelisted_endpoints):
            invalid.append(
                InvalidProperty(STS_ENDPOINT_PARAM, "The STS endpoint is not a valid URL, please, provide a valid URL")
            )
        return invalid

    def describe(self, parameters: Mapping[str, str]) -> str:
        if self.credentials_type(parameters) is CredentialsType.DEFAULT_PROVIDER:
            return "Default way of obtaining credentials"
        return "Static IAM Access Key"

    def request_credentials(
        self,
        parameters: Mapping[str, str],
        session_duration_minutes: int | None = None,
    ) -> CredentialsHolder:
        """Build a holder for a connection.

        Args:
            parameters: Connection parameters
            session_duration_minutes: Overrides the connection's session
                duration. When neither is set the configured default applies.

        Raises:
            ConfigurationError: Invalid parameters
            CredentialResolutionError: No usable credentials
        """
        if self.credentials_type(parameters) is CredentialsType.DEFAULT_PROVIDER:
            return DefaultChainCredentialsHolder()

        access_key_id = parameters.get(ACCESS_KEY_ID_PARAM)
        secret_access_key = parameters.get(SECURE_SECRET_ACCESS_KEY_PARAM)
        if not access_key_id or not secret_access_key:
            raise ConfigurationError("The connection has no access key ID or secret access key")

        static = StaticCredentialsHolder(access_key_id, secret_access_key)
        if not use_session_credentials(parameters):
            return static

        if session_duration_minutes is None:
            if SESSION_DURATION_PARAM not in parameters:
                log.warning(
                    "session_duration_defaulted",
                    access_key=mask_key(access_key_id),
                    minutes=self.settings.session.default_duration_minutes,
                )
            session_duration_minutes = get_session_duration_minutes(
                parameters, default=self.settings.session.default_duration_minutes
            )
        elif not is_valid_session_duration(session_duration_minutes):
            raise ConfigurationError(f"Session duration is not valid: {session_duration_minutes} minutes")

        log.debug(
            "using_session_credentials",
            access_key=mask_key(access_key_id),
            minutes=session_duration_minutes,
        )
        session = SessionCredentialsHolder(
            static,
            self._exchange_service_factory(parameters),
            duration_seconds=session_duration_minutes * 60,
        )
        return CredentialsRefresher(
            session,
            scheduler=self._scheduler or get_default_scheduler(self.settings.refresh.worker_threads),
            refresh_fraction=self.settings.refresh.refresh_fraction,
            min_interval_seconds=self.settings.refresh.min_interval_seconds,
        )
