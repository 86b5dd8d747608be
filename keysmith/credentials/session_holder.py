"""Session-wrapping holder: exchanges base credentials for session tokens."""

from datetime import datetime

import structlog

from keysmith.config.parameters import mask_key
from keysmith.credentials.holder import CredentialsHolder
from keysmith.exceptions import CredentialResolutionError, ProviderError, RefreshFailure
from keysmith.models.domain import Credentials, CredentialsSnapshot
from keysmith.providers.base import TokenExchangeService

log = structlog.get_logger(__name__)


class SessionCredentialsHolder:
    """Decorates a base holder with provider-issued session credentials.

    Construction performs one token exchange against the base holder's
    credentials. ``refresh`` repeats the exchange and replaces the cached
    snapshot with a single reference assignment, so concurrent readers see
    either the old or the new snapshot in full.

    A failed refresh keeps the previous snapshot (which may be close to
    expiry) and records the failure in ``last_refresh_failure``; it is logged,
    never raised.

    Args:
        base_holder: Holder providing the long-lived credentials
        exchange_service: Token exchange service
        duration_seconds: Requested session lifetime

    Raises:
        CredentialResolutionError: If the initial exchange fails
    """

    def __init__(
        self,
        base_holder: CredentialsHolder,
        exchange_service: TokenExchangeService,
        duration_seconds: int,
    ) -> None:
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")
        self.base_holder = base_holder
        self.duration_seconds = duration_seconds
        self._exchange_service = exchange_service
        self.last_refresh_failure: RefreshFailure | None = None
        self.refresh_count = 0

        try:
            self._snapshot = self._exchange()
        except ProviderError as e:
            raise CredentialResolutionError(
                f"Failed to obtain session credentials: {e}",
                source="session",
            ) from e

    @property
    def snapshot(self) -> CredentialsSnapshot:
        return self._snapshot

    def _exchange(self) -> CredentialsSnapshot:
        return self._exchange_service.exchange_for_session_token(
            self.base_holder.get_credentials(),
            self.duration_seconds,
        )

    def get_credentials(self) -> Credentials:
        return self._snapshot.credentials

    def get_session_expiration_date(self) -> datetime | None:
        return self._snapshot.expires_at

    def close(self) -> None:
        """Scheduling is owned by the refresher wrapping this holder."""

    def refresh(self) -> None:
        log.debug("credentials_refresh_started", session_key=mask_key(self._snapshot.credentials.access_key_id))
        try:
            snapshot = self._exchange()
        except Exception as e:
            self.last_refresh_failure = RefreshFailure(f"Failed to refresh session credentials: {e}", source="session")
            self.last_refresh_failure.__cause__ = e
            log.warning(
                "credentials_refresh_failed",
                error=str(e),
                expires_at=str(self._snapshot.expires_at),
            )
            return

        self._snapshot = snapshot
        self.refresh_count += 1
        self.last_refresh_failure = None
        log.debug("credentials_refreshed", expires_at=str(snapshot.expires_at))
