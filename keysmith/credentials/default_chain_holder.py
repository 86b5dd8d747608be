"""Holder backed by the ambient credential chain of the server process.

boto3 resolves the chain (environment variables, shared credentials file,
container or instance metadata, ...) once, at construction. Expiry of the
ambient source is managed by that source and is not tracked here.
"""

from datetime import datetime
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError

from keysmith.config.parameters import mask_key
from keysmith.exceptions import CredentialResolutionError
from keysmith.models.domain import Credentials

log = structlog.get_logger(__name__)


class DefaultChainCredentialsHolder:
    """Credentials discovered through boto3's default provider chain.

    Args:
        session: boto3 session to resolve from. A fresh ``boto3.Session()``
            is used when omitted.

    Raises:
        CredentialResolutionError: If no ambient credentials are discoverable
    """

    def __init__(self, session: Any = None) -> None:
        session = session if session is not None else boto3.Session()
        try:
            resolved = session.get_credentials()
            frozen = resolved.get_frozen_credentials() if resolved is not None else None
        except BotoCoreError as e:
            raise CredentialResolutionError(
                f"Failed to use the default credential provider chain: {e}",
                source="default-chain",
            ) from e

        if frozen is None:
            raise CredentialResolutionError(
                "No credentials found in the default credential provider chain",
                source="default-chain",
                suggestion="Configure AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY, a shared "
                "credentials profile, or an instance role for the server process",
            )

        self._credentials = Credentials(
            access_key_id=frozen.access_key,
            secret_access_key=frozen.secret_key,
            session_token=frozen.token,
        )
        log.debug(
            "default_chain_credentials_resolved",
            access_key=mask_key(frozen.access_key),
            method=getattr(resolved, "method", None),
        )

    def get_credentials(self) -> Credentials:
        return self._credentials

    def refresh(self) -> None:
        """The ambient source manages its own renewal."""

    def get_session_expiration_date(self) -> datetime | None:
        return None

    def close(self) -> None:
        """Nothing to release."""
