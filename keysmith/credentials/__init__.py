"""Credentials holders for keysmith.

Holders share one capability set (``CredentialsHolder``): read the current
credentials, refresh them, report their expiration.

- StaticCredentialsHolder: a fixed access key pair
- DefaultChainCredentialsHolder: the server's ambient credential chain
- SessionCredentialsHolder: session tokens exchanged from a base holder
- CredentialsRefresher: renews a session holder in the background
- CredentialsHolderFactory: picks and builds a holder from connection parameters
"""

from keysmith.credentials.builder import CredentialsHolderFactory, InvalidProperty
from keysmith.credentials.default_chain_holder import DefaultChainCredentialsHolder
from keysmith.credentials.exceptions import (
    CredentialError,
    CredentialResolutionError,
    RefreshFailure,
)
from keysmith.credentials.holder import CredentialsHolder
from keysmith.credentials.refresher import CredentialsRefresher, compute_refresh_interval
from keysmith.credentials.session_holder import SessionCredentialsHolder
from keysmith.credentials.static_holder import StaticCredentialsHolder

__all__ = [
    "CredentialError",
    "CredentialResolutionError",
    "CredentialsHolder",
    "CredentialsHolderFactory",
    "CredentialsRefresher",
    "DefaultChainCredentialsHolder",
    "InvalidProperty",
    "RefreshFailure",
    "SessionCredentialsHolder",
    "StaticCredentialsHolder",
    "compute_refresh_interval",
]
