"""Credential-related exceptions.

This module re-exports credential exceptions from keysmith.exceptions so
holder code can import them next to the holders. New code may import
directly from keysmith.exceptions.
"""

from keysmith.exceptions import (
    CredentialError,
    CredentialResolutionError,
    RefreshFailure,
)

__all__ = [
    "CredentialError",
    "CredentialResolutionError",
    "RefreshFailure",
]
