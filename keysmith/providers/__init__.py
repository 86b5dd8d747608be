"""Cloud provider services used by the credential lifecycle engine.

The protocols in ``base`` are what the engine depends on; ``aws`` provides
boto3-backed implementations and ``endpoints`` the STS endpoint policy.
"""

from keysmith.providers.aws import (
    IamKeyManager,
    StsIdentityVerifier,
    StsTokenExchangeService,
    build_client,
    translate_client_error,
)
from keysmith.providers.base import (
    IdentityManagementService,
    IdentityVerificationService,
    TokenExchangeService,
)

__all__ = [
    "IamKeyManager",
    "IdentityManagementService",
    "IdentityVerificationService",
    "StsIdentityVerifier",
    "StsTokenExchangeService",
    "TokenExchangeService",
    "build_client",
    "translate_client_error",
]
