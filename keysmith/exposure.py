"""Expose a holder's credentials to build jobs.

Build agents receive credentials as environment variables and, for tools
that read the shared credentials file, as a base64-encoded profile.
"""

import base64
import configparser
import io
from collections.abc import Mapping

from keysmith.config.parameters import SECURE_SECRET_ACCESS_KEY_PARAM
from keysmith.credentials.holder import CredentialsHolder

ACCESS_KEY_ID_ENV = "AWS_ACCESS_KEY_ID"
SECRET_ACCESS_KEY_ENV = "AWS_SECRET_ACCESS_KEY"
SESSION_TOKEN_ENV = "AWS_SESSION_TOKEN"
DEFAULT_REGION_ENV = "AWS_DEFAULT_REGION"
CREDENTIAL_EXPIRATION_ENV = "AWS_CREDENTIAL_EXPIRATION"

PROFILE_NAME = "default"


def credentials_to_env_vars(holder: CredentialsHolder, region: str | None = None) -> dict[str, str]:
    """Environment variables for the holder's current credentials.

    ``AWS_SESSION_TOKEN`` is only set for temporary credentials and
    ``AWS_CREDENTIAL_EXPIRATION`` only when the holder reports an expiry.
    """
    credentials = holder.get_credentials()
    env = {
        ACCESS_KEY_ID_ENV: credentials.access_key_id,
        SECRET_ACCESS_KEY_ENV: credentials.secret_access_key,
    }
    if credentials.is_temporary:
        env[SESSION_TOKEN_ENV] = credentials.session_token
    if region:
        env[DEFAULT_REGION_ENV] = region

    expires_at = holder.get_session_expiration_date()
    if expires_at is not None:
        env[CREDENTIAL_EXPIRATION_ENV] = expires_at.isoformat()
    return env


def secure_parameter_names(env: Mapping[str, str]) -> list[str]:
    """Names among ``env`` whose values must be masked in build logs."""
    secure = {SECRET_ACCESS_KEY_ENV, SESSION_TOKEN_ENV, SECURE_SECRET_ACCESS_KEY_PARAM}
    return sorted(name for name in env if name in secure or name.startswith("secure:"))


def encode_credentials_profile(holder: CredentialsHolder, region: str | None = None) -> str:
    """Base64 of a shared-credentials file with a single ``[default]`` profile."""
    credentials = holder.get_credentials()
    profile = configparser.ConfigParser()
    profile[PROFILE_NAME] = {
        "aws_access_key_id": credentials.access_key_id,
        "aws_secret_access_key": credentials.secret_access_key,
    }
    if credentials.is_temporary:
        profile[PROFILE_NAME]["aws_session_token"] = credentials.session_token
    if region:
        profile[PROFILE_NAME]["region"] = region

    buffer = io.StringIO()
    profile.write(buffer)
    return base64.b64encode(buffer.getvalue().encode("utf-8")).decode("ascii")

