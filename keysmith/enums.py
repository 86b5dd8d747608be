"""Enumerations for keysmith credential and rotation types."""

from enum import Enum


class CredentialsType(str, Enum):
    """Ways a connection can obtain its credentials.

    - AwsAccessKeys: a static access key pair stored on the connection,
      optionally exchanged for session credentials
    - DefaultProvider: the ambient credential chain of the server process
    """

    STATIC = "AwsAccessKeys"
    DEFAULT_PROVIDER = "DefaultProvider"

    def __str__(self) -> str:
        return self.value


class RotationStep(str, Enum):
    """Steps of the key rotation protocol, in execution order.

    Each step names the state reached when it completes. Transitions are
    linear; a failure leaves the rotation at the step that failed.
    """

    LOCATE_CONNECTION = "locate-connection"
    CAPTURE_OLD_KEY = "capture-old-key"
    RESOLVE_USER = "resolve-user"
    CREATE_NEW_KEY = "create-new-key"
    VERIFY_NEW_KEY = "verify-new-key"
    UPDATE_RECORD = "update-record"
    CONFIRM_RECORD = "confirm-record"
    DELETE_OLD_KEY = "delete-old-key"

    def __str__(self) -> str:
        return self.value
