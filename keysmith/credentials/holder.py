"""Abstract holder protocol for credential material."""

from datetime import datetime
from typing import Protocol

from keysmith.models.domain import Credentials


class CredentialsHolder(Protocol):
    """Protocol defining the capability set of every credentials holder.

    Holders are composed rather than subclassed: a session holder owns a base
    holder, a refresher owns a session holder. Any object with these methods
    can stand in for another.
    """

    def get_credentials(self) -> Credentials:
        """Return the current credentials.

        Never performs a network call after construction; returns cached
        state.
        """
        ...

    def refresh(self) -> None:
        """Best-effort renewal of the held credentials.

        Never raises. On failure the previous credentials stay in place and
        the failure is recorded for observability.
        """
        ...

    def get_session_expiration_date(self) -> datetime | None:
        """Return when the current credentials expire, or None if they do not."""
        ...

    def close(self) -> None:
        """Release background resources. Idempotent; a no-op for most holders."""
        ...
