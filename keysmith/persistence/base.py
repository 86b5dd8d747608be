"""Protocol for the connection store.

The store owns connection records. The engine only reads records, writes a
new parameter map, asks for the change to be made durable, and reads back
what was made durable.
"""

from collections.abc import Mapping
from typing import Protocol

from keysmith.models.domain import ConnectionRecord


class ConnectionStore(Protocol):
    """Storage of connection records, scoped by project."""

    def find(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        """Return the current (possibly not yet durable) record, or None."""
        ...

    def update(self, project_id: str, connection_id: str, parameters: Mapping[str, str]) -> None:
        """Replace the parameters of an existing record.

        Raises:
            ConnectionNotFoundError: If the record does not exist
        """
        ...

    def schedule_persist(self, project_id: str, reason: str) -> None:
        """Request that the project's records be made durable. Fire-and-forget."""
        ...

    def read_persisted(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        """Return the record as last made durable, or None."""
        ...
