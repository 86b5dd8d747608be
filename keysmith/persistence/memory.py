"""In-memory connection store.

Keeps two views per project: the live records returned by ``find`` and the
"durable" copies returned by ``read_persisted``. ``schedule_persist`` copies
the live view over the durable one, either immediately or, with
``persist_immediately=False``, only when ``flush`` is called. The latter
lets callers exercise the window in which an update is visible but not yet
durable.
"""

import copy
import threading
from collections.abc import Mapping

import structlog

from keysmith.exceptions import ConnectionNotFoundError
from keysmith.models.domain import ConnectionRecord

log = structlog.get_logger(__name__)


class InMemoryConnectionStore:
    """Thread-safe in-memory ``ConnectionStore``."""

    def __init__(self, persist_immediately: bool = True) -> None:
        self.persist_immediately = persist_immediately
        self._live: dict[str, dict[str, ConnectionRecord]] = {}
        self._durable: dict[str, dict[str, ConnectionRecord]] = {}
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self.persist_requests: list[tuple[str, str]] = []

    def add(self, record: ConnectionRecord, persisted: bool = True) -> None:
        """Insert or replace a record."""
        with self._lock:
            self._live.setdefault(record.project_id, {})[record.id] = copy.deepcopy(record)
            if persisted:
                self._durable.setdefault(record.project_id, {})[record.id] = copy.deepcopy(record)

    def remove(self, project_id: str, connection_id: str) -> bool:
        """Delete a record from both views."""
        with self._lock:
            removed = self._live.get(project_id, {}).pop(connection_id, None) is not None
            self._durable.get(project_id, {}).pop(connection_id, None)
            return removed

    def find(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        with self._lock:
            record = self._live.get(project_id, {}).get(connection_id)
            return copy.deepcopy(record) if record is not None else None

    def update(self, project_id: str, connection_id: str, parameters: Mapping[str, str]) -> None:
        with self._lock:
            record = self._live.get(project_id, {}).get(connection_id)
            if record is None:
                raise ConnectionNotFoundError(connection_id, project_id)
            record.parameters = dict(parameters)
        log.debug("connection_updated", project_id=project_id, connection_id=connection_id)

    def schedule_persist(self, project_id: str, reason: str) -> None:
        with self._lock:
            self.persist_requests.append((project_id, reason))
            self._pending.add(project_id)
        if self.persist_immediately:
            self.flush(project_id)

    def flush(self, project_id: str | None = None) -> None:
        """Make pending changes durable, for one project or all of them."""
        with self._lock:
            projects = [project_id] if project_id is not None else list(self._pending)
            for pid in projects:
                self._durable[pid] = copy.deepcopy(self._live.get(pid, {}))
                self._pending.discard(pid)

    def read_persisted(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        with self._lock:
            record = self._durable.get(project_id, {}).get(connection_id)
            return copy.deepcopy(record) if record is not None else None
