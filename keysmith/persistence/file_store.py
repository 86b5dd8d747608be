"""
JSON file connection store with atomic writes.

Each project gets its own file ``{project_id}.json`` in a configurable
directory::

    {
        "project_id": "root",
        "updated_at": "2024-01-15T11:45:00+00:00",
        "connections": {
            "PROJECT_EXT_1": {
                "id": "PROJECT_EXT_1",
                "project_id": "root",
                "provider_type": "AWS",
                "parameters": {"awsAccessKeyId": "AKIA...", ...}
            }
        }
    }

Records are loaded into memory on first access. ``update`` changes only the
in-memory view; ``schedule_persist`` queues a write of the whole project on a
single background writer thread and returns immediately. ``read_persisted``
always reads the file, so it observes exactly what reached the disk.

Concurrency Model:
    Each project has its own lock guarding its in-memory records. Writes for
    all projects are serialized on one writer thread.

Warning:
    Secrets are stored as plain JSON. Protect the store directory with file
    system permissions.
"""

import copy
import json
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from keysmith.exceptions import ConfigurationError, ConnectionNotFoundError
from keysmith.models.domain import ConnectionRecord

log = structlog.get_logger(__name__)


class JsonFileConnectionStore:
    """``ConnectionStore`` persisted as one JSON file per project.

    Args:
        store_dir: Directory for project files. Created if missing.

    Example:
        >>> with JsonFileConnectionStore(".keysmith/connections") as store:
        ...     record = store.find("root", "PROJECT_EXT_1")
    """

    def __init__(self, store_dir: str | Path) -> None:
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self._records: dict[str, dict[str, ConnectionRecord]] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_lock = threading.Lock()
        self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="keysmith-store")
        self._last_write: Future[None] | None = None

    def _get_lock(self, project_id: str) -> threading.Lock:
        with self._locks_lock:
            if project_id not in self._locks:
                self._locks[project_id] = threading.Lock()
            return self._locks[project_id]

    def _get_path(self, project_id: str) -> Path:
        if not project_id or project_id in (".", "..") or any(sep in project_id for sep in ("/", "\\", "\0")):
            raise ConfigurationError(f"Invalid project id: {project_id!r}")
        return self.store_dir / f"{project_id}.json"

    def _read_file(self, project_id: str) -> dict[str, ConnectionRecord]:
        path = self._get_path(project_id)
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text())
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Corrupt connection file {path}: {e}") from e
        return {
            connection_id: ConnectionRecord.from_dict(raw)
            for connection_id, raw in data.get("connections", {}).items()
        }

    def _load_internal(self, project_id: str) -> dict[str, ConnectionRecord]:
        """Load a project's records. Caller MUST hold the project lock."""
        if project_id not in self._records:
            self._records[project_id] = self._read_file(project_id)
        return self._records[project_id]

    def add(self, record: ConnectionRecord) -> None:
        """Insert or replace a record and write the project synchronously."""
        lock = self._get_lock(record.project_id)
        with lock:
            self._load_internal(record.project_id)[record.id] = copy.deepcopy(record)
            snapshot = copy.deepcopy(self._records[record.project_id])
        self._write_project(record.project_id, snapshot)

    def list_connections(self, project_id: str) -> list[ConnectionRecord]:
        with self._get_lock(project_id):
            return [copy.deepcopy(r) for r in self._load_internal(project_id).values()]

    def find(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        with self._get_lock(project_id):
            record = self._load_internal(project_id).get(connection_id)
            return copy.deepcopy(record) if record is not None else None

    def update(self, project_id: str, connection_id: str, parameters: Mapping[str, str]) -> None:
        with self._get_lock(project_id):
            record = self._load_internal(project_id).get(connection_id)
            if record is None:
                raise ConnectionNotFoundError(connection_id, project_id)
            record.parameters = dict(parameters)
        log.debug("connection_updated", project_id=project_id, connection_id=connection_id)

    def schedule_persist(self, project_id: str, reason: str) -> None:
        with self._get_lock(project_id):
            snapshot = copy.deepcopy(self._load_internal(project_id))
        log.debug("connection_persist_scheduled", project_id=project_id, reason=reason)
        self._last_write = self._writer.submit(self._write_project_logged, project_id, snapshot)

    def read_persisted(self, project_id: str, connection_id: str) -> ConnectionRecord | None:
        return self._read_file(project_id).get(connection_id)

    def wait_for_writes(self, timeout: float | None = None) -> None:
        """Block until the most recently scheduled write has finished."""
        if self._last_write is not None:
            self._last_write.result(timeout=timeout)

    def close(self) -> None:
        """Finish pending writes and stop the writer thread."""
        self._writer.shutdown(wait=True)

    def __enter__(self) -> "JsonFileConnectionStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _write_project_logged(self, project_id: str, records: dict[str, ConnectionRecord]) -> None:
        try:
            self._write_project(project_id, records)
        except OSError as e:
            log.error("connection_persist_failed", project_id=project_id, error=str(e))
            raise

    def _write_project(self, project_id: str, records: dict[str, ConnectionRecord]) -> None:
        """Write a project file atomically using a temporary file.

        The temporary file is created next to the target so the final
        rename stays on one filesystem.
        """
        path = self._get_path(project_id)
        tmp_path = path.with_suffix(".tmp")
        payload = {
            "project_id": project_id,
            "updated_at": datetime.now(UTC).isoformat(),
            "connections": {connection_id: record.to_dict() for connection_id, record in records.items()},
        }
        tmp_path.write_text(json.dumps(payload, indent=2))
        tmp_path.replace(path)
        log.debug("connection_file_written", project_id=project_id, connections=len(records))
