"""Connection persistence for keysmith.

- base.ConnectionStore: the protocol the engine depends on
- memory.InMemoryConnectionStore: in-process store, also used in tests
- file_store.JsonFileConnectionStore: one JSON file per project
"""

from keysmith.persistence.base import ConnectionStore
from keysmith.persistence.file_store import JsonFileConnectionStore
from keysmith.persistence.memory import InMemoryConnectionStore

__all__ = ["ConnectionStore", "InMemoryConnectionStore", "JsonFileConnectionStore"]
