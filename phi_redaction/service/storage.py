# phi_redaction/service/storage.py

"""Key-value persistence backends for the model, training store and stats.

Values are JSON strings produced by the service; backends store them opaquely.
"""

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from phi_redaction.core.exceptions import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL DEFAULT (julianday('now'))
);
"""


class KeyValueStorage(ABC):
    """Abstract persistence collaborator."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the stored value, or None if the key is absent.

        Raises:
            PersistenceError: If the backend cannot be read.
        """

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stores value under key, replacing any previous value.

        Raises:
            PersistenceError: If the backend cannot be written.
        """

    @abstractmethod
    def delete(self, key: str) -> None:
        """Removes key; absent keys are ignored."""


class MemoryStorage(KeyValueStorage):
    """Process-local storage, lost on restart."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __repr__(self):
        return f"<MemoryStorage keys={sorted(self._data)}>"


class SqliteStorage(KeyValueStorage):
    """Durable storage in a single SQLite table."""

    def __init__(self, db_path: Union[str, Path] = "phi_redaction.db") -> None:
        self.db_path = Path(db_path).expanduser()
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._db.executescript(_SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Cannot open storage at {self.db_path}") from e

        logger.info("SQLite storage opened", extra={"db_path": str(self.db_path)})

    def get(self, key: str) -> Optional[str]:
        try:
            with self._lock:
                row = self._db.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read key '{key}'") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._db.execute(
                    "INSERT OR REPLACE INTO kv (key, value, updated_at) "
                    "VALUES (?, ?, julianday('now'))",
                    (key, value),
                )
                self._db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to write key '{key}'") from e

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self._db.execute("DELETE FROM kv WHERE key = ?", (key,))
                self._db.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete key '{key}'") from e

    def close(self) -> None:
        self._db.close()


def create_storage(backend: str, path: Optional[str] = None) -> KeyValueStorage:
    """Factory for the configured storage backend.

    Raises:
        ConfigurationError: If the backend name is unknown.
    """
    if backend == "memory":
        return MemoryStorage()
    if backend == "sqlite":
        return SqliteStorage(path or "phi_redaction.db")
    raise ConfigurationError(f"Unknown storage backend: {backend}")
