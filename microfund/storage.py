"""
Storage Backend Module

Key/value blob stores for the serialized record snapshot: in-memory (testing),
SQLite (persistence) and one-JSON-file-per-key (simple deployments). Backends
know nothing about records; they store the payload string under a key.
"""

from abc import ABC, abstractmethod
from typing import Optional, Union
from datetime import datetime, timezone
from pathlib import Path
import os
import re
import sqlite3
import threading

from .config import MicrofundConfig


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def read(self, key: str) -> Optional[str]:
        """Read the payload stored under key, or None"""
        pass

    @abstractmethod
    def write(self, key: str, payload: str) -> None:
        """Store payload under key, replacing any previous value"""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key; returns False if it did not exist"""
        pass

    def exists(self, key: str) -> bool:
        """Check if a payload is stored under key"""
        return self.read(key) is not None

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data = {}
        self._lock = threading.RLock()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            self._data[key] = payload

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence"""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = threading.RLock()

        with self._lock:
            # Enable WAL mode for better concurrent access
            if self.db_path != ":memory:":
                self._connection.execute("PRAGMA journal_mode = WAL")
                self._connection.execute("PRAGMA synchronous = NORMAL")
            self._connection.execute("""
                CREATE TABLE IF NOT EXISTS snapshots (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._connection.commit()

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            cursor = self._connection.execute(
                "SELECT payload FROM snapshots WHERE key = ?", (key,)
            )
            row = cursor.fetchone()
            return row['payload'] if row else None

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            now = datetime.now(timezone.utc).isoformat()
            self._connection.execute(
                "INSERT OR REPLACE INTO snapshots (key, payload, updated_at) VALUES (?, ?, ?)",
                (key, payload, now)
            )
            self._connection.commit()

    def delete(self, key: str) -> bool:
        with self._lock:
            cursor = self._connection.execute("DELETE FROM snapshots WHERE key = ?", (key,))
            self._connection.commit()
            return cursor.rowcount > 0

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


class JSONFileStorage(StorageInterface):
    """One file per key inside a data directory"""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.data_dir / f"{safe}.json"

    def read(self, key: str) -> Optional[str]:
        with self._lock:
            path = self._path(key)
            if not path.exists():
                return None
            return path.read_text(encoding="utf-8")

    def write(self, key: str, payload: str) -> None:
        with self._lock:
            path = self._path(key)
            # Readers never see a partially written file
            tmp_path = path.with_suffix(".json.tmp")
            tmp_path.write_text(payload, encoding="utf-8")
            os.replace(tmp_path, path)

    def delete(self, key: str) -> bool:
        with self._lock:
            path = self._path(key)
            if not path.exists():
                return False
            path.unlink()
            return True

    def close(self) -> None:
        pass


def create_storage(config: MicrofundConfig) -> StorageInterface:
    """Build the backend named by config.storage_backend"""
    backend = config.storage_backend.lower()
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(config.database_path)
    if backend == "file":
        return JSONFileStorage(config.data_dir)
    raise ValueError(f"Unknown storage backend: {config.storage_backend}")
