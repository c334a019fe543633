"""
Test suite for storage backends

Tests the key/value snapshot interface against every backend.
"""

import pytest
import tempfile
from pathlib import Path

from microfund.config import MicrofundConfig
from microfund.storage import (
    InMemoryStorage, JSONFileStorage, SQLiteStorage, StorageInterface, create_storage
)


PAYLOAD = '{"schema_version": 2, "branches": []}'


def exercise_backend(storage: StorageInterface):
    """Shared read/write/delete checks"""
    assert storage.read("MF_PRO_DB_v4") is None
    assert not storage.exists("MF_PRO_DB_v4")

    storage.write("MF_PRO_DB_v4", PAYLOAD)
    assert storage.read("MF_PRO_DB_v4") == PAYLOAD
    assert storage.exists("MF_PRO_DB_v4")

    storage.write("MF_PRO_DB_v4", "replaced")
    assert storage.read("MF_PRO_DB_v4") == "replaced"

    storage.write("MF_PRO_DB_v4.discarded", "old")
    assert storage.read("MF_PRO_DB_v4.discarded") == "old"

    assert storage.delete("MF_PRO_DB_v4")
    assert not storage.delete("MF_PRO_DB_v4")
    assert storage.read("MF_PRO_DB_v4") is None
    assert storage.read("MF_PRO_DB_v4.discarded") == "old"


class TestStorageBackends:
    """Test each storage backend"""

    def test_in_memory_storage(self):
        storage = InMemoryStorage()
        exercise_backend(storage)
        storage.close()

    def test_sqlite_storage_in_memory(self):
        storage = SQLiteStorage()
        exercise_backend(storage)
        storage.close()

    def test_sqlite_storage_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            db_path = Path(temp_dir) / "test.db"
            storage = SQLiteStorage(db_path)
            exercise_backend(storage)
            storage.write("key", PAYLOAD)
            storage.close()

            # Data survives reopening
            reopened = SQLiteStorage(db_path)
            assert reopened.read("key") == PAYLOAD
            reopened.close()

    def test_json_file_storage(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONFileStorage(Path(temp_dir) / "data")
            exercise_backend(storage)

            storage.write("snapshot", PAYLOAD)
            assert (Path(temp_dir) / "data" / "snapshot.json").read_text(encoding="utf-8") == PAYLOAD
            assert list((Path(temp_dir) / "data").glob("*.tmp")) == []

    def test_json_file_storage_unsafe_key(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = JSONFileStorage(temp_dir)
            storage.write("../escape", PAYLOAD)

            assert storage.read("../escape") == PAYLOAD
            assert not (Path(temp_dir).parent / "escape.json").exists()


class TestCreateStorage:
    """Test backend selection from configuration"""

    def test_memory(self):
        assert isinstance(create_storage(MicrofundConfig(storage_backend="memory")), InMemoryStorage)

    def test_sqlite(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config = MicrofundConfig(storage_backend="sqlite", database_path=str(Path(temp_dir) / "m.db"))
            storage = create_storage(config)
            assert isinstance(storage, SQLiteStorage)
            storage.close()

    def test_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config = MicrofundConfig(storage_backend="file", data_dir=temp_dir)
            assert isinstance(create_storage(config), JSONFileStorage)

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_storage(MicrofundConfig(storage_backend="postgres"))
