"""Tests for the key-value storage backends."""

import pytest

from smartagri_chat.core.session_store import SessionStore
from smartagri_chat.core.storage import entry_size
from smartagri_chat.storage import FilesystemStorage, InMemoryStorage, SQLiteStorage
from smartagri_chat.types import PersistenceWarning, QuotaExceededError, StorageError


@pytest.fixture(params=["memory", "filesystem", "sqlite"])
def backend(request, tmp_store_dir):
    if request.param == "memory":
        return InMemoryStorage()
    if request.param == "filesystem":
        return FilesystemStorage(tmp_store_dir / "kv")
    return SQLiteStorage(tmp_store_dir / "kv.db")


def test_save_and_load(backend):
    backend.save("smartagri-chat-database", '{"a": 1}')
    assert backend.load("smartagri-chat-database") == '{"a": 1}'


def test_load_missing_returns_none(backend):
    assert backend.load("nope") is None


def test_overwrite(backend):
    backend.save("k", "one")
    backend.save("k", "two")
    assert backend.load("k") == "two"
    assert backend.keys() == ["k"]


def test_remove(backend):
    backend.save("k", "v")
    backend.remove("k")
    assert backend.load("k") is None
    backend.remove("k")  # missing key is fine


def test_keys_sorted(backend):
    backend.save("b", "2")
    backend.save("a/with:odd chars", "1")
    assert backend.keys() == ["a/with:odd chars", "b"]


def test_usage_counts_keys_and_values(backend):
    backend.save("k", "héllo")
    assert backend.usage() == entry_size("k", "héllo") == 1 + 6


def test_quota_exceeded(backend):
    backend.quota_bytes = 20
    backend.save("k", "x" * 10)
    with pytest.raises(QuotaExceededError) as exc_info:
        backend.save("other", "y" * 15)
    assert exc_info.value.key == "other"
    assert exc_info.value.quota == 20
    assert backend.load("other") is None


def test_quota_replacing_a_key_counts_only_new_value(backend):
    backend.quota_bytes = 20
    backend.save("k", "x" * 15)
    backend.save("k", "y" * 19)
    assert backend.load("k") == "y" * 19


def test_quota_error_is_storage_error():
    storage = InMemoryStorage(quota_bytes=1)
    with pytest.raises(StorageError):
        storage.save("key", "value")


def test_filesystem_survives_reopen(tmp_store_dir):
    FilesystemStorage(tmp_store_dir).save("smartagri-chat-database", "{}")
    assert FilesystemStorage(tmp_store_dir).load("smartagri-chat-database") == "{}"


def test_sqlite_survives_reopen(tmp_sqlite_db):
    first = SQLiteStorage(tmp_sqlite_db)
    first.save("k", "persisted")
    first.close()
    assert SQLiteStorage(tmp_sqlite_db).load("k") == "persisted"


@pytest.mark.parametrize(
    "operation",
    [
        lambda s: s.load("k"),
        lambda s: s.save("k", "v"),
        lambda s: s.remove("k"),
        lambda s: s.keys(),
        lambda s: s.usage(),
    ],
    ids=["load", "save", "remove", "keys", "usage"],
)
def test_sqlite_errors_are_storage_errors(tmp_sqlite_db, operation):
    storage = SQLiteStorage(tmp_sqlite_db)
    storage.close()
    with pytest.raises(StorageError):
        operation(storage)


def test_unreadable_sqlite_store_loads_fresh_database(tmp_sqlite_db):
    storage = SQLiteStorage(tmp_sqlite_db)
    storage.save("smartagri-chat-database", '{"version": "1.0.0", "sessions": {}}')
    storage.close()
    with pytest.warns(PersistenceWarning):
        store = SessionStore(storage, "smartagri-chat-database")
    assert store.db.sessions == {}
    assert store.last_save_ok is False
