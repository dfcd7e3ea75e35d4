"""Shared fixtures for smartagri-chat tests."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from smartagri_chat.config import load_config
from smartagri_chat.database import ChatDatabase
from smartagri_chat.storage.memory import InMemoryStorage

# 2026-01-15T10:00:00Z
START_MS = 1_768_471_200_000
DAY_MS = 24 * 60 * 60 * 1000


class FakeClock:
    """Deterministic epoch-ms clock."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def make_db(storage, clock):
    """Factory for ChatDatabase instances sharing one storage and clock."""

    def _make(config_dict: dict | None = None, **kwargs) -> ChatDatabase:
        kwargs.setdefault("storage", storage)
        kwargs.setdefault("clock", clock)
        return ChatDatabase(config=load_config(config_dict=config_dict or {}), **kwargs)

    return _make


@pytest.fixture
def db(make_db) -> ChatDatabase:
    return make_db()


@pytest.fixture
def tmp_store_dir():
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def tmp_sqlite_db(tmp_store_dir):
    return tmp_store_dir / "test_store.db"
