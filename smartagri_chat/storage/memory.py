"""InMemoryStorage: dict-backed substrate for tests and ephemeral use."""

from __future__ import annotations

from ..core.storage import KeyValueStorage, entry_size


class InMemoryStorage(KeyValueStorage):
    """Volatile key-value store. Durable only for the lifetime of the object."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}

    def load(self, key: str) -> str | None:
        return self._data.get(key)

    def save(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)

    def usage(self) -> int:
        return sum(entry_size(k, v) for k, v in self._data.items())
