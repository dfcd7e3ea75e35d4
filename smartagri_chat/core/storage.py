"""KeyValueStorage abstract base class: the store's only durability substrate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import QuotaExceededError


def entry_size(key: str, value: str) -> int:
    """Bytes a key/value pair counts against the quota."""
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))


class KeyValueStorage(ABC):
    """Pluggable string key-value store with an optional byte quota.

    Contents are opaque. A successful ``save`` is visible to every later
    ``load``, in this process or the next one.
    """

    quota_bytes: int | None = None

    @abstractmethod
    def load(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def save(self, key: str, value: str) -> None:
        """Store value under key. Raises QuotaExceededError on overflow."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete key. Missing keys are ignored."""

    @abstractmethod
    def keys(self) -> list[str]:
        """List stored keys, sorted."""

    def usage(self) -> int:
        """Total bytes counted against the quota."""
        total = 0
        for key in self.keys():
            value = self.load(key)
            if value is not None:
                total += entry_size(key, value)
        return total

    def _check_quota(self, key: str, value: str) -> None:
        """Raise QuotaExceededError if writing key would overflow the quota."""
        if self.quota_bytes is None:
            return
        current = self.load(key)
        used = self.usage() - (entry_size(key, current) if current is not None else 0)
        needed = used + entry_size(key, value)
        if needed > self.quota_bytes:
            raise QuotaExceededError(key, needed, self.quota_bytes)
