"""FilesystemStorage: one file per key under a root directory."""

from __future__ import annotations

import os
from pathlib import Path

from ..core.storage import KeyValueStorage
from ..types import StorageError
from .helpers import FILE_SUFFIX, filename_to_key, key_to_filename


class FilesystemStorage(KeyValueStorage):
    """Store each value as a UTF-8 file named after its (quoted) key."""

    def __init__(self, root: str | Path, quota_bytes: int | None = None) -> None:
        self.root = Path(root)
        self.quota_bytes = quota_bytes
        self._ensure_root()

    def _ensure_root(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / key_to_filename(key)

    def load(self, key: str) -> str | None:
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read '{key}': {e}", key=key) from e

    def save(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Failed to write '{key}': {e}", key=key) from e

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove '{key}': {e}", key=key) from e

    def keys(self) -> list[str]:
        return sorted(
            filename_to_key(p.name)
            for p in self.root.glob(f"*{FILE_SUFFIX}")
            if p.is_file()
        )
