"""Shared helpers for storage backends."""

from __future__ import annotations

from urllib.parse import quote, unquote

FILE_SUFFIX = ".kv"


def key_to_filename(key: str) -> str:
    return quote(key, safe="-_.") + FILE_SUFFIX


def filename_to_key(name: str) -> str:
    return unquote(name[: -len(FILE_SUFFIX)])
