"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import (
    DEFAULT_TOPIC_KEYWORDS,
    ChatStoreConfig,
    ContextConfig,
    DatabaseSettings,
    KeysConfig,
    StorageConfig,
)

CONFIG_FILENAMES = [
    "smartagri-chat.yaml",
    "smartagri-chat.yml",
    "smartagri-chat.json",
]

STORAGE_BACKENDS = ("memory", "filesystem", "sqlite")


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _parse_topics(raw: Any) -> dict[str, list[str]]:
    if not raw:
        return {tag: list(kws) for tag, kws in DEFAULT_TOPIC_KEYWORDS.items()}
    topics: dict[str, list[str]] = {}
    for tag, keywords in raw.items():
        # A bare list or None means the tag is its own keyword
        if isinstance(keywords, str):
            keywords = [keywords]
        topics[str(tag)] = [str(kw) for kw in (keywords or [tag])]
    return topics


def _build_config(raw: dict[str, Any]) -> ChatStoreConfig:
    """Build a ChatStoreConfig from a raw dict."""
    settings_raw = raw.get("settings", {})
    settings = DatabaseSettings(
        max_sessions=settings_raw.get("max_sessions", 50),
        compression_enabled=settings_raw.get("compression_enabled", True),
        max_context_messages=settings_raw.get("max_context_messages", 20),
        auto_cleanup_days=settings_raw.get("auto_cleanup_days", 30),
    )

    storage_raw = raw.get("storage", {})
    storage_root = raw.get("storage_root", ".smartagri")
    storage = StorageConfig(
        backend=storage_raw.get("backend", "memory"),
        root=storage_raw.get("root", storage_root + "/store"),
        sqlite_path=storage_raw.get("sqlite_path", storage_root + "/store.db"),
        quota_bytes=storage_raw.get("quota_bytes", 5 * 1024 * 1024),
    )

    keys_raw = raw.get("keys", {})
    keys = KeysConfig(
        database=keys_raw.get("database", "smartagri-chat-database"),
        persistent_context=keys_raw.get("persistent_context", "smartagri-persistent-context"),
        user_preferences=keys_raw.get("user_preferences", "smartagri-user-preferences"),
    )

    context_raw = raw.get("context", {})
    context = ContextConfig(
        fallback_messages=context_raw.get("fallback_messages", 10),
        recent_conversations=context_raw.get("recent_conversations", 3),
        query_chars=context_raw.get("query_chars", 100),
        summary_chars=context_raw.get("summary_chars", 150),
    )

    return ChatStoreConfig(
        settings=settings,
        storage=storage,
        keys=keys,
        context=context,
        topics=_parse_topics(raw.get("topics")),
    )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_settings(settings: DatabaseSettings) -> list[str]:
    """Validate database settings. Returns list of error strings (empty = valid)."""
    errors: list[str] = []
    if not isinstance(settings.compression_enabled, bool):
        errors.append("compression_enabled must be a boolean")
    for name, minimum in (("max_sessions", 1), ("max_context_messages", 0), ("auto_cleanup_days", 1)):
        value = getattr(settings, name)
        if not _is_int(value):
            errors.append(f"{name} must be an integer, got {type(value).__name__}")
        elif value < minimum:
            errors.append(f"{name} must be >= {minimum}")
    return errors


def validate_config(config: ChatStoreConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors = validate_settings(config.settings)

    if config.storage.backend not in STORAGE_BACKENDS:
        errors.append(
            f"Unknown storage backend '{config.storage.backend}' "
            f"(expected one of {', '.join(STORAGE_BACKENDS)})"
        )
    quota = config.storage.quota_bytes
    if quota is not None and (not _is_int(quota) or quota <= 0):
        errors.append("quota_bytes must be a positive integer or null")

    keys = [config.keys.database, config.keys.persistent_context, config.keys.user_preferences]
    if len(set(keys)) != len(keys):
        errors.append("Storage keys must be distinct")

    for name in ("fallback_messages", "recent_conversations", "query_chars", "summary_chars"):
        value = getattr(config.context, name)
        if not _is_int(value):
            errors.append(f"{name} must be an integer, got {type(value).__name__}")
        elif value < 0:
            errors.append(f"{name} must be >= 0")

    for tag, keywords in config.topics.items():
        if not any(kw.strip() for kw in keywords):
            errors.append(f"Topic '{tag}' has no keywords")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> ChatStoreConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
