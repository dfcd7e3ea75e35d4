"""On-disk record shapes and versioning.

The database is one JSON blob with camelCase keys, the same shape the browser
client wrote to localStorage, so existing backups import unchanged.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from ..config import validate_settings
from ..types import (
    ConversationTurn,
    Database,
    DatabaseSettings,
    PersistentContext,
    RecentConversation,
    Session,
    TurnMetadata,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"
PERSISTENT_CONTEXT_VERSION = "1.0"


class SchemaError(ValueError):
    """Stored or imported data does not have the expected shape."""


def _require(raw: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if key not in raw:
        raise SchemaError(f"missing field '{key}'")
    value = raw[key]
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise SchemaError(f"field '{key}' has wrong type bool")
    if not isinstance(value, kind):
        raise SchemaError(f"field '{key}' has wrong type {type(value).__name__}")
    return value


def _optional(raw: dict, key: str, kind: type | tuple[type, ...]) -> Any:
    if raw.get(key) is None:
        return None
    return _require(raw, key, kind)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

def create_new_database(settings: DatabaseSettings | None = None) -> Database:
    """A fresh, empty database at the current schema version."""
    return Database(
        version=SCHEMA_VERSION,
        sessions={},
        current_session=None,
        settings=replace(settings) if settings else DatabaseSettings(),
    )


def turn_to_dict(turn: ConversationTurn) -> dict:
    data: dict[str, Any] = {
        "id": turn.id,
        "timestamp": turn.timestamp,
        "userMessage": turn.user_message,
        "aiResponse": turn.ai_response,
    }
    if turn.image_data is not None:
        data["imageData"] = turn.image_data
    if turn.metadata is not None:
        meta: dict[str, Any] = {}
        if turn.metadata.tokens is not None:
            meta["tokens"] = turn.metadata.tokens
        if turn.metadata.response_time is not None:
            meta["responseTime"] = turn.metadata.response_time
        if turn.metadata.model is not None:
            meta["model"] = turn.metadata.model
        data["metadata"] = meta
    return data


def turn_from_dict(raw: Any) -> ConversationTurn:
    if not isinstance(raw, dict):
        raise SchemaError("conversation turn must be an object")
    metadata = None
    meta_raw = raw.get("metadata")
    if meta_raw is not None:
        if not isinstance(meta_raw, dict):
            raise SchemaError("turn metadata must be an object")
        metadata = TurnMetadata(
            tokens=_optional(meta_raw, "tokens", int),
            response_time=_optional(meta_raw, "responseTime", (int, float)),
            model=_optional(meta_raw, "model", str),
        )
    return ConversationTurn(
        id=_require(raw, "id", str),
        timestamp=_require(raw, "timestamp", int),
        user_message=_require(raw, "userMessage", str),
        ai_response=_require(raw, "aiResponse", str),
        image_data=_optional(raw, "imageData", str),
        metadata=metadata,
    )


def session_to_dict(session: Session) -> dict:
    return {
        "sessionId": session.session_id,
        "startTime": session.start_time,
        "lastActivity": session.last_activity,
        "messageCount": session.message_count,
        "compressed": session.compressed,
        "data": [turn_to_dict(t) for t in session.turns],
    }


def session_from_dict(raw: Any) -> Session:
    if not isinstance(raw, dict):
        raise SchemaError("session must be an object")
    turns_raw = _require(raw, "data", list)
    turns = [turn_from_dict(t) for t in turns_raw]
    session = Session(
        session_id=_require(raw, "sessionId", str),
        start_time=_require(raw, "startTime", int),
        last_activity=_require(raw, "lastActivity", int),
        message_count=_require(raw, "messageCount", int),
        compressed=bool(raw.get("compressed", False)),
        turns=turns,
    )
    if session.message_count != 2 * len(turns):
        logger.warning(
            "Session %s had messageCount %d for %d turns; repairing",
            session.session_id, session.message_count, len(turns),
        )
        session.message_count = 2 * len(turns)
    return session


def settings_to_dict(settings: DatabaseSettings) -> dict:
    return {
        "maxSessions": settings.max_sessions,
        "compressionEnabled": settings.compression_enabled,
        "maxContextMessages": settings.max_context_messages,
        "autoCleanupDays": settings.auto_cleanup_days,
    }


def settings_from_dict(raw: Any, defaults: DatabaseSettings | None = None) -> DatabaseSettings:
    if not isinstance(raw, dict):
        raise SchemaError("settings must be an object")
    base = defaults or DatabaseSettings()

    def pick(key: str, kind: type, default: Any) -> Any:
        return _require(raw, key, kind) if key in raw else default

    settings = DatabaseSettings(
        max_sessions=pick("maxSessions", int, base.max_sessions),
        compression_enabled=pick("compressionEnabled", bool, base.compression_enabled),
        max_context_messages=pick("maxContextMessages", int, base.max_context_messages),
        auto_cleanup_days=pick("autoCleanupDays", int, base.auto_cleanup_days),
    )
    errors = validate_settings(settings)
    if errors:
        raise SchemaError("invalid settings: " + "; ".join(errors))
    return settings


def database_to_dict(db: Database) -> dict:
    return {
        "version": db.version,
        "sessions": {sid: session_to_dict(s) for sid, s in db.sessions.items()},
        "currentSession": db.current_session,
        "settings": settings_to_dict(db.settings),
    }


def database_from_dict(raw: Any, defaults: DatabaseSettings | None = None) -> Database:
    """Parse a database record. Raises SchemaError on any shape problem."""
    if not isinstance(raw, dict):
        raise SchemaError("database must be an object")
    sessions_raw = _require(raw, "sessions", dict)
    sessions: dict[str, Session] = {}
    for sid, session_raw in sessions_raw.items():
        session = session_from_dict(session_raw)
        if session.session_id != sid:
            raise SchemaError(f"session key '{sid}' does not match sessionId '{session.session_id}'")
        sessions[sid] = session
    settings_raw = raw.get("settings")
    settings = (
        settings_from_dict(settings_raw, defaults)
        if settings_raw is not None
        else replace(defaults or DatabaseSettings())
    )
    return Database(
        version=_require(raw, "version", str),
        sessions=sessions,
        current_session=_optional(raw, "currentSession", str),
        settings=settings,
    )


def dump_database(db: Database, indent: int | None = None) -> str:
    return json.dumps(database_to_dict(db), indent=indent, ensure_ascii=False)


def parse_database(text: str, defaults: DatabaseSettings | None = None) -> Database:
    """Strictly parse serialized database text. Raises SchemaError."""
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise SchemaError(f"invalid JSON: {e}") from e
    return database_from_dict(raw, defaults)


def migrate_database(old: dict, settings: DatabaseSettings | None = None) -> Database:
    """Bring an older record to the current version.

    No field-level migration exists yet: any other version is replaced with
    an empty database.
    """
    logger.info(
        "Migrating chat database from version %s to %s (previous data discarded)",
        old.get("version"), SCHEMA_VERSION,
    )
    return create_new_database(settings)


def load_database(text: str | None, settings: DatabaseSettings | None = None) -> Database:
    """Deserialize the stored blob, failing closed to a fresh database."""
    if not text:
        return create_new_database(settings)
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error("Error loading chat database: %s", e)
        return create_new_database(settings)
    if isinstance(raw, dict) and raw.get("version") != SCHEMA_VERSION:
        return migrate_database(raw, settings)
    try:
        return database_from_dict(raw, settings)
    except SchemaError as e:
        logger.error("Error loading chat database: %s", e)
        return create_new_database(settings)


# ---------------------------------------------------------------------------
# Persistent context
# ---------------------------------------------------------------------------

def persistent_context_to_dict(ctx: PersistentContext) -> dict:
    return {
        "topics": list(ctx.topics),
        "recentConversations": [
            {"userQuery": c.user_query, "aiSummary": c.ai_summary, "timestamp": c.timestamp}
            for c in ctx.recent_conversations
        ],
        "totalConversations": ctx.total_conversations,
        "lastActiveDate": ctx.last_active_date,
        "sessionDuration": ctx.session_duration,
        "version": ctx.version,
    }


def persistent_context_from_dict(raw: Any) -> PersistentContext:
    if not isinstance(raw, dict):
        raise SchemaError("persistent context must be an object")
    topics = _require(raw, "topics", list)
    if not all(isinstance(t, str) for t in topics):
        raise SchemaError("topics must be strings")
    recent = []
    for conv in _require(raw, "recentConversations", list):
        if not isinstance(conv, dict):
            raise SchemaError("recent conversation must be an object")
        recent.append(
            RecentConversation(
                user_query=_require(conv, "userQuery", str),
                ai_summary=_require(conv, "aiSummary", str),
                timestamp=_require(conv, "timestamp", int),
            )
        )
    return PersistentContext(
        topics=topics,
        recent_conversations=recent,
        total_conversations=_require(raw, "totalConversations", int),
        last_active_date=raw.get("lastActiveDate", 0),
        session_duration=raw.get("sessionDuration", 0),
        version=str(raw.get("version", PERSISTENT_CONTEXT_VERSION)),
    )
