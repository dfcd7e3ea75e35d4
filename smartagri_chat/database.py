"""ChatDatabase: the offline chat store, wiring storage, sessions and context."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import load_config, validate_config
from .core.clock import Clock
from .core.context_engine import ContextEngine
from .core.schema import SCHEMA_VERSION, SchemaError, dump_database, parse_database
from .core.session_store import SessionStore
from .core.storage import KeyValueStorage
from .core.topics import TopicExtractor
from .storage.filesystem import FilesystemStorage
from .storage.memory import InMemoryStorage
from .storage.sqlite import SQLiteStorage
from .types import (
    ChatStoreConfig,
    ConfigError,
    ContextMessage,
    DatabaseSettings,
    DatabaseStats,
    DisplayMessage,
    PersistentContext,
    Session,
    StorageError,
    TurnMetadata,
)

logger = logging.getLogger(__name__)


def build_storage(config: ChatStoreConfig) -> KeyValueStorage:
    """Instantiate the configured storage backend."""
    storage = config.storage
    if storage.backend == "sqlite":
        return SQLiteStorage(storage.sqlite_path, quota_bytes=storage.quota_bytes)
    if storage.backend == "filesystem":
        return FilesystemStorage(storage.root, quota_bytes=storage.quota_bytes)
    return InMemoryStorage(quota_bytes=storage.quota_bytes)


class ChatDatabase:
    """Offline chat history store.

    Construct one per application and pass it to whatever needs it:

        db = ChatDatabase(config_path="./smartagri-chat.yaml")
        db.add_conversation_turn("Which fertilizer for wheat?", "Use urea ...")
        history = db.get_context_for_ai()

    Construction loads (or creates) the database and runs one maintenance
    pass. Every mutating call persists the whole database before returning.
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: ChatStoreConfig | None = None,
        storage: KeyValueStorage | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        errors = validate_config(self.config)
        if errors:
            raise ConfigError(errors)
        self.storage = storage if storage is not None else build_storage(self.config)
        self.keys = self.config.keys
        self.sessions = SessionStore(
            self.storage,
            self.keys.database,
            settings=self.config.settings,
            clock=clock,
        )
        self.context = ContextEngine(
            self.sessions,
            self.storage,
            self.keys.persistent_context,
            config=self.config.context,
            topics=TopicExtractor(self.config.topics),
        )

    @property
    def settings(self) -> DatabaseSettings:
        return self.sessions.settings

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_new_session(self) -> str:
        return self.sessions.start_new_session()

    def get_current_session(self) -> str:
        return self.sessions.get_current_session()

    def get_session(self, session_id: str) -> Session | None:
        return self.sessions.get_session(session_id)

    def switch_session(self, session_id: str) -> bool:
        return self.sessions.switch_session(session_id)

    def add_conversation_turn(
        self,
        user_message: str,
        ai_response: str,
        image_data: str | None = None,
        metadata: TurnMetadata | None = None,
    ) -> str:
        return self.sessions.add_conversation_turn(user_message, ai_response, image_data, metadata)

    def get_session_messages(self, session_id: str | None = None) -> list[DisplayMessage]:
        return self.sessions.get_session_messages(session_id)

    def get_all_sessions(self) -> list[Session]:
        return self.sessions.get_all_sessions()

    def delete_session(self, session_id: str) -> None:
        self.sessions.delete_session(session_id)

    def update_settings(self, **changes) -> DatabaseSettings:
        return self.sessions.update_settings(**changes)

    def perform_maintenance(self) -> int:
        return self.sessions.perform_maintenance()

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------

    def get_context_for_ai(self, session_id: str | None = None) -> list[ContextMessage]:
        return self.context.get_context_for_ai(session_id)

    def save_persistent_context(self, session_id: str | None = None) -> PersistentContext | None:
        return self.context.save_persistent_context(session_id)

    def get_persistent_context(self) -> PersistentContext | None:
        return self.context.get_persistent_context()

    def get_context_for_new_session(self) -> str:
        return self.context.get_context_for_new_session()

    # ------------------------------------------------------------------
    # Stats & export
    # ------------------------------------------------------------------

    def get_stats(self) -> DatabaseStats:
        db = self.sessions.db
        sessions = list(db.sessions.values())
        current = db.sessions.get(db.current_session) if db.current_session else None
        size_kb = len(dump_database(db).encode("utf-8")) / 1024
        return DatabaseStats(
            total_sessions=len(sessions),
            total_messages=sum(s.message_count for s in sessions),
            current_session_messages=current.message_count if current else 0,
            database_size=f"{size_kb:.2f} KB",
        )

    def export_database(self) -> str:
        return dump_database(self.sessions.db, indent=2)

    def import_database(self, data: str) -> bool:
        """Replace all sessions with a backup. Malformed input changes nothing."""
        try:
            imported = parse_database(data, self.config.settings)
        except SchemaError as e:
            logger.error("Error importing database: %s", e)
            return False
        if imported.version != SCHEMA_VERSION:
            logger.error(
                "Error importing database: version %s, expected %s",
                imported.version, SCHEMA_VERSION,
            )
            return False
        self.sessions.replace_database(imported)
        logger.info("Imported chat database with %d sessions", len(imported.sessions))
        return True

    def clear_all_data(self) -> None:
        self.sessions.clear_all_data()

    def clear_all_data_with_options(
        self,
        keep_persistent_context: bool = False,
        keep_user_preferences: bool = False,
    ) -> None:
        if keep_persistent_context:
            self.context.save_persistent_context()
        self.sessions.clear_all_data()
        try:
            if not keep_persistent_context:
                self.context.clear_persistent_context()
            if not keep_user_preferences:
                self.storage.remove(self.keys.user_preferences)
        except StorageError as e:
            logger.error("Error clearing database with options: %s", e)
        logger.info(
            "Database cleared (keep_persistent_context=%s, keep_user_preferences=%s)",
            keep_persistent_context, keep_user_preferences,
        )
