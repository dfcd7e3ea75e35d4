"""SessionStore: CRUD over chat sessions, lifecycle, and retention maintenance."""

from __future__ import annotations

import logging
import warnings
from dataclasses import fields

from ..config import validate_settings
from ..types import (
    ConfigError,
    ConversationTurn,
    Database,
    DatabaseSettings,
    DisplayMessage,
    PersistenceWarning,
    Session,
    StorageError,
    TurnMetadata,
)
from .clock import Clock, make_id, now_ms
from .compression import compress_text, decompress_text
from .schema import dump_database, load_database
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


class SessionStore:
    """Owns the in-memory Database and persists it after every mutation.

    Lifecycle of a session: created by ``start_new_session`` (becomes
    current), grown by ``add_conversation_turn``, removed by
    ``delete_session``. Starting another session keeps the old one but it is
    no longer current.

    A failed persist leaves the in-memory mutation in place; memory and
    storage disagree until the next successful save.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        key: str,
        settings: DatabaseSettings | None = None,
        clock: Clock | None = None,
        maintenance: bool = True,
    ) -> None:
        self.storage = storage
        self.key = key
        self._default_settings = settings
        self._clock = clock or now_ms
        self.last_save_ok = True
        self.db = self._load()
        if maintenance:
            self.perform_maintenance()

    @property
    def settings(self) -> DatabaseSettings:
        return self.db.settings

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> Database:
        try:
            text = self.storage.load(self.key)
        except StorageError as e:
            logger.error("Error reading chat database: %s", e)
            text = None
        return load_database(text, self._default_settings)

    def _write(self) -> None:
        self.storage.save(self.key, dump_database(self.db))

    def save(self) -> bool:
        """Persist the database, evicting the older half of sessions once on failure.

        Returns False (and emits a PersistenceWarning) if the retry also fails.
        """
        try:
            self._write()
            self.last_save_ok = True
            return True
        except StorageError as e:
            logger.error("Error saving chat database: %s", e)

        removed = self.cleanup()
        logger.warning("Removed %d oldest sessions to free storage", removed)
        try:
            self._write()
        except StorageError as e:
            logger.error("Failed to save chat database even after cleanup: %s", e)
            self.last_save_ok = False
            warnings.warn(
                f"Chat database could not be persisted: {e}",
                PersistenceWarning,
                stacklevel=3,
            )
            return False
        self.last_save_ok = True
        return True

    def replace_database(self, db: Database) -> bool:
        """Swap in a whole database (used by import) and persist it."""
        self.db = db
        return self.save()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_new_session(self) -> str:
        now = self._clock()
        session_id = make_id("session", now)
        self.db.sessions[session_id] = Session(
            session_id=session_id,
            start_time=now,
            last_activity=now,
            message_count=0,
            compressed=self.settings.compression_enabled,
            turns=[],
        )
        self.db.current_session = session_id
        self.save()
        logger.info("Started chat session %s", session_id)
        return session_id

    def get_current_session(self) -> str:
        """Current session id; starts a new session if none resolves."""
        current = self.db.current_session
        if not current or current not in self.db.sessions:
            return self.start_new_session()
        return current

    def get_session(self, session_id: str) -> Session | None:
        return self.db.sessions.get(session_id)

    def switch_session(self, session_id: str) -> bool:
        """Make an existing session current. Returns False for an unknown id."""
        if session_id not in self.db.sessions:
            return False
        if self.db.current_session != session_id:
            self.db.current_session = session_id
            self.save()
        return True

    def resolve(self, session_id: str | None = None) -> Session | None:
        """The named session, or the current one (created if needed)."""
        target = session_id or self.get_current_session()
        return self.db.sessions.get(target)

    def add_conversation_turn(
        self,
        user_message: str,
        ai_response: str,
        image_data: str | None = None,
        metadata: TurnMetadata | None = None,
    ) -> str:
        """Append a user/AI pair to the current session. Returns the turn id."""
        session = self.db.sessions[self.get_current_session()]
        now = self._clock()
        # Each turn occupies [t, t+1] in display order; keep turns from overlapping
        timestamp = max(now, session.turns[-1].timestamp + 2) if session.turns else now
        enabled = self.settings.compression_enabled
        turn = ConversationTurn(
            id=make_id("conv", timestamp),
            timestamp=timestamp,
            user_message=compress_text(user_message, enabled),
            ai_response=compress_text(ai_response, enabled),
            image_data=image_data,
            metadata=metadata,
        )
        session.turns.append(turn)
        session.message_count += 2
        session.last_activity = timestamp
        self.save()
        return turn.id

    def get_session_messages(self, session_id: str | None = None) -> list[DisplayMessage]:
        """Expand turns into display messages: user at t, AI at t+1."""
        session = self.resolve(session_id)
        if session is None:
            return []
        messages: list[DisplayMessage] = []
        for turn in session.turns:
            messages.append(
                DisplayMessage(
                    id=f"{turn.id}_user",
                    sender="user",
                    timestamp=turn.timestamp,
                    text=decompress_text(turn.user_message),
                    image_url=turn.image_data,
                )
            )
            messages.append(
                DisplayMessage(
                    id=f"{turn.id}_ai",
                    sender="ai",
                    timestamp=turn.timestamp + 1,
                    text=decompress_text(turn.ai_response),
                )
            )
        return messages

    def get_all_sessions(self) -> list[Session]:
        """All sessions, most recently active first."""
        return sorted(self.db.sessions.values(), key=lambda s: s.last_activity, reverse=True)

    def delete_session(self, session_id: str) -> None:
        removed = self.db.sessions.pop(session_id, None)
        if self.db.current_session == session_id:
            self.db.current_session = None
        self.save()
        if removed is not None:
            logger.info("Deleted chat session %s", session_id)

    def clear_all_data(self) -> None:
        self.db.sessions = {}
        self.db.current_session = None
        self.save()

    def update_settings(self, **changes) -> DatabaseSettings:
        """Change persisted settings. Raises ConfigError on invalid values."""
        known = {f.name for f in fields(DatabaseSettings)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ConfigError([f"Unknown setting '{name}'" for name in unknown])
        candidate = DatabaseSettings(**{**{n: getattr(self.settings, n) for n in known}, **changes})
        errors = validate_settings(candidate)
        if errors:
            raise ConfigError(errors)
        self.db.settings = candidate
        self.save()
        return candidate

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def _remove(self, sessions: list[Session]) -> None:
        for session in sessions:
            del self.db.sessions[session.session_id]
            if self.db.current_session == session.session_id:
                self.db.current_session = None

    def perform_maintenance(self) -> int:
        """Expire idle sessions, then evict beyond max_sessions. Persists once."""
        cutoff = self._clock() - self.settings.auto_cleanup_days * DAY_MS
        expired = [s for s in self.db.sessions.values() if s.last_activity < cutoff]
        self._remove(expired)

        excess: list[Session] = []
        ordered = self.get_all_sessions()
        if len(ordered) > self.settings.max_sessions:
            excess = ordered[self.settings.max_sessions:]
            self._remove(excess)

        if expired or excess:
            logger.info(
                "Maintenance removed %d expired and %d excess sessions",
                len(expired), len(excess),
            )
        self.save()
        return len(expired) + len(excess)

    def cleanup(self) -> int:
        """Drop the older half of sessions by last activity. Does not persist."""
        ordered = sorted(self.db.sessions.values(), key=lambda s: s.last_activity)
        to_remove = ordered[: len(ordered) // 2]
        self._remove(to_remove)
        return len(to_remove)
