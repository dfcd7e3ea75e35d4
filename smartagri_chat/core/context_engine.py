"""ContextEngine: AI history windows and the cross-session persistent context."""

from __future__ import annotations

import json
import logging
from typing import Sequence

from ..types import (
    CardData,
    ContextConfig,
    ContextMessage,
    DisplayMessage,
    PersistentContext,
    RecentConversation,
    Session,
    StorageError,
)
from .clock import ms_to_iso
from .compression import decompress_text
from .schema import (
    PERSISTENT_CONTEXT_VERSION,
    SchemaError,
    persistent_context_from_dict,
    persistent_context_to_dict,
)
from .session_store import SessionStore
from .storage import KeyValueStorage
from .topics import TopicExtractor

logger = logging.getLogger(__name__)

NEW_SESSION_TEMPLATE = (
    "Previous session context: User has shown interest in {topics}. "
    "Recent topics: {recent}. "
    "Total previous conversations: {total}. "
    "Please use this context to provide more personalized farming advice."
)


def card_to_text(card: CardData) -> str:
    """Flatten an advisory card to ``"<title>: <content>"``."""
    content = card.content
    if isinstance(content, list):
        content = ". ".join(content)
    return f"{card.title}: {content}"


def context_from_display_messages(
    messages: Sequence[DisplayMessage],
    limit: int = 10,
) -> list[ContextMessage]:
    """Fallback AI context built from in-memory display messages.

    Callers use this when ``ContextEngine.get_context_for_ai`` returns
    nothing (a session whose turns are not stored yet). Every non-user
    sender maps to the assistant role.
    """
    recent = list(messages)[-limit:] if limit > 0 else []
    context: list[ContextMessage] = []
    for msg in recent:
        if msg.text:
            content = msg.text
        elif msg.card_data is not None:
            content = card_to_text(msg.card_data)
        else:
            content = ""
        context.append(
            ContextMessage(
                role="user" if msg.sender == "user" else "assistant",
                content=content,
                timestamp=ms_to_iso(msg.timestamp),
            )
        )
    return context


class ContextEngine:
    """Derives LLM history windows from a SessionStore and maintains the
    persistent-context record in its own storage slot.

    The persistent context is never updated incrementally: each save
    regenerates it from one session snapshot and overwrites the slot.
    """

    def __init__(
        self,
        sessions: SessionStore,
        storage: KeyValueStorage,
        key: str,
        config: ContextConfig | None = None,
        topics: TopicExtractor | None = None,
    ) -> None:
        self.sessions = sessions
        self.storage = storage
        self.key = key
        self.config = config or ContextConfig()
        self.topics = topics or TopicExtractor()

    def get_context_for_ai(self, session_id: str | None = None) -> list[ContextMessage]:
        """Last ``max_context_messages // 2`` turns as user/assistant pairs, oldest first."""
        session = self.sessions.resolve(session_id)
        if session is None:
            return []
        window = self.sessions.settings.max_context_messages // 2
        if window <= 0:
            return []
        context: list[ContextMessage] = []
        for turn in session.turns[-window:]:
            timestamp = ms_to_iso(turn.timestamp)
            context.append(ContextMessage("user", decompress_text(turn.user_message), timestamp))
            context.append(ContextMessage("assistant", decompress_text(turn.ai_response), timestamp))
        return context

    def build_persistent_context(self, session: Session) -> PersistentContext:
        texts: list[str] = []
        for turn in session.turns:
            texts.append(turn.user_message)
            texts.append(turn.ai_response)
        count = self.config.recent_conversations
        recent = session.turns[-count:] if count > 0 else []
        return PersistentContext(
            topics=self.topics.extract(texts),
            recent_conversations=[
                RecentConversation(
                    user_query=turn.user_message[: self.config.query_chars],
                    ai_summary=turn.ai_response[: self.config.summary_chars],
                    timestamp=turn.timestamp,
                )
                for turn in recent
            ],
            total_conversations=len(session.turns),
            last_active_date=session.last_activity,
            session_duration=session.last_activity - session.start_time,
            version=PERSISTENT_CONTEXT_VERSION,
        )

    def save_persistent_context(self, session_id: str | None = None) -> PersistentContext | None:
        """Summarize a session into the persistent-context slot.

        Does nothing for a session without turns. Storage failures are
        logged and reported as None.
        """
        session = self.sessions.resolve(session_id)
        if session is None or not session.turns:
            return None
        summary = self.build_persistent_context(session)
        try:
            blob = json.dumps(persistent_context_to_dict(summary), ensure_ascii=False)
            self.storage.save(self.key, blob)
        except StorageError as e:
            logger.error("Error saving persistent context: %s", e)
            return None
        logger.info(
            "Persistent context saved from session %s (%d topics)",
            session.session_id, len(summary.topics),
        )
        return summary

    def get_persistent_context(self) -> PersistentContext | None:
        try:
            stored = self.storage.load(self.key)
        except StorageError as e:
            logger.error("Error loading persistent context: %s", e)
            return None
        if not stored:
            return None
        try:
            return persistent_context_from_dict(json.loads(decompress_text(stored)))
        except (json.JSONDecodeError, SchemaError) as e:
            logger.error("Error loading persistent context: %s", e)
            return None

    def clear_persistent_context(self) -> None:
        self.storage.remove(self.key)

    def get_context_for_new_session(self) -> str:
        """Prompt preamble for a fresh session; empty when there is nothing to inject."""
        ctx = self.get_persistent_context()
        if ctx is None or not ctx.topics:
            return ""
        recent = "; ".join(
            f"User asked about: {conv.user_query}" for conv in ctx.recent_conversations
        )
        return NEW_SESSION_TEMPLATE.format(
            topics=", ".join(ctx.topics),
            recent=recent,
            total=ctx.total_conversations,
        )
