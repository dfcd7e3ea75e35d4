"""ChatHistory: the UI-side conversation controller on top of ChatDatabase.

Holds the in-memory display messages of the active session, pairs each user
message with the AI reply that follows it into a stored turn, and supplies
the fallback AI context when the store has nothing for the session yet.
"""

from __future__ import annotations

import logging

from .core.clock import Clock, make_id, now_ms
from .core.context_engine import card_to_text, context_from_display_messages
from .database import ChatDatabase
from .types import (
    CardData,
    ChatStoreError,
    ContextMessage,
    DatabaseStats,
    DisplayMessage,
    Sender,
    Session,
    TurnMetadata,
)

logger = logging.getLogger(__name__)

WELCOME_BACK_TEXT = (
    "Welcome back! I remember our previous discussions and can provide more personalized advice."
)
NEW_SESSION_WITH_CONTEXT_TEXT = (
    "New session started. I have your previous context and farming preferences."
)


class ChatHistory:
    def __init__(self, database: ChatDatabase, clock: Clock | None = None) -> None:
        self.database = database
        self._clock = clock or now_ms
        self.pending_user_message: DisplayMessage | None = None
        self.conversation_id: str | None = database.get_current_session()
        self.messages: list[DisplayMessage] = database.get_session_messages(self.conversation_id)

    def _system_message(self, text: str) -> DisplayMessage:
        now = self._clock()
        return DisplayMessage(id=f"ctx_{now}", sender="system", timestamp=now, text=text)

    def _reset_with_context(self, greeting: str) -> None:
        if self.database.get_context_for_new_session():
            self.messages = [self._system_message(greeting)]
        else:
            self.messages = []

    def add_message(
        self,
        sender: Sender,
        text: str | None = None,
        image_url: str | None = None,
        card_data: CardData | None = None,
    ) -> DisplayMessage:
        """Append a display message; store a turn once a user message is answered."""
        now = self._clock()
        message = DisplayMessage(
            id=make_id("msg", now),
            sender=sender,
            timestamp=now,
            text=text,
            image_url=image_url,
            card_data=card_data,
        )
        self.messages.append(message)

        if sender == "user":
            self.pending_user_message = message
        elif sender == "ai" and self.pending_user_message is not None:
            pending = self.pending_user_message
            user_text = pending.text or "Image analysis request"
            if card_data is not None:
                ai_text = card_to_text(card_data)
            else:
                ai_text = text or "AI response"
            try:
                self.database.add_conversation_turn(user_text, ai_text, pending.image_url)
            except ChatStoreError as e:
                logger.error("Error saving conversation to database: %s", e)
            self.pending_user_message = None
        return message

    def add_conversation_turn(
        self,
        user_message: str,
        ai_response: str,
        image_data: str | None = None,
        metadata: TurnMetadata | None = None,
    ) -> str | None:
        """Store a turn without touching the in-memory messages."""
        try:
            return self.database.add_conversation_turn(user_message, ai_response, image_data, metadata)
        except ChatStoreError as e:
            logger.error("Error adding conversation turn to database: %s", e)
            return None

    def get_context_for_ai(self) -> list[ContextMessage]:
        context = self.database.get_context_for_ai(self.conversation_id)
        if context:
            return context
        return context_from_display_messages(
            self.messages, self.database.config.context.fallback_messages
        )

    def clear_history(self) -> str:
        """Summarize the current session and move to a fresh one."""
        self.database.save_persistent_context()
        self.conversation_id = self.database.start_new_session()
        self.pending_user_message = None
        self._reset_with_context(WELCOME_BACK_TEXT)
        return self.conversation_id

    def switch_to_session(self, session_id: str) -> bool:
        """Resume a stored session; later turns are appended to it."""
        if not self.database.switch_session(session_id):
            logger.warning("Cannot switch to unknown session %s", session_id)
            return False
        self.messages = self.database.get_session_messages(session_id)
        self.conversation_id = session_id
        self.pending_user_message = None
        return True

    def delete_session(self, session_id: str) -> None:
        self.database.delete_session(session_id)
        if self.conversation_id == session_id:
            self.clear_history()

    def clear_all_data(self, keep_context: bool = False) -> None:
        self.pending_user_message = None
        if keep_context:
            self.database.clear_all_data_with_options(keep_persistent_context=True)
            self.conversation_id = self.database.start_new_session()
            self._reset_with_context(NEW_SESSION_WITH_CONTEXT_TEXT)
        else:
            self.database.clear_all_data_with_options(
                keep_persistent_context=False,
                keep_user_preferences=False,
            )
            self.messages = []
            self.conversation_id = None

    def get_last_user_message(self) -> DisplayMessage | None:
        for message in reversed(self.messages):
            if message.sender == "user":
                return message
        return None

    def get_message_count(self) -> dict[str, int]:
        return {
            "total": len(self.messages),
            "user": sum(1 for m in self.messages if m.sender == "user"),
            "ai": sum(1 for m in self.messages if m.sender == "ai"),
        }

    def get_database_stats(self) -> DatabaseStats:
        return self.database.get_stats()

    def get_all_sessions(self) -> list[Session]:
        return self.database.get_all_sessions()
