"""smartagri-chat: offline chat session store for a farming assistant."""

from .config import load_config
from .database import ChatDatabase
from .history import ChatHistory
from .types import (
    CardData,
    ChatStoreConfig,
    ChatStoreError,
    ContextMessage,
    ConversationTurn,
    DatabaseStats,
    DisplayMessage,
    PersistenceWarning,
    PersistentContext,
    QuotaExceededError,
    Session,
    StorageError,
    TurnMetadata,
)

__version__ = "0.1.0"

__all__ = [
    "ChatDatabase",
    "ChatHistory",
    "load_config",
    "CardData",
    "ChatStoreConfig",
    "ChatStoreError",
    "ContextMessage",
    "ConversationTurn",
    "DatabaseStats",
    "DisplayMessage",
    "PersistenceWarning",
    "PersistentContext",
    "QuotaExceededError",
    "Session",
    "StorageError",
    "TurnMetadata",
]
