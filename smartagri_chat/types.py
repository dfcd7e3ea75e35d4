"""All dataclasses, Protocols, and exceptions for smartagri-chat."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Stored conversation data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TurnMetadata:
    tokens: int | None = None
    response_time: int | None = None  # ms
    model: str | None = None


@dataclass(frozen=True)
class ConversationTurn:
    """One user message and the AI response to it, stored compressed."""
    id: str
    timestamp: int  # epoch ms
    user_message: str
    ai_response: str
    image_data: str | None = None
    metadata: TurnMetadata | None = None


@dataclass
class Session:
    session_id: str
    start_time: int
    last_activity: int
    message_count: int = 0  # always 2 * len(turns)
    compressed: bool = False  # compression setting at creation time
    turns: list[ConversationTurn] = field(default_factory=list)


@dataclass
class DatabaseSettings:
    max_sessions: int = 50
    compression_enabled: bool = True
    max_context_messages: int = 20
    auto_cleanup_days: int = 30


@dataclass
class Database:
    version: str
    sessions: dict[str, Session] = field(default_factory=dict)
    current_session: str | None = None
    settings: DatabaseSettings = field(default_factory=DatabaseSettings)


# ---------------------------------------------------------------------------
# Persistent context
# ---------------------------------------------------------------------------

@dataclass
class RecentConversation:
    user_query: str
    ai_summary: str
    timestamp: int


@dataclass
class PersistentContext:
    """Cross-session summary regenerated from a session snapshot."""
    topics: list[str] = field(default_factory=list)
    recent_conversations: list[RecentConversation] = field(default_factory=list)
    total_conversations: int = 0
    last_active_date: int = 0
    session_duration: int = 0  # ms
    version: str = "1.0"


# ---------------------------------------------------------------------------
# Display & AI context
# ---------------------------------------------------------------------------

class CardType(str, Enum):
    CURE = "CURE"
    PRICE = "PRICE"
    ALERT = "ALERT"
    WEATHER = "WEATHER"
    TIP = "TIP"


class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    MEDIUM = "MEDIUM"
    NORMAL = "NORMAL"


@dataclass
class CardData:
    """Structured advisory card. Opaque to the store."""
    type: CardType | str
    urgency: Urgency | str
    title: str
    content: list[str] | str
    source: str | None = None


Sender = Literal["user", "ai", "system"]


@dataclass
class DisplayMessage:
    id: str
    sender: Sender
    timestamp: int
    text: str | None = None
    image_url: str | None = None
    card_data: CardData | None = None


@dataclass
class ContextMessage:
    role: Literal["user", "assistant"]
    content: str
    timestamp: str  # ISO-8601 UTC


@dataclass
class DatabaseStats:
    total_sessions: int
    total_messages: int
    current_session_messages: int
    database_size: str  # e.g. "1.25 KB"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ChatStoreError(Exception):
    """Base class for smartagri-chat errors."""


class StorageError(ChatStoreError):
    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class QuotaExceededError(StorageError):
    def __init__(self, key: str, needed: int, quota: int):
        super().__init__(
            f"Storage quota exceeded writing '{key}': {needed} bytes > {quota} bytes",
            key=key,
        )
        self.needed = needed
        self.quota = quota


class ConfigError(ChatStoreError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


class PersistenceWarning(UserWarning):
    """Database state could not be persisted even after cleanup."""


# ---------------------------------------------------------------------------
# Advisory collaborator
# ---------------------------------------------------------------------------

@runtime_checkable
class AdvisoryProvider(Protocol):
    def advise(
        self,
        query: str,
        context: list[ContextMessage],
        persistent_context: str,
        image_data: str | None = None,
    ) -> CardData | None: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_TOPIC_KEYWORDS: dict[str, list[str]] = {
    "crop": ["crop"],
    "disease": ["disease"],
    "weather": ["weather"],
    "pest": ["pest"],
    "fertilizer": ["fertilizer"],
    "soil": ["soil"],
    "irrigation": ["irrigation"],
    "harvest": ["harvest"],
    "seed": ["seed"],
    "price": ["price"],
}


@dataclass
class StorageConfig:
    backend: str = "memory"  # "memory", "filesystem" or "sqlite"
    root: str = ".smartagri/store"
    sqlite_path: str = ".smartagri/store.db"
    quota_bytes: int | None = 5 * 1024 * 1024


@dataclass
class KeysConfig:
    database: str = "smartagri-chat-database"
    persistent_context: str = "smartagri-persistent-context"
    user_preferences: str = "smartagri-user-preferences"


@dataclass
class ContextConfig:
    fallback_messages: int = 10
    recent_conversations: int = 3
    query_chars: int = 100
    summary_chars: int = 150


@dataclass
class ChatStoreConfig:
    settings: DatabaseSettings = field(default_factory=DatabaseSettings)
    storage: StorageConfig = field(default_factory=StorageConfig)
    keys: KeysConfig = field(default_factory=KeysConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    topics: dict[str, list[str]] = field(
        default_factory=lambda: {tag: list(kws) for tag, kws in DEFAULT_TOPIC_KEYWORDS.items()}
    )
