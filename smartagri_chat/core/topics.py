"""TopicExtractor: keyword matching of conversation text to topic tags."""

from __future__ import annotations

from ..types import DEFAULT_TOPIC_KEYWORDS


class TopicExtractor:
    """Deterministic topic tagging by case-insensitive substring match.

    Tags come out in vocabulary order, each at most once.
    """

    def __init__(self, topic_keywords: dict[str, list[str]] | None = None) -> None:
        vocabulary = topic_keywords if topic_keywords is not None else DEFAULT_TOPIC_KEYWORDS
        self.topic_keywords = {
            tag: [kw.lower() for kw in keywords if kw.strip()]
            for tag, keywords in vocabulary.items()
        }

    def match(self, text: str) -> list[str]:
        """Tags whose keywords occur anywhere in text."""
        text_lower = text.lower()
        return [
            tag for tag, keywords in self.topic_keywords.items()
            if any(kw in text_lower for kw in keywords)
        ]

    def extract(self, texts: list[str]) -> list[str]:
        """Union of tags across texts, in vocabulary order."""
        found: set[str] = set()
        for text in texts:
            found.update(self.match(text))
        return [tag for tag in self.topic_keywords if tag in found]
