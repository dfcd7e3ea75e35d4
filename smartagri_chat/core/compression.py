"""Lossy text "compression": whitespace collapsing and stop-word stripping.

This is not invertible. ``decompress_text`` is the identity, so stored turns
come back without the stripped words.
"""

from __future__ import annotations

import re

STOP_WORDS = ("the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by")

_WHITESPACE_RE = re.compile(r"\s+")
# Case-sensitive and ASCII word boundaries: "The" survives, "the" does not.
_STOP_WORD_RE = re.compile(r"\b(?:" + "|".join(STOP_WORDS) + r")\b", re.ASCII)


def compress_text(text: str, enabled: bool = True) -> str:
    if not enabled:
        return text
    collapsed = _WHITESPACE_RE.sub(" ", text).strip()
    stripped = _STOP_WORD_RE.sub("", collapsed)
    return _WHITESPACE_RE.sub(" ", stripped)


def decompress_text(compressed: str) -> str:
    return compressed
