"""Epoch-millisecond timestamps and id generation."""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def ms_to_iso(ms: int) -> str:
    """Format epoch ms as ISO-8601 UTC with millisecond precision and a Z suffix."""
    dt = datetime.fromtimestamp(ms // 1000, tz=timezone.utc).replace(microsecond=(ms % 1000) * 1000)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def make_id(prefix: str, ms: int) -> str:
    """``<prefix>_<ms>_<9 random chars>``; unique within a database lifetime."""
    return f"{prefix}_{ms}_{uuid.uuid4().hex[:9]}"
