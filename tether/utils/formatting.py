"""Formatting helpers for timestamps, sizes and prompt text."""

import math
import time
from datetime import datetime, timezone
from typing import Optional

PROMPT_DISPLAY_LENGTH = 80


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_utc(timestamp_ms: Optional[int]) -> str:
    """Format Unix milliseconds as 'YYYY-MM-DD HH:MM:SS UTC'."""
    if not timestamp_ms:
        return "unknown"
    try:
        dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        return "unknown"
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def time_ago(timestamp_ms: Optional[int], reference_ms: Optional[int] = None) -> str:
    """Relative recency: 'Nm ago' under an hour, 'Nh ago' under a day, else 'Nd ago'."""
    if not timestamp_ms:
        return ""
    reference_ms = now_ms() if reference_ms is None else reference_ms
    try:
        minutes = _round_half_up((reference_ms - timestamp_ms) / 1000 / 60)
    except OverflowError:
        return ""
    if minutes < 60:
        return f"{minutes}m ago"
    if minutes < 1440:
        return f"{_round_half_up(minutes / 60)}h ago"
    return f"{_round_half_up(minutes / 1440)}d ago"


def human_size(size_bytes: Optional[int]) -> str:
    """Human-readable byte size with one decimal place above 1024 bytes."""
    if not size_bytes:
        return "0B"
    if size_bytes < 1024:
        return f"{size_bytes}B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f}KB"
    return f"{size_bytes / 1024 / 1024:.1f}MB"


def prompt_preview(text: Optional[str], max_length: int = PROMPT_DISPLAY_LENGTH) -> str:
    """Cut prompt text to max_length characters and collapse newlines to spaces."""
    if not text:
        return ""
    return text[:max_length].replace("\r\n", " ").replace("\n", " ").replace("\r", " ").strip()


def short_id(session_id: str, length: int = 8) -> str:
    return session_id[:length]
