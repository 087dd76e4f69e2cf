"""Shared utilities for agentwatch.

This module contains small helpers used by the parser, the discovery
layer and the domain models.
"""

import os
from datetime import datetime, timezone
from typing import Any

from .config import MAX_CONTENT_CHARS

# Tried in order; the fractional form is by far the most common in logs
TIMESTAMP_FORMATS = (
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
)


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp such as ``2025-01-15T10:30:00.123Z``.

    Returns None for anything that is not a string in one of the
    supported formats; never raises.
    """
    if not isinstance(value, str):
        return None
    for fmt in TIMESTAMP_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def truncate_text(text: str, limit: int = MAX_CONTENT_CHARS) -> str:
    """Shorten text longer than ``limit`` and note how much was dropped."""
    if len(text) <= limit:
        return text
    omitted = len(text) - limit
    return f"{text[:limit]}\n\n[... truncated {omitted} characters ...]"


def normalize_path(path: str) -> str:
    """Expand ``~`` and collapse ``.``/``..`` segments and trailing slashes."""
    return os.path.normpath(os.path.expanduser(path))


def is_within(path: str, root: str) -> bool:
    """True if ``path`` is ``root`` or lies below it. Both must be normalized."""
    return path == root or path.startswith(root.rstrip(os.sep) + os.sep)


def isoformat_or_none(value: datetime | None) -> str | None:
    """Render a datetime for JSON payloads."""
    return value.isoformat() if value is not None else None


def mtime_to_datetime(mtime: float | None) -> datetime | None:
    """Convert an ``os.stat`` mtime to an aware UTC datetime."""
    if mtime is None:
        return None
    return datetime.fromtimestamp(mtime, tz=timezone.utc)


def safe_get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely get a nested value from a dictionary.

    Args:
        data: The dictionary to search
        *keys: The nested keys to follow
        default: Default value if key path not found

    Returns:
        The nested value or default

    Example:
        safe_get_nested({'a': {'b': 1}}, 'a', 'b') -> 1
        safe_get_nested({'a': {}}, 'a', 'b', default=0) -> 0
    """
    result = data
    for key in keys:
        if isinstance(result, dict):
            result = result.get(key, default)
        else:
            return default
    return result


def format_duration(seconds: float | None) -> str | None:
    """Format a duration as ``1h 2m 3s``, ``2m 3s`` or ``3s``."""
    if seconds is None:
        return None
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"
