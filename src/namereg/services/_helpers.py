"""Shared service-layer helper functions."""

from __future__ import annotations

from datetime import UTC, datetime


def iso_from_unix(seconds: int) -> str:
    """Unix seconds as ISO 8601 UTC, for human-facing payloads."""
    try:
        return datetime.fromtimestamp(seconds, UTC).isoformat()
    except (OverflowError, OSError, ValueError):
        return str(seconds)


def plural(count: int, word: str) -> str:
    """``1 year`` / ``2 years``."""
    return f"{count} {word}" if count == 1 else f"{count} {word}s"
