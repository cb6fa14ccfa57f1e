"""Small text helpers shared by the coach services and templates."""
from __future__ import annotations

import re
from datetime import datetime
from typing import Any

_WHITESPACE_RE = re.compile(r"\s+")

_ROLE_LABELS = {"user": "User", "assistant": "Coach"}


def pluralize(count: int, noun: str, plural: str | None = None) -> str:
    """Return ``"1 task"`` / ``"3 tasks"`` style phrases."""

    word = noun if count == 1 else (plural or f"{noun}s")
    return f"{count} {word}"


def time_of_day_greeting(moment: datetime) -> str:
    """Return the salutation matching the hour of ``moment``."""

    if moment.hour < 12:
        return "Good morning"
    if moment.hour < 18:
        return "Good afternoon"
    return "Good evening"


def history_line(role: str, content: Any) -> str:
    """Render a chat turn as a single role-labelled line.

    Newlines are collapsed so every turn occupies exactly one line of the
    history block sent to the assistant.
    """

    text = content if isinstance(content, str) else ""
    text = _WHITESPACE_RE.sub(" ", text).strip()
    label = _ROLE_LABELS.get(role, role.capitalize() or "User")
    return f"{label}: {text}"


__all__ = ["history_line", "pluralize", "time_of_day_greeting"]
