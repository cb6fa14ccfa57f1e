"""Keyword matcher deciding whether a task warrants the professional-services panel."""
from __future__ import annotations

from typing import Final, Mapping

from growthcoach.models.coaching import GrowthTask

UPSELL_KEYWORDS: Final[Mapping[str, tuple[str, ...]]] = {
    "website": ("website", "speed", "layout", "responsive", "redesign", "landing page"),
    "seo": ("ranking", "keywords", "meta", "schema", "seo"),
    "citations": ("citation", "directory", "listing", "nap"),
    "automation": ("automation", "workflow", "integration", "api", "automated"),
}

_ALL_KEYWORDS: Final[tuple[str, ...]] = tuple(
    keyword for group in UPSELL_KEYWORDS.values() for keyword in group
)


def should_upsell(task: GrowthTask | None) -> bool:
    """Return ``True`` when the task text mentions any keyword from the taxonomy.

    Matching is a case-insensitive substring search over the title and
    description. Tasks without a title never match.
    """

    if task is None or not task.title:
        return False
    text = f"{task.title} {task.description or ''}".lower()
    return any(keyword in text for keyword in _ALL_KEYWORDS)


__all__ = ["UPSELL_KEYWORDS", "should_upsell"]
