"""Map growth-plan tasks onto the view a user should open to work on them."""
from __future__ import annotations

from growthcoach.models.coaching import GrowthTask
from growthcoach.services.catalog import EXECUTION_TOOLS, FOUNDATION_TOOLS, GROWTH_PLAN_ID


def route(task: GrowthTask | None) -> str:
    """Return the tool id to navigate to for ``task``.

    Execution tools are opened directly. Foundation tools and anything
    missing or unrecognised resolve to the growth-plan view.
    """

    source = (task.source_module or "").strip().lower() if task is not None else ""
    if not source or source in FOUNDATION_TOOLS:
        return GROWTH_PLAN_ID
    if source in EXECUTION_TOOLS:
        return source
    return GROWTH_PLAN_ID


__all__ = ["route"]
