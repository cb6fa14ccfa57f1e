"""Shared fixtures and helpers for the test suite."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import pytest

from growthcoach.models.chat import AssistantReply, CoachContext
from growthcoach.models.coaching import GrowthTask, ProfileSnapshot


def make_task(
    identifier: str,
    *,
    title: str | None = None,
    description: str = "",
    status: str = "pending",
    source_module: str | None = "social_posts",
) -> GrowthTask:
    return GrowthTask(
        id=identifier,
        title=title if title is not None else f"Task {identifier}",
        description=description,
        status=status,  # type: ignore[arg-type]
        source_module=source_module,
    )


def make_snapshot(**overrides: Any) -> ProfileSnapshot:
    """Return a snapshot that has finished onboarding unless overridden."""

    values: dict[str, Any] = {
        "business_name": "Harbor Street Bakery",
        "business_website": "https://harborstreetbakery.example",
        "industry": "Bakery",
        "audit_a_completed": True,
        "audit_b_completed": True,
        "tasks": (),
        "new_reviews_count": 0,
        "tool_usage": {},
        "user_first_name": "Sam",
    }
    values.update(overrides)
    return ProfileSnapshot(**values)


@dataclass
class RecordingBackend:
    """Assistant backend stub that replays canned replies and records calls."""

    replies: list[AssistantReply | Exception] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)
    before_return: Callable[[], None] | None = None

    def reply(
        self,
        message: str,
        context: CoachContext,
        recent_history: Sequence[str],
        user_id: str | None,
    ) -> AssistantReply:
        self.calls.append(
            {
                "message": message,
                "context": context,
                "recent_history": list(recent_history),
                "user_id": user_id,
            }
        )
        if self.before_return is not None:
            self.before_return()
        outcome = self.replies.pop(0) if self.replies else AssistantReply("Sure thing.", 4, 5)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture()
def snapshot() -> ProfileSnapshot:
    return make_snapshot()


@pytest.fixture()
def backend() -> RecordingBackend:
    return RecordingBackend()
