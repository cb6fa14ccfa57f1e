"""Assemble the bounded context that accompanies every assistant request."""
from __future__ import annotations

from typing import Sequence

from growthcoach.models.chat import ChatMessage, CoachContext
from growthcoach.models.coaching import CoachingState, ProfileSnapshot
from growthcoach.utils.text import history_line, pluralize

HISTORY_WINDOW = 6
MAX_GROWTH_SCORE = 99
MAX_TASK_POINTS = 50
POINTS_PER_TASK = 5
PROFILE_COMPLETE_POINTS = 10
BRAND_APPROVED_POINTS = 10
LISTING_VERIFIED_POINTS = 15
MAX_QUICK_ACTIONS = 6

AUDIT_A_NAME = "Business Profile Audit"
AUDIT_B_NAME = "Website Audit"


def estimate_growth_score(profile: ProfileSnapshot) -> int:
    """Heuristic 0-99 score shown to the assistant. Never written back."""

    score = 0
    if profile.has_business_details:
        score += PROFILE_COMPLETE_POINTS
    if profile.brand_approved:
        score += BRAND_APPROVED_POINTS
    if profile.listing_verified:
        score += LISTING_VERIFIED_POINTS
    score += min(len(profile.completed_tasks) * POINTS_PER_TASK, MAX_TASK_POINTS)
    return min(score, MAX_GROWTH_SCORE)


def recent_history(messages: Sequence[ChatMessage], *, window: int = HISTORY_WINDOW) -> tuple[str, ...]:
    """Return the last ``window`` messages, oldest first, as role-labelled lines."""

    if window <= 0:
        return ()
    return tuple(history_line(message.role, message.content) for message in list(messages)[-window:])


def build(
    profile: ProfileSnapshot,
    state: CoachingState | None,
    history: Sequence[ChatMessage],
) -> CoachContext:
    """Build the :class:`CoachContext` for a single assistant request."""

    audits: list[str] = []
    if profile.audit_a_completed:
        audits.append(AUDIT_A_NAME)
    if profile.audit_b_completed:
        audits.append(AUDIT_B_NAME)

    urgent = tuple(task.title for task in state.todays_tasks if task.title) if state else ()

    return CoachContext(
        business_name=profile.business_name,
        industry=profile.industry,
        completed_audit_names=tuple(audits),
        pending_task_count=len(profile.pending_tasks),
        new_review_count=profile.new_reviews_count,
        growth_score_estimate=estimate_growth_score(profile),
        recent_history=recent_history(history),
        user_name=profile.user_first_name,
        urgent_task_titles=urgent,
    )


def quick_actions(context: CoachContext) -> list[str]:
    """Suggested prompts for the chat panel, most relevant first."""

    actions: list[str] = []
    if not context.completed_audit_names:
        actions.append("Run my first audit")
        actions.append("Set up my business profile")
    if context.new_review_count > 0:
        actions.append(f"Reply to {pluralize(context.new_review_count, 'new review')}")
    if context.pending_task_count > 0:
        actions.append("Show me my tasks")
        actions.append("What should I do today?")
    if context.growth_score_estimate < 50:
        actions.append("How can I improve my score?")
    actions.append("Explain the business profile audit")
    actions.append("Help me get more customers")
    return actions[:MAX_QUICK_ACTIONS]


__all__ = [
    "HISTORY_WINDOW",
    "build",
    "estimate_growth_score",
    "quick_actions",
    "recent_history",
]
