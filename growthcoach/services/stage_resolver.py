"""Resolve a profile snapshot into the coaching stage shown on the dashboard.

Rules are evaluated in priority order and the first match wins:

1. unanswered reviews (the underlying stage is still computed from rules 2-6)
2. incomplete business details
3. first audit outstanding
4. second audit outstanding
5. pending growth-plan tasks
6. daily tool usage

``resolve`` is pure. Time-of-day greetings and any other presentation wording
are layered on top by :mod:`growthcoach.services.panel`.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from growthcoach.models.coaching import CallToAction, CoachingState, ProfileSnapshot, Stage
from growthcoach.services.catalog import (
    AUDIT_A_ID,
    AUDIT_B_ID,
    BUSINESS_DETAILS_ID,
    EXECUTION_TOOLS,
    GROWTH_PLAN_ID,
    REPLY_TO_REVIEWS_ACTION,
    tool_name,
)
from growthcoach.services.upsell import should_upsell
from growthcoach.utils.text import pluralize

logger = logging.getLogger(__name__)

MAX_TODAYS_TASKS = 3
MAX_RECOMMENDED_TOOLS = 3

_BUSINESS_DETAILS_ITEM = "Business Details"
_AUDIT_A_ITEM = "Business Profile Audit"
_AUDIT_B_ITEM = "Website Audit"
_GROWTH_PLAN_ITEM = "All Growth Plan Tasks"

_STAGE_EXPLANATIONS: Mapping[Stage, str] = {
    "business_details": (
        "Your Business Details feed every analysis and piece of content the platform produces."
        " Accurate details keep recommendations tailored to your business, location and"
        " industry, which is essential for local search."
    ),
    "audit_a": (
        "Your Google Business Profile is often the first impression customers get in Search and"
        " Maps. The profile audit shows exactly what is missing so you can rank higher locally."
    ),
    "audit_b": (
        "Your website is your digital storefront. The website audit finds the technical, design"
        " and content issues that cost you customers so you can fix them one by one."
    ),
    "growth_plan": (
        "Audits identify problems; the Growth Plan turns them into a prioritized action list."
        " Each task moves visibility, trust or revenue, and completing them compounds results."
    ),
    "daily_tools": (
        "Growth comes from consistent daily action. Fresh content, quick review replies and"
        " steady lead follow-up build momentum competitors can't match."
    ),
}


def resolve(snapshot: ProfileSnapshot | Mapping[str, Any] | None) -> CoachingState:
    """Return the :class:`CoachingState` for ``snapshot``.

    Raw mappings are parsed with :meth:`ProfileSnapshot.from_mapping`. Partial
    or malformed input never raises; it resolves to the business-details stage.
    """

    try:
        profile = snapshot if isinstance(snapshot, ProfileSnapshot) else ProfileSnapshot.from_mapping(snapshot)
        return _resolve_profile(profile)
    except (AttributeError, TypeError, ValueError, OverflowError):
        logger.exception("Stage resolution failed; showing business details", extra={"event": "coach.resolve_error"})
        return _business_details_state(ProfileSnapshot())


def explain_stage(stage: Stage) -> str:
    """Return the "why this matters" explanation for ``stage``."""

    return _STAGE_EXPLANATIONS[stage]


def underlying_stage(profile: ProfileSnapshot) -> Stage:
    """Return the journey stage ignoring the reviews alert."""

    if not profile.has_business_details:
        return "business_details"
    if not profile.audit_a_completed:
        return "audit_a"
    if not profile.audit_b_completed:
        return "audit_b"
    if profile.pending_tasks:
        return "growth_plan"
    return "daily_tools"


def _resolve_profile(profile: ProfileSnapshot) -> CoachingState:
    if profile.new_reviews_count > 0:
        return _reviews_state(profile)

    stage = underlying_stage(profile)
    if stage == "business_details":
        return _business_details_state(profile)
    if stage == "audit_a":
        return _audit_a_state(profile)
    if stage == "audit_b":
        return _audit_b_state(profile)
    if stage == "growth_plan":
        return _growth_plan_state(profile)
    return _daily_tools_state(profile)


def _addressee(profile: ProfileSnapshot, fallback: str = "Hey there") -> str:
    return profile.user_first_name or fallback


def _completed_items(stage: Stage) -> tuple[str, ...]:
    if stage == "business_details":
        return ()
    if stage == "audit_a":
        return (_BUSINESS_DETAILS_ITEM,)
    if stage == "audit_b":
        return (_BUSINESS_DETAILS_ITEM, _AUDIT_A_ITEM)
    if stage == "growth_plan":
        return (_BUSINESS_DETAILS_ITEM, _AUDIT_A_ITEM, _AUDIT_B_ITEM)
    return (_BUSINESS_DETAILS_ITEM, _AUDIT_A_ITEM, _AUDIT_B_ITEM, _GROWTH_PLAN_ITEM)


def _reviews_state(profile: ProfileSnapshot) -> CoachingState:
    count = profile.new_reviews_count
    stage = underlying_stage(profile)
    message = (
        f"{_addressee(profile)}, you have {pluralize(count, 'new review')} waiting!\n\n"
        "Responding quickly shows customers you care and boosts your reputation.\n\n"
        "Want me to draft the responses? I'll handle the heavy lifting."
    )
    label = "Reply to Review" if count == 1 else "Reply to Reviews"
    return CoachingState(
        stage=stage,
        message=message,
        call_to_action=CallToAction(label=label, action=REPLY_TO_REVIEWS_ACTION),
        completed_items=_completed_items(stage),
        reviews_alert=True,
    )


def _business_details_state(profile: ProfileSnapshot) -> CoachingState:
    message = (
        "Let's get started on the right foot. Before we can analyze your business and build your"
        " growth strategy, complete your Business Details.\n\n"
        "This is your foundation: everything else builds on it."
    )
    return CoachingState(
        stage="business_details",
        message=message,
        call_to_action=CallToAction(label="Complete Business Details", action=BUSINESS_DETAILS_ID),
    )


def _audit_a_state(profile: ProfileSnapshot) -> CoachingState:
    message = (
        "Great work! Your business details are set up.\n\n"
        "Now it's time for your Google Business Profile audit. Your profile is often the first"
        " thing customers see when they search for you.\n\n"
        "Today's mission: run the audit so we can see what's holding your ranking back."
    )
    return CoachingState(
        stage="audit_a",
        message=message,
        call_to_action=CallToAction(label="Run Business Profile Audit", action=AUDIT_A_ID),
        completed_items=_completed_items("audit_a"),
    )


def _audit_b_state(profile: ProfileSnapshot) -> CoachingState:
    message = (
        "Excellent progress! Your profile audit is done.\n\n"
        "Next up is your website analysis. Your website needs to turn visitors into customers.\n\n"
        "Today's mission: run the website audit to uncover conversion, SEO and trust gaps."
    )
    return CoachingState(
        stage="audit_b",
        message=message,
        call_to_action=CallToAction(label="Run Website Audit", action=AUDIT_B_ID),
        completed_items=_completed_items("audit_b"),
    )


def progress_narrative(completed: int, pending: int) -> str:
    """Return the narrative for the completion band of a growth plan."""

    total = completed + pending
    if completed == 0:
        return (
            "Excellent work! Your business details and both audits are done, and that foundation"
            " is further than most businesses ever get.\n\n"
            f"Now it's time to execute. You have {pluralize(pending, 'task')} in your Growth Plan."
        )
    percent = round(completed / total * 100)
    if completed * 2 < total:
        return (
            f"Good progress! You've completed {completed} of {total} tasks ({percent}% done).\n\n"
            f"You're building momentum. Keep going: {pluralize(pending, 'task')} remaining."
        )
    if completed < total:
        return (
            f"You're crushing it! You've completed {completed} of {total} tasks ({percent}% done).\n\n"
            f"You're over halfway there. Stay focused: {pluralize(pending, 'task')} to go."
        )
    return "Outstanding! You've completed every task. Time to run another audit for fresh ones."


def _growth_plan_state(profile: ProfileSnapshot) -> CoachingState:
    pending = profile.pending_tasks
    completed = profile.completed_tasks
    todays_tasks = tuple(pending[:MAX_TODAYS_TASKS])
    narrative = progress_narrative(len(completed), len(pending))
    return CoachingState(
        stage="growth_plan",
        message="Here's what you need to focus on today:",
        message_intro=narrative,
        call_to_action=CallToAction(label="View Full Growth Plan", action=GROWTH_PLAN_ID),
        completed_items=_completed_items("growth_plan"),
        todays_tasks=todays_tasks,
        show_upsell=any(should_upsell(task) for task in todays_tasks),
    )


def recommend_tools(usage: Mapping[str, int], *, limit: int = MAX_RECOMMENDED_TOOLS) -> tuple[str, ...]:
    """Return the least-used execution tools, ties broken by catalog order."""

    ranked = sorted(
        enumerate(EXECUTION_TOOLS),
        key=lambda item: (usage.get(item[1], 0), item[0]),
    )
    return tuple(tool_id for _, tool_id in ranked[:limit])


def _daily_tools_state(profile: ProfileSnapshot) -> CoachingState:
    recommended = recommend_tools(profile.tool_usage)
    names = [tool_name(tool_id) for tool_id in recommended]
    bullet_list = "\n".join(f"- {name}" for name in names)
    message = (
        "Outstanding work! Your Growth Plan is complete.\n\n"
        "Now it's about keeping momentum. Today, try the tools you've used least:\n\n"
        f"{bullet_list}\n\n"
        "Consistent daily action is what separates growing businesses from stagnant ones."
    )
    return CoachingState(
        stage="daily_tools",
        message=message,
        completed_items=_completed_items("daily_tools"),
        recommended_tools=recommended,
    )


__all__ = [
    "MAX_RECOMMENDED_TOOLS",
    "MAX_TODAYS_TASKS",
    "explain_stage",
    "progress_narrative",
    "recommend_tools",
    "resolve",
    "underlying_stage",
]
