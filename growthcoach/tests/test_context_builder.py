from __future__ import annotations

from conftest import make_snapshot, make_task
from growthcoach.models.chat import ChatMessage, CoachContext
from growthcoach.services import context_builder
from growthcoach.services.stage_resolver import resolve


def _messages(count: int) -> list[ChatMessage]:
    return [
        ChatMessage(role="user" if index % 2 == 0 else "assistant", content=f"message {index}")
        for index in range(count)
    ]


def test_build_collects_business_context() -> None:
    tasks = (make_task("a"), make_task("b"), make_task("c", status="completed"))
    profile = make_snapshot(tasks=tasks, new_reviews_count=3, audit_b_completed=False)
    state = resolve(profile)

    context = context_builder.build(profile, state, [])

    assert context.business_name == "Harbor Street Bakery"
    assert context.industry == "Bakery"
    assert context.completed_audit_names == ("Business Profile Audit",)
    assert context.pending_task_count == 2
    assert context.new_review_count == 3
    assert context.user_name == "Sam"
    assert context.recent_history == ()


def test_recent_history_keeps_last_six_oldest_first() -> None:
    context = context_builder.build(make_snapshot(), None, _messages(9))

    assert len(context.recent_history) == 6
    assert context.recent_history[0] == "Coach: message 3"
    assert context.recent_history[-1] == "User: message 8"


def test_history_lines_are_single_line() -> None:
    history = [ChatMessage(role="user", content="first line\n\nsecond   line")]

    assert context_builder.recent_history(history) == ("User: first line second line",)


def test_urgent_tasks_come_from_state() -> None:
    profile = make_snapshot(tasks=tuple(make_task(str(i), title=f"Do {i}") for i in range(4)))

    context = context_builder.build(profile, resolve(profile), [])

    assert context.urgent_task_titles == ("Do 0", "Do 1", "Do 2")


def test_growth_score_components() -> None:
    assert context_builder.estimate_growth_score(make_snapshot(business_name="")) == 0
    assert context_builder.estimate_growth_score(make_snapshot()) == 10
    assert (
        context_builder.estimate_growth_score(make_snapshot(brand_approved=True, listing_verified=True)) == 35
    )


def test_task_points_are_capped_and_score_clamped() -> None:
    completed = tuple(make_task(str(i), status="completed") for i in range(20))
    profile = make_snapshot(tasks=completed, brand_approved=True, listing_verified=True)

    assert context_builder.estimate_growth_score(make_snapshot(tasks=completed)) == 60
    assert context_builder.estimate_growth_score(profile) == 85

    maxed = make_snapshot(tasks=completed, brand_approved=True, listing_verified=True)
    assert 0 <= context_builder.estimate_growth_score(maxed) <= 99


def test_quick_actions_for_new_user() -> None:
    context = CoachContext(business_name="", industry="", new_review_count=2, pending_task_count=1)

    actions = context_builder.quick_actions(context)

    assert actions[:3] == ["Run my first audit", "Set up my business profile", "Reply to 2 new reviews"]
    assert len(actions) == 6


def test_context_serialises_with_wire_keys() -> None:
    context = context_builder.build(make_snapshot(), None, _messages(2))

    payload = context.as_dict()

    assert payload["businessName"] == "Harbor Street Bakery"
    assert payload["recentHistory"] == ["User: message 0", "Coach: message 1"]
    assert CoachContext.from_mapping(payload) == context
