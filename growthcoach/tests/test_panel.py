from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import RecordingBackend, make_snapshot, make_task
from growthcoach.models.chat import AssistantReply
from growthcoach.services.catalog import GROWTH_PLAN_ID, REPLY_TO_REVIEWS_ACTION
from growthcoach.services.events import NAVIGATE, TASK_STATUS_CHANGED, TOUR_RESTART, EventBus
from growthcoach.services.panel import UPSELL_MESSAGE, CoachPanel


class _Recorder:
    def __init__(self) -> None:
        self.navigations: list[str] = []
        self.status_changes: list[tuple[str, str]] = []
        self.review_replies = 0

    def navigate(self, tool_id: str) -> None:
        self.navigations.append(tool_id)

    def task_status(self, task_id: str, status: str) -> None:
        self.status_changes.append((task_id, status))

    def reply_to_reviews(self) -> None:
        self.review_replies += 1


def _panel(snapshot, recorder: _Recorder, **kwargs) -> CoachPanel:
    return CoachPanel(
        snapshot,
        on_navigate=recorder.navigate,
        on_task_status_change=recorder.task_status,
        **kwargs,
    )


def test_greeting_depends_on_time_of_day() -> None:
    panel = _panel(make_snapshot(), _Recorder())

    assert panel.greeting(datetime(2024, 5, 1, 8, tzinfo=timezone.utc)) == "Good morning, Sam!"
    assert panel.greeting(datetime(2024, 5, 1, 13, tzinfo=timezone.utc)) == "Good afternoon, Sam!"
    assert panel.greeting(datetime(2024, 5, 1, 21, tzinfo=timezone.utc)) == "Good evening, Sam!"


def test_greeting_uses_viewer_timezone() -> None:
    panel = _panel(make_snapshot(), _Recorder(), tz=timezone(timedelta(hours=-5)))

    assert panel.greeting(datetime(2024, 5, 1, 13, tzinfo=timezone.utc)) == "Good morning, Sam!"
    assert panel.greeting(datetime(2024, 5, 1, 2, tzinfo=timezone.utc)) == "Good evening, Sam!"


def test_update_recomputes_state() -> None:
    recorder = _Recorder()
    panel = _panel(make_snapshot(business_name=""), recorder)

    state = panel.update(make_snapshot(tasks=(make_task("a"),)))

    assert state.stage == "growth_plan"
    assert panel.state is state


def test_call_to_action_navigates_or_replies_to_reviews() -> None:
    recorder = _Recorder()
    panel = _panel(make_snapshot(business_name=""), recorder, on_reply_to_reviews=recorder.reply_to_reviews)

    panel.activate_call_to_action()
    panel.update(make_snapshot(new_reviews_count=3))
    panel.activate_call_to_action()

    assert recorder.navigations == ["business_details"]
    assert recorder.review_replies == 1


def test_reviews_call_to_action_without_handler_navigates() -> None:
    recorder = _Recorder()
    panel = _panel(make_snapshot(new_reviews_count=1), recorder)

    panel.activate_call_to_action()

    assert recorder.navigations == [REPLY_TO_REVIEWS_ACTION]


def test_open_task_uses_router_and_publishes_event() -> None:
    recorder = _Recorder()
    bus = EventBus()
    seen: list[str] = []
    bus.subscribe(NAVIGATE, lambda tool_id: seen.append(tool_id))
    panel = _panel(make_snapshot(), recorder, events=bus)

    first = panel.open_task(make_task("a", source_module="profile_audit"))
    second = panel.open_task(make_task("b", source_module="ad_copy"))

    assert (first, second) == (GROWTH_PLAN_ID, "ad_copy")
    assert recorder.navigations == seen == [GROWTH_PLAN_ID, "ad_copy"]


def test_complete_task_reports_through_callback_and_bus() -> None:
    recorder = _Recorder()
    bus = EventBus()
    events: list[dict] = []
    bus.subscribe(TASK_STATUS_CHANGED, lambda **payload: events.append(payload))
    panel = _panel(make_snapshot(tasks=(make_task("a"),)), recorder, events=bus)

    panel.complete_task("a")

    assert recorder.status_changes == [("a", "completed")]
    assert events == [{"task_id": "a", "status": "completed"}]


def test_restart_tour_goes_through_event_bus() -> None:
    bus = EventBus()
    restarts: list[bool] = []
    bus.subscribe(TOUR_RESTART, lambda: restarts.append(True))

    _panel(make_snapshot(), _Recorder(), events=bus).restart_tour()

    assert restarts == [True]


def test_event_bus_isolates_failing_handlers() -> None:
    bus = EventBus()
    calls: list[str] = []

    def _broken() -> None:
        raise RuntimeError("boom")

    bus.subscribe(TOUR_RESTART, _broken)
    unsubscribe = bus.subscribe(TOUR_RESTART, lambda: calls.append("ok"))

    assert bus.publish(TOUR_RESTART) == 1
    unsubscribe()
    assert bus.publish(TOUR_RESTART) == 0
    assert calls == ["ok"]


def test_explain_includes_upsell_only_when_flagged() -> None:
    plain = _panel(make_snapshot(tasks=(make_task("a", title="Post a photo"),)), _Recorder())
    flagged = _panel(make_snapshot(tasks=(make_task("a", title="Add schema markup"),)), _Recorder())

    assert plain.explain()["upsell"] is None
    assert flagged.explain()["upsell"] == UPSELL_MESSAGE
    assert flagged.explain()["explanation"]


def test_open_chat_about_task_seeds_hidden_question(backend: RecordingBackend) -> None:
    task = make_task("a", title="Add schema markup")
    panel = _panel(make_snapshot(tasks=(task,)), _Recorder(), backend=backend, user_id="user-1")

    session = panel.open_chat(task)

    assert 'the task: "Add schema markup"' in backend.calls[0]["message"]
    assert [m.role for m in session.messages] == ["assistant"]


def test_reopening_chat_closes_previous_session(backend: RecordingBackend) -> None:
    panel = _panel(make_snapshot(), _Recorder(), backend=backend, user_id="user-1")

    first = panel.open_chat()
    second = panel.open_chat()

    assert first.is_closed
    assert not second.is_closed
    assert backend.calls == []


def test_open_chat_requires_backend() -> None:
    with pytest.raises(RuntimeError):
        _panel(make_snapshot(), _Recorder()).open_chat()


def test_chat_sees_profile_updates(backend: RecordingBackend) -> None:
    backend.replies.append(AssistantReply("ok", 4, 5))
    panel = _panel(make_snapshot(), _Recorder(), backend=backend, user_id="user-1")
    session = panel.open_chat()

    panel.update(make_snapshot(new_reviews_count=4))
    session.send("What now?")

    assert backend.calls[0]["context"].new_review_count == 4


def test_view_model_lists_task_targets() -> None:
    tasks = (make_task("a", source_module="website_audit"), make_task("b", source_module="social_posts"))
    panel = _panel(make_snapshot(tasks=tasks), _Recorder())

    view = panel.view_model(datetime(2024, 5, 1, 9, tzinfo=timezone.utc))

    assert view["greeting"] == "Good morning, Sam!"
    assert [entry["target"] for entry in view["tasks"]] == [GROWTH_PLAN_ID, "social_posts"]
    assert view["growth_score"] == 10
