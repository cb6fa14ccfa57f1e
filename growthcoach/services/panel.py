"""Presentation glue between the host dashboard and the coaching engine."""
from __future__ import annotations

from datetime import datetime, timezone, tzinfo
import logging
from typing import Any, Callable

from growthcoach.models.coaching import CoachingState, GrowthTask, ProfileSnapshot
from growthcoach.services import context_builder, stage_resolver, task_router
from growthcoach.services.assistant import AssistantBackend
from growthcoach.services.catalog import REPLY_TO_REVIEWS_ACTION, tool_name
from growthcoach.services.chat_session import ChatSession, seed_for_task
from growthcoach.services.events import NAVIGATE, TASK_STATUS_CHANGED, TOUR_RESTART, EventBus
from growthcoach.utils.text import time_of_day_greeting

logger = logging.getLogger(__name__)

UPSELL_MESSAGE = "Need professional help? Our experts can execute this for you."

NavigateCallback = Callable[[str], None]
TaskStatusCallback = Callable[[str, str], None]


class CoachPanel:
    """Single presentation layer for the coach card and its chat panel.

    Callbacks are injected by the application root; the panel never reaches
    for global state. Every snapshot change must be pushed through
    :meth:`update`, which recomputes the coaching state synchronously.
    """

    def __init__(
        self,
        snapshot: ProfileSnapshot,
        *,
        on_navigate: NavigateCallback,
        on_task_status_change: TaskStatusCallback,
        on_reply_to_reviews: Callable[[], None] | None = None,
        events: EventBus | None = None,
        backend: AssistantBackend | None = None,
        user_id: str | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self._on_navigate = on_navigate
        self._on_task_status_change = on_task_status_change
        self._on_reply_to_reviews = on_reply_to_reviews
        self._events = events or EventBus()
        self._backend = backend
        self._user_id = user_id
        self._tz = tz
        self._chat: ChatSession | None = None
        self._snapshot = snapshot
        self._state = stage_resolver.resolve(snapshot)

    @property
    def snapshot(self) -> ProfileSnapshot:
        return self._snapshot

    @property
    def state(self) -> CoachingState:
        return self._state

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def chat(self) -> ChatSession | None:
        return self._chat

    def update(self, snapshot: ProfileSnapshot) -> CoachingState:
        self._snapshot = snapshot
        self._state = stage_resolver.resolve(snapshot)
        if self._chat is not None and not self._chat.is_closed:
            self._chat.update_profile(snapshot, self._state)
        return self._state

    def greeting(self, now: datetime | None = None) -> str:
        """Salute the viewer according to their local hour.

        Without a viewer timezone, an explicit ``now`` is taken as already local
        and the current time falls back to the host clock.
        """

        moment = now or datetime.now(timezone.utc)
        if self._tz is not None:
            moment = moment.astimezone(self._tz)
        elif now is None:
            moment = moment.astimezone()
        name = self._snapshot.user_first_name or "there"
        return f"{time_of_day_greeting(moment)}, {name}!"

    def activate_call_to_action(self) -> None:
        cta = self._state.call_to_action
        if cta is None:
            return
        if cta.action == REPLY_TO_REVIEWS_ACTION and self._on_reply_to_reviews is not None:
            self._on_reply_to_reviews()
            return
        self.navigate(cta.action)

    def navigate(self, tool_id: str) -> None:
        self._on_navigate(tool_id)
        self._events.publish(NAVIGATE, tool_id=tool_id)

    def open_task(self, task: GrowthTask) -> str:
        target = task_router.route(task)
        self.navigate(target)
        return target

    def complete_task(self, task_id: str) -> None:
        """Report completion to the profile provider. The snapshot refresh arrives via :meth:`update`."""

        self._on_task_status_change(task_id, "completed")
        self._events.publish(TASK_STATUS_CHANGED, task_id=task_id, status="completed")

    def restart_tour(self) -> None:
        self._events.publish(TOUR_RESTART)

    def explain(self) -> dict[str, Any]:
        return {
            "explanation": stage_resolver.explain_stage(self._state.stage),
            "upsell": UPSELL_MESSAGE if self._state.show_upsell else None,
        }

    def open_chat(self, task: GrowthTask | None = None) -> ChatSession:
        """Open a fresh chat session, optionally seeded with a question about ``task``."""

        if self._backend is None:
            raise RuntimeError("No assistant backend configured for the coach panel.")
        if self._chat is not None:
            self._chat.close()
        self._chat = ChatSession(
            self._backend,
            profile=self._snapshot,
            state=self._state,
            user_id=self._user_id,
        )
        seed = seed_for_task(task.title) if task is not None and task.title else None
        self._chat.open(seed)
        return self._chat

    def close_chat(self) -> None:
        if self._chat is not None:
            self._chat.close()
            self._chat = None

    def view_model(self, now: datetime | None = None) -> dict[str, Any]:
        """Everything the coach template needs to render the card."""

        context = context_builder.build(self._snapshot, self._state, ())
        tasks = [
            {"task": task, "target": task_router.route(task)}
            for task in self._state.todays_tasks
        ]
        return {
            "greeting": self.greeting(now),
            "state": self._state,
            "tasks": tasks,
            "recommended_tools": [
                {"id": tool_id, "name": tool_name(tool_id)} for tool_id in self._state.recommended_tools
            ],
            "growth_score": context.growth_score_estimate,
            "quick_actions": context_builder.quick_actions(context),
            **self.explain(),
        }


__all__ = ["CoachPanel", "UPSELL_MESSAGE"]
