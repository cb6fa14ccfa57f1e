"""Conversation state for the coach assistant panel.

A session lives exactly as long as the open panel. It appends messages,
forwards questions to an :class:`~growthcoach.services.assistant.AssistantBackend`
and turns every outcome, including failures, into messages the UI can render.

``remaining_questions`` and ``daily_limit`` mirror the last reply from the
backend. They are a display cache only: the session never refuses to send
because of them, since the backend owns and enforces the quota.
"""
from __future__ import annotations

import logging
from typing import Callable

from growthcoach.models.chat import AssistantReply, ChatMessage, MessageKind
from growthcoach.models.coaching import CoachingState, ProfileSnapshot
from growthcoach.services import context_builder
from growthcoach.services.assistant import AssistantAuthError, AssistantBackend
from growthcoach.services.quota import DEFAULT_DAILY_LIMIT

logger = logging.getLogger(__name__)

RETRY_LATER_MESSAGE = "I'm having trouble connecting right now. Try asking me again in a moment!"
SIGN_IN_MESSAGE = "Please sign in again so I can answer your question."
LIMIT_REACHED_NOTICE = (
    "Daily question limit reached! You can ask me {limit} questions per day. "
    "Your limit resets tomorrow."
)
_LIMIT_MARKER = "daily limit"


def greeting_for(profile: ProfileSnapshot) -> str:
    name = profile.user_first_name or "there"
    return (
        f"Hi {name}! I'm here to help. Ask me anything about your growth strategy, "
        "your tools, or what you should focus on next!"
    )


def seed_for_task(task_title: str) -> str:
    """Hidden opening question used when the user asks about a specific task."""

    return (
        f'I have a question about the task: "{task_title}". '
        "What should I know about this task, and how can I complete it?"
    )


def _remaining_notice(remaining: int) -> str:
    noun = "question" if remaining == 1 else "questions"
    return f"You have {remaining} {noun} remaining today."


def _mentions_limit(text: str) -> bool:
    lowered = text.lower()
    return _LIMIT_MARKER in lowered or "limit reached" in lowered


class ChatSession:
    """Append-only conversation with quota-aware messaging."""

    def __init__(
        self,
        backend: AssistantBackend,
        *,
        profile: ProfileSnapshot,
        state: CoachingState | None = None,
        user_id: str | None = None,
        on_change: Callable[["ChatSession"], None] | None = None,
    ) -> None:
        self._backend = backend
        self._profile = profile
        self._state = state
        self._user_id = user_id
        self._on_change = on_change
        self._messages: list[ChatMessage] = []
        self._composing = False
        self._closed = False
        self._opened = False
        self.remaining_questions: int | None = None
        self.daily_limit: int = DEFAULT_DAILY_LIMIT

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def is_composing(self) -> bool:
        return self._composing

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def questions_used(self) -> int | None:
        if self.remaining_questions is None:
            return None
        return max(self.daily_limit - self.remaining_questions, 0)

    def open(self, seed_message: str | None = None) -> None:
        """Start the conversation.

        A seed message is sent straight away as a hidden user turn so the first
        visible message is a contextual reply. Without one, a static greeting
        is shown and the backend is not contacted.
        """

        if self._opened or self._closed:
            return
        self._opened = True
        if seed_message and seed_message.strip():
            self._exchange(seed_message.strip(), visible=False)
        else:
            self._append("assistant", greeting_for(self._profile), "greeting")

    def send(self, text: str) -> None:
        """Send a visible user message and append the assistant's answer."""

        if self._closed or not text or not text.strip():
            return
        self._exchange(text.strip(), visible=True)

    def update_profile(self, profile: ProfileSnapshot, state: CoachingState | None = None) -> None:
        """Refresh the business context used for subsequent questions."""

        self._profile = profile
        self._state = state

    def close(self) -> None:
        """Dispose of the session. Replies still in flight will be dropped."""

        self._closed = True
        self._on_change = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _exchange(self, text: str, *, visible: bool) -> None:
        history = list(self._messages)
        if visible:
            self._append("user", text, "reply")

        context = context_builder.build(self._profile, self._state, history)
        self._composing = True
        self._notify()
        logger.info(
            "Coach request sent",
            extra={"event": "coach.request", "question_length": len(text), "hidden": not visible},
        )
        try:
            reply = self._backend.reply(text, context, context.recent_history, self._user_id)
        except AssistantAuthError:
            logger.warning("Coach request rejected: unauthenticated", extra={"event": "coach.unauthenticated"})
            self._finish_with("assistant", SIGN_IN_MESSAGE, "error")
            return
        except Exception:
            logger.exception("Coach request failed", extra={"event": "coach.error", "reason": "backend"})
            self._finish_with("assistant", RETRY_LATER_MESSAGE, "error")
            return

        if self._closed:
            logger.debug("Dropping coach reply for closed session", extra={"event": "coach.reply_dropped"})
            return

        self._composing = False
        self._apply_reply(reply)

    def _apply_reply(self, reply: AssistantReply) -> None:
        self.remaining_questions = reply.remaining_questions
        if reply.daily_limit:
            self.daily_limit = reply.daily_limit

        self._append("assistant", reply.text, "reply")
        if reply.remaining_questions in (1, 2):
            self._append("assistant", _remaining_notice(reply.remaining_questions), "notice")
        elif reply.remaining_questions == 0 and not _mentions_limit(reply.text):
            self._append("assistant", LIMIT_REACHED_NOTICE.format(limit=self.daily_limit), "notice")

    def _finish_with(self, role: str, content: str, kind: MessageKind) -> None:
        if self._closed:
            return
        self._composing = False
        self._append(role, content, kind)

    def _append(self, role: str, content: str, kind: MessageKind) -> None:
        self._messages.append(ChatMessage(role=role, content=content, kind=kind))  # type: ignore[arg-type]
        self._notify()

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self)
        except Exception:
            logger.exception("Chat observer failed", extra={"event": "coach.observer_error"})


__all__ = [
    "ChatSession",
    "LIMIT_REACHED_NOTICE",
    "RETRY_LATER_MESSAGE",
    "SIGN_IN_MESSAGE",
    "greeting_for",
    "seed_for_task",
]
