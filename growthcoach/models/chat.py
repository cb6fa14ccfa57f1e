"""Domain models used by the conversational coaching experience."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Literal, Mapping, Sequence
import uuid

ChatRole = Literal["user", "assistant"]
MessageKind = Literal["greeting", "reply", "notice", "error"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_message_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class ChatMessage:
    """A single rendered turn in the coach conversation."""

    role: ChatRole
    content: str
    kind: MessageKind = "reply"
    id: str = field(default_factory=_new_message_id)
    timestamp: datetime = field(default_factory=_utcnow)

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "kind": self.kind,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class CoachContext:
    """Business context attached to every assistant request."""

    business_name: str
    industry: str
    completed_audit_names: tuple[str, ...] = ()
    pending_task_count: int = 0
    new_review_count: int = 0
    growth_score_estimate: int = 0
    recent_history: tuple[str, ...] = ()
    user_name: str = ""
    urgent_task_titles: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        """Serialise using the camelCase keys of the assistant wire format."""

        return {
            "businessName": self.business_name,
            "industry": self.industry,
            "completedAuditNames": list(self.completed_audit_names),
            "pendingTaskCount": self.pending_task_count,
            "newReviewCount": self.new_review_count,
            "growthScoreEstimate": self.growth_score_estimate,
            "recentHistory": list(self.recent_history),
            "userName": self.user_name,
            "urgentTaskTitles": list(self.urgent_task_titles),
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CoachContext":
        payload = data if isinstance(data, Mapping) else {}

        def _strings(value: Any) -> tuple[str, ...]:
            if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
                return tuple(str(item) for item in value if isinstance(item, str) and item.strip())
            return ()

        def _int(value: Any) -> int:
            return value if isinstance(value, int) and not isinstance(value, bool) else 0

        return cls(
            business_name=str(payload.get("businessName") or ""),
            industry=str(payload.get("industry") or ""),
            completed_audit_names=_strings(payload.get("completedAuditNames")),
            pending_task_count=_int(payload.get("pendingTaskCount")),
            new_review_count=_int(payload.get("newReviewCount")),
            growth_score_estimate=_int(payload.get("growthScoreEstimate")),
            recent_history=_strings(payload.get("recentHistory")),
            user_name=str(payload.get("userName") or ""),
            urgent_task_titles=_strings(payload.get("urgentTaskTitles")),
        )


@dataclass(slots=True)
class CoachQuestion:
    """The user's question presented to the coach agent."""

    text: str
    context: CoachContext | None = None
    history: Sequence[str] = ()

    def stripped(self) -> str:
        """Return a trimmed representation of the question text."""

        return self.text.strip()


@dataclass(slots=True, frozen=True)
class AssistantReply:
    """Reply returned by the assistant backend, including the server's quota view."""

    text: str
    remaining_questions: int
    daily_limit: int

    def as_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "remainingQuestions": self.remaining_questions,
            "dailyLimit": self.daily_limit,
        }


@dataclass(slots=True, frozen=True)
class QuotaDecision:
    """Outcome of an atomic consume attempt against the quota store."""

    user_id: str
    day: date
    allowed: bool
    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)


__all__ = [
    "AssistantReply",
    "ChatMessage",
    "ChatRole",
    "CoachContext",
    "CoachQuestion",
    "MessageKind",
    "QuotaDecision",
]
