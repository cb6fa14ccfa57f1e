"""Domain models describing a user's growth journey and the derived coaching state."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import math
from typing import Any, Literal, Mapping, Sequence

Stage = Literal["business_details", "audit_a", "audit_b", "growth_plan", "daily_tools"]
TaskStatus = Literal["pending", "completed"]

STAGES: tuple[Stage, ...] = ("business_details", "audit_a", "audit_b", "growth_plan", "daily_tools")


def _parse_datetime(value: Any) -> datetime | None:
    """Coerce an ISO string or datetime into a timezone-aware UTC datetime."""

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _text_value(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _optional_str(value: Any) -> str | None:
    text = _text_value(value)
    return text or None


def _flag(value: Any) -> bool:
    """Interpret loosely-typed completion markers from the profile provider."""

    if isinstance(value, bool):
        return value
    if isinstance(value, Mapping):
        # Audit payloads may arrive as {"completed": true} or as the raw analysis.
        if "completed" in value:
            return _flag(value["completed"])
        return len(value) > 0
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1", "completed"}
    if isinstance(value, (int, float)):
        return value > 0
    return False


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(int(value), 0)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return 0


def _pick(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


@dataclass(slots=True, frozen=True)
class GrowthTask:
    """A single actionable item in the user's growth plan."""

    id: str
    title: str
    description: str = ""
    status: TaskStatus = "pending"
    source_module: str | None = None
    effort: str = ""
    created_at: datetime | None = None
    completion_date: datetime | None = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "GrowthTask":
        """Build a task from provider data, accepting camelCase or snake_case keys."""

        payload = data if isinstance(data, Mapping) else {}
        status = _text_value(payload.get("status")).lower()
        raw_id = _pick(payload, "id", "task_id")
        return cls(
            id=str(raw_id).strip() if raw_id is not None else "",
            title=_text_value(payload.get("title")),
            description=_text_value(payload.get("description")),
            status="completed" if status == "completed" else "pending",
            source_module=_optional_str(_pick(payload, "sourceModule", "source_module")),
            effort=_text_value(payload.get("effort")),
            created_at=_parse_datetime(_pick(payload, "createdAt", "created_at")),
            completion_date=_parse_datetime(_pick(payload, "completionDate", "completion_date")),
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "source_module": self.source_module,
            "effort": self.effort,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completion_date": self.completion_date.isoformat() if self.completion_date else None,
        }


@dataclass(slots=True, frozen=True)
class ProfileSnapshot:
    """Read-only view of the business profile supplied by the host application."""

    business_name: str = ""
    business_website: str = ""
    industry: str = ""
    audit_a_completed: bool = False
    audit_b_completed: bool = False
    tasks: tuple[GrowthTask, ...] = ()
    new_reviews_count: int = 0
    tool_usage: Mapping[str, int] = field(default_factory=dict)
    user_first_name: str = ""
    brand_approved: bool = False
    listing_verified: bool = False

    @property
    def has_business_details(self) -> bool:
        return bool(self.business_name and self.business_website and self.industry)

    @property
    def pending_tasks(self) -> list[GrowthTask]:
        return [task for task in self.tasks if not task.is_completed]

    @property
    def completed_tasks(self) -> list[GrowthTask]:
        return [task for task in self.tasks if task.is_completed]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "ProfileSnapshot":
        """Create a snapshot from a loosely structured payload.

        Both a flat layout and the nested ``{"business": {...}}`` layout used by
        the profile service are accepted. Anything missing or of the wrong type
        falls back to its "incomplete" default so that stage resolution can
        always proceed.
        """

        payload = data if isinstance(data, Mapping) else {}
        business = payload.get("business")
        business = business if isinstance(business, Mapping) else {}
        audits = business.get("audits")
        audits = audits if isinstance(audits, Mapping) else {}

        raw_tasks = _pick(payload, "tasks", "growthPlanTasks", "growth_plan_tasks")
        tasks: list[GrowthTask] = []
        if isinstance(raw_tasks, Sequence) and not isinstance(raw_tasks, (str, bytes)):
            for item in raw_tasks:
                if isinstance(item, GrowthTask):
                    tasks.append(item)
                elif isinstance(item, Mapping):
                    tasks.append(GrowthTask.from_mapping(item))

        raw_usage = _pick(payload, "tool_usage", "toolUsage")
        usage: dict[str, int] = {}
        if isinstance(raw_usage, Mapping):
            for key, value in raw_usage.items():
                if isinstance(key, str) and key.strip():
                    usage[key.strip().lower()] = _count(value)

        listing = _pick(payload, "listing_verified", "listingVerified")
        if listing is None:
            google_business = payload.get("googleBusiness")
            if isinstance(google_business, Mapping):
                listing = _text_value(google_business.get("status")).lower() == "verified"

        return cls(
            business_name=_text_value(_pick(payload, "business_name", "businessName") or business.get("business_name")),
            business_website=_text_value(
                _pick(payload, "business_website", "businessWebsite") or business.get("business_website")
            ),
            industry=_text_value(_pick(payload, "industry", "category") or business.get("industry")),
            audit_a_completed=_flag(_pick(payload, "audit_a_completed", "auditACompleted") or audits.get("audit_a")),
            audit_b_completed=_flag(_pick(payload, "audit_b_completed", "auditBCompleted") or audits.get("audit_b")),
            tasks=tuple(tasks),
            new_reviews_count=_count(_pick(payload, "new_reviews_count", "newReviewsCount")),
            tool_usage=usage,
            user_first_name=_text_value(_pick(payload, "user_first_name", "userFirstName")),
            brand_approved=_flag(_pick(payload, "brand_approved", "isDnaApproved") or business.get("isDnaApproved")),
            listing_verified=_flag(listing),
        )


@dataclass(slots=True, frozen=True)
class CallToAction:
    """Primary button rendered beneath the coach message."""

    label: str
    action: str


@dataclass(slots=True, frozen=True)
class CoachingState:
    """What the coach shows for a given snapshot. Recomputed, never stored."""

    stage: Stage
    message: str
    message_intro: str | None = None
    call_to_action: CallToAction | None = None
    completed_items: tuple[str, ...] = ()
    todays_tasks: tuple[GrowthTask, ...] = ()
    show_upsell: bool = False
    reviews_alert: bool = False
    recommended_tools: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, object]:
        """Serialise the state for JSON responses or templating."""

        return {
            "stage": self.stage,
            "message": self.message,
            "message_intro": self.message_intro,
            "call_to_action": (
                {"label": self.call_to_action.label, "action": self.call_to_action.action}
                if self.call_to_action
                else None
            ),
            "completed_items": list(self.completed_items),
            "todays_tasks": [task.as_dict() for task in self.todays_tasks],
            "show_upsell": self.show_upsell,
            "reviews_alert": self.reviews_alert,
            "recommended_tools": list(self.recommended_tools),
        }


__all__ = [
    "CallToAction",
    "CoachingState",
    "GrowthTask",
    "ProfileSnapshot",
    "STAGES",
    "Stage",
    "TaskStatus",
]
