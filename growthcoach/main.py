"""FastAPI web application for the Growth Coach dashboard"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from functools import lru_cache
import logging
from pathlib import Path
import threading
from typing import Any, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from google.auth.exceptions import DefaultCredentialsError
from pydantic import BaseModel, ConfigDict, Field, field_validator

from growthcoach.models.chat import CoachContext
from growthcoach.models.coaching import GrowthTask, ProfileSnapshot
from growthcoach.services import stage_resolver, task_router
from growthcoach.services.assistant import (
    AssistantAuthError,
    AssistantBackend,
    AssistantUnavailableError,
    CoachAgent,
    InProcessAssistantBackend,
    create_coach_llm,
)
from growthcoach.services.panel import CoachPanel
from growthcoach.services.quota import create_quota_store

app = FastAPI(title="Growth Coach")

TEMPLATE_DIR = Path(__file__).parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

logger = logging.getLogger(__name__)


def _build_debug_detail(exc: Exception) -> dict[str, str]:
    """Return a serialisable mapping describing ``exc`` for debugging."""

    message = str(exc).strip()
    return {
        "type": type(exc).__name__,
        "message": message or "No exception message provided.",
    }


class SnapshotProvider(Protocol):
    """Contract for the host application's profile data."""

    def get_snapshot(self, user_id: str) -> ProfileSnapshot | None:
        """Return the current snapshot for ``user_id`` or ``None`` when unknown."""

    def set_task_status(self, user_id: str, task_id: str, status: str) -> bool:
        """Record a task status change; return ``False`` when the task is unknown."""


class InMemorySnapshotProvider:
    """Snapshot provider used for local development when no profile service is wired in."""

    def __init__(self, snapshots: dict[str, ProfileSnapshot] | None = None) -> None:
        self._snapshots = dict(snapshots or {})
        self._lock = threading.Lock()

    def get_snapshot(self, user_id: str) -> ProfileSnapshot | None:
        with self._lock:
            return self._snapshots.get(user_id)

    def set_task_status(self, user_id: str, task_id: str, status: str) -> bool:
        if status != "completed":
            raise ValueError("Tasks can only transition from pending to completed.")
        with self._lock:
            snapshot = self._snapshots.get(user_id)
            if snapshot is None:
                return False
            tasks = list(snapshot.tasks)
            for index, task in enumerate(tasks):
                if task.id == task_id:
                    if not task.is_completed:
                        tasks[index] = replace(
                            task, status="completed", completion_date=datetime.now(timezone.utc)
                        )
                    self._snapshots[user_id] = replace(snapshot, tasks=tuple(tasks))
                    return True
        return False


def _demo_snapshot() -> ProfileSnapshot:
    return ProfileSnapshot.from_mapping(
        {
            "userFirstName": "Sam",
            "businessName": "Harbor Street Bakery",
            "businessWebsite": "https://harborstreetbakery.example",
            "industry": "Bakery",
            "auditACompleted": True,
            "auditBCompleted": True,
            "tasks": [
                {
                    "id": "task-1",
                    "title": "Add weekend hours to your Google listing",
                    "description": "Customers search for Saturday hours.",
                    "status": "completed",
                    "sourceModule": "profile_audit",
                    "effort": "Low",
                },
                {
                    "id": "task-2",
                    "title": "Improve homepage load speed",
                    "description": "Compress hero images.",
                    "sourceModule": "website_audit",
                    "effort": "Medium",
                },
                {
                    "id": "task-3",
                    "title": "Post a behind-the-scenes photo",
                    "description": "Show the morning bake.",
                    "sourceModule": "social_posts",
                    "effort": "Low",
                },
            ],
        }
    )


@lru_cache(maxsize=1)
def get_snapshot_provider() -> SnapshotProvider:
    """Resolve the profile snapshot provider (in-memory demo data by default)."""

    return InMemorySnapshotProvider({"demo": _demo_snapshot()})


@lru_cache(maxsize=1)
def _cached_assistant_backend() -> AssistantBackend:
    agent = CoachAgent(llm=create_coach_llm())
    return InProcessAssistantBackend(agent, create_quota_store())


def get_assistant_backend() -> AssistantBackend:
    """FastAPI dependency returning the shared quota-enforcing assistant backend."""

    try:
        return _cached_assistant_backend()
    except (DefaultCredentialsError, RuntimeError) as exc:
        logger.exception("Assistant backend initialisation failed", extra={"event": "coach.backend_init"})
        raise HTTPException(
            status_code=503,
            detail={
                "message": "Coach service temporarily unavailable",
                "debug": _build_debug_detail(exc),
            },
        ) from exc


def _viewer_timezone(name: str | None) -> ZoneInfo | None:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown viewer timezone %r; using server time", name, extra={"event": "coach.bad_timezone"})
        return None


def _require_snapshot(provider: SnapshotProvider, user_id: str) -> ProfileSnapshot:
    snapshot = provider.get_snapshot(user_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return snapshot


class ChatRequest(BaseModel):
    """Payload submitted by the chat panel."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="The question for the coach.")
    context: dict[str, Any] = Field(default_factory=dict)
    recent_history: list[str] = Field(default_factory=list, alias="recentHistory")
    user_id: str | None = Field(default=None, alias="userId")

    @field_validator("message")
    @classmethod
    def _ensure_message_not_empty(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Message must not be empty.")
        return cleaned


class ChatResponse(BaseModel):
    """Coach reply plus the server's view of the caller's quota."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    remaining_questions: int = Field(..., alias="remainingQuestions")
    daily_limit: int = Field(..., alias="dailyLimit")


class RouteRequest(BaseModel):
    task: dict[str, Any] = Field(default_factory=dict)


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.post("/api/coach/resolve")
async def resolve_snapshot(payload: dict[str, Any]) -> dict[str, object]:
    """Resolve an arbitrary snapshot payload into a coaching state."""

    return stage_resolver.resolve(payload).as_dict()


@app.post("/api/coach/route")
async def route_task(payload: RouteRequest) -> dict[str, str]:
    return {"toolId": task_router.route(GrowthTask.from_mapping(payload.task))}


@app.get("/api/coach/{user_id}/state")
async def coaching_state(
    user_id: str,
    provider: SnapshotProvider = Depends(get_snapshot_provider),
) -> dict[str, object]:
    """Return the current coaching state for ``user_id``."""

    snapshot = _require_snapshot(provider, user_id)
    return stage_resolver.resolve(snapshot).as_dict()


@app.post("/api/coach/{user_id}/tasks/{task_id}/complete")
async def complete_task(
    user_id: str,
    task_id: str,
    provider: SnapshotProvider = Depends(get_snapshot_provider),
) -> dict[str, object]:
    """Mark a task completed and return the recomputed coaching state."""

    if not provider.set_task_status(user_id, task_id, "completed"):
        raise HTTPException(status_code=404, detail="Task not found")
    logger.info("Growth task completed", extra={"event": "coach.task_completed", "task_id": task_id})
    return stage_resolver.resolve(_require_snapshot(provider, user_id)).as_dict()


@app.post("/api/coach/chat", response_model=ChatResponse)
async def coach_chat(
    payload: ChatRequest,
    backend: AssistantBackend = Depends(get_assistant_backend),
) -> ChatResponse:
    """Answer a coach question, enforcing the per-user daily quota."""

    if not payload.user_id:
        raise HTTPException(status_code=401, detail="Authentication required")

    logger.info(
        "Coach chat received",
        extra={"event": "coach.chat", "question_length": len(payload.message)},
    )

    try:
        reply = backend.reply(
            payload.message,
            CoachContext.from_mapping(payload.context),
            payload.recent_history,
            payload.user_id,
        )
    except AssistantAuthError as exc:
        raise HTTPException(status_code=401, detail="Authentication required") from exc
    except AssistantUnavailableError as exc:
        raise HTTPException(
            status_code=503,
            detail={"message": "Coach language model unavailable", "debug": _build_debug_detail(exc)},
        ) from exc

    return ChatResponse(
        text=reply.text,
        remaining_questions=reply.remaining_questions,
        daily_limit=reply.daily_limit,
    )


@app.get("/coach/{user_id}", response_class=HTMLResponse)
async def coach_page(
    request: Request,
    user_id: str,
    tz: str | None = None,
    provider: SnapshotProvider = Depends(get_snapshot_provider),
) -> HTMLResponse:
    """Render the coach card for ``user_id`` in the viewer's ``tz`` (IANA name)."""

    snapshot = _require_snapshot(provider, user_id)
    panel = CoachPanel(
        snapshot,
        on_navigate=lambda _tool_id: None,
        on_task_status_change=lambda task_id, status: provider.set_task_status(user_id, task_id, status),
        tz=_viewer_timezone(tz),
    )
    return templates.TemplateResponse(
        request,
        "coach.html",
        {"title": "Your Growth Coach", "user_id": user_id, **panel.view_model()},
    )
