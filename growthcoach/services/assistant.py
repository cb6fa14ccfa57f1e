"""Assistant backends answering coach questions under a daily quota."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import logging
import os
from typing import Any, Callable, Protocol, Sequence

import google.auth
import httpx
from langchain_community.chat_models import ChatOllama
from langchain_core.prompts import ChatPromptTemplate

from growthcoach.models.chat import AssistantReply, CoachContext, CoachQuestion
from growthcoach.services.quota import QuotaStore, utc_today

logger = logging.getLogger(__name__)

_DEFAULT_PERSONA = (
    "You are the Growth Coach, a motivational but direct marketing coach for local businesses."
    " Give concise, actionable answers of two to four sentences grounded in the business"
    " context provided. Empower the user to complete their growth-plan tasks and end by"
    " steering them back to taking action."
)

DAILY_LIMIT_REACHED_TEMPLATE = (
    "Daily limit reached! You can ask me {limit} questions per day. Come back tomorrow for more help!"
)


class AssistantError(Exception):
    """Base class for failures talking to the assistant backend."""


class AssistantUnavailableError(AssistantError):
    """The backend could not be reached or failed to produce a reply."""


class AssistantAuthError(AssistantError):
    """The request was not associated with an authenticated user."""


class AssistantBackend(Protocol):
    """Contract shared by the HTTP client and the in-process backend."""

    def reply(
        self,
        message: str,
        context: CoachContext,
        recent_history: Sequence[str],
        user_id: str | None,
    ) -> AssistantReply:
        """Answer ``message`` and report the caller's remaining quota."""


@dataclass(slots=True)
class CoachAgent:
    """Prompt construction and language-model invocation for coach answers."""

    llm: Any
    persona: str = _DEFAULT_PERSONA
    _prompt: ChatPromptTemplate = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{persona}"),
                (
                    "human",
                    "Business context:\n{context}\n\n"
                    "Recent conversation:\n{history}\n\n"
                    "User question:\n{question}",
                ),
            ]
        )

    def ask(self, question: CoachQuestion | str) -> str:
        """Answer ``question`` using the configured language model."""

        question_model = question if isinstance(question, CoachQuestion) else CoachQuestion(text=str(question))
        prompt_value = self._prompt.invoke(
            {
                "persona": self.persona,
                "context": _describe_context(question_model.context),
                "history": "\n".join(question_model.history) or "(no earlier messages)",
                "question": question_model.stripped(),
            }
        )
        response = self._invoke_llm(prompt_value)
        return self._extract_response_text(response).strip()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _invoke_llm(self, prompt_value: Any) -> Any:
        messages = prompt_value.to_messages() if hasattr(prompt_value, "to_messages") else prompt_value

        if hasattr(self.llm, "invoke"):
            return self.llm.invoke(messages)
        if callable(self.llm):
            return self.llm(messages)

        raise TypeError("LLM implementation must provide an 'invoke' method or be callable.")

    def _extract_response_text(self, response: Any) -> str:
        if response is None:
            return ""
        if isinstance(response, str):
            return response
        if hasattr(response, "content"):
            content = response.content
            if isinstance(content, list):
                return "".join(str(part) for part in content)
            return str(content)
        if isinstance(response, dict) and "content" in response:
            return str(response["content"])
        return str(response)


def _describe_context(context: CoachContext | None) -> str:
    if context is None:
        return "(no business context available)"
    audits = ", ".join(context.completed_audit_names) or "none yet"
    lines = [
        f"User: {context.user_name or 'unknown'}",
        f"Business: {context.business_name or 'unnamed business'} ({context.industry or 'industry unknown'})",
        f"Growth score: {context.growth_score_estimate}/99",
        f"Completed audits: {audits}",
        f"Pending tasks: {context.pending_task_count}",
        f"New reviews awaiting a reply: {context.new_review_count}",
    ]
    if context.urgent_task_titles:
        lines.append("Today's tasks: " + "; ".join(context.urgent_task_titles))
    return "\n".join(lines)


@dataclass(slots=True)
class LocalCoachResponder:
    """Deterministic responder for offline development and testing."""

    def invoke(self, messages: Any) -> str:
        question = _extract_question(messages)
        return (
            "Offline coach response: a production language model is unavailable, so here is"
            " general guidance. Pick the first task on today's list and finish it before"
            " starting anything new.\n\n"
            f"Question received: {question or 'No question provided.'}"
        )


def _extract_question(messages: Any) -> str:
    if isinstance(messages, str):
        return messages.strip()
    if isinstance(messages, Sequence):
        for message in reversed(messages):
            if isinstance(message, dict):
                role, content = message.get("role") or message.get("type"), message.get("content")
            else:
                role = getattr(message, "type", getattr(message, "role", ""))
                content = getattr(message, "content", "")
            if role in {"human", "user"} and isinstance(content, str):
                marker = "User question:\n"
                return content.split(marker, 1)[-1].strip()
    return ""


def create_coach_llm() -> Any:
    """Construct a chat client for the coach agent from the environment."""

    provider = (os.getenv("GROWTHCOACH_LLM_PROVIDER") or "ollama").strip().lower()

    if provider == "ollama":
        model = os.getenv("GROWTHCOACH_OLLAMA_MODEL") or "llama3.1:8b"
        base_url = os.getenv("GROWTHCOACH_OLLAMA_URL") or "http://127.0.0.1:11434"
        return ChatOllama(model=model, base_url=base_url)

    if provider == "vertex":
        from langchain_google_vertexai import ChatVertexAI

        project = os.getenv("GCP_PROJECT")
        if not project:
            _, project = google.auth.default()
        if not project:
            raise RuntimeError("Unable to determine the GCP project for Vertex AI.")
        return ChatVertexAI(
            model_name=os.getenv("GROWTHCOACH_VERTEX_MODEL") or "gemini-1.5-flash",
            temperature=float(os.getenv("GROWTHCOACH_MODEL_TEMPERATURE") or 0.4),
            max_output_tokens=int(os.getenv("GROWTHCOACH_MODEL_MAX_OUTPUT_TOKENS") or 512),
            location=os.getenv("GROWTHCOACH_VERTEX_LOCATION") or "us-central1",
            project=project,
        )

    return LocalCoachResponder()


class InProcessAssistantBackend:
    """Answer questions locally while enforcing the authoritative daily quota."""

    def __init__(
        self,
        agent: CoachAgent,
        quota_store: QuotaStore,
        *,
        today: Callable[[], date] = utc_today,
    ) -> None:
        self._agent = agent
        self._quota = quota_store
        self._today = today

    def reply(
        self,
        message: str,
        context: CoachContext,
        recent_history: Sequence[str],
        user_id: str | None,
    ) -> AssistantReply:
        if not user_id:
            raise AssistantAuthError("User not authenticated")

        day = self._today()
        decision = self._quota.try_consume(user_id, day)
        if not decision.allowed:
            logger.info(
                "Coach quota exhausted",
                extra={"event": "coach.quota_exhausted", "limit": decision.limit},
            )
            return AssistantReply(
                text=DAILY_LIMIT_REACHED_TEMPLATE.format(limit=decision.limit),
                remaining_questions=0,
                daily_limit=decision.limit,
            )

        question = CoachQuestion(text=message, context=context, history=tuple(recent_history))
        try:
            text = self._agent.ask(question)
        except Exception as exc:
            self._quota.release(user_id, day)
            logger.exception("Coach language model failed", extra={"event": "coach.error", "reason": "llm"})
            raise AssistantUnavailableError("Coach language model unavailable") from exc

        if not text:
            self._quota.release(user_id, day)
            raise AssistantUnavailableError("Coach language model returned an empty reply")

        return AssistantReply(text=text, remaining_questions=decision.remaining, daily_limit=decision.limit)


class HTTPAssistantBackend:
    """Client for the ``POST /api/coach/chat`` endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        client: httpx.Client | None = None,
        timeout: float = 30.0,
        path: str = "/api/coach/chat",
    ) -> None:
        resolved = base_url or os.getenv("GROWTHCOACH_BACKEND_URL") or "http://127.0.0.1:8000"
        self.base_url = resolved.rstrip("/")
        self.timeout = timeout
        self.path = path
        self._client = client

    def reply(
        self,
        message: str,
        context: CoachContext,
        recent_history: Sequence[str],
        user_id: str | None,
    ) -> AssistantReply:
        if not user_id:
            raise AssistantAuthError("User not authenticated")

        payload = {
            "message": message,
            "context": context.as_dict(),
            "recentHistory": list(recent_history),
            "userId": user_id,
        }
        url = f"{self.base_url}{self.path}"
        try:
            if self._client is not None:
                response = self._client.post(url, json=payload, timeout=self.timeout)
            else:
                response = httpx.post(url, json=payload, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise AssistantUnavailableError(f"Assistant backend unreachable: {exc}") from exc

        if response.status_code == 401:
            raise AssistantAuthError("User not authenticated")
        if response.is_error:
            raise AssistantUnavailableError(f"Assistant backend returned HTTP {response.status_code}")

        try:
            data = response.json()
            return AssistantReply(
                text=str(data["text"]),
                remaining_questions=int(data["remainingQuestions"]),
                daily_limit=int(data["dailyLimit"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AssistantUnavailableError("Assistant backend returned a malformed reply") from exc


__all__ = [
    "AssistantAuthError",
    "AssistantBackend",
    "AssistantError",
    "AssistantUnavailableError",
    "CoachAgent",
    "DAILY_LIMIT_REACHED_TEMPLATE",
    "HTTPAssistantBackend",
    "InProcessAssistantBackend",
    "LocalCoachResponder",
    "create_coach_llm",
]
