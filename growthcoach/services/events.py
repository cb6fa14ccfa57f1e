"""Tiny synchronous event bus connecting the coach panel to the application root."""
from __future__ import annotations

from collections import defaultdict
import logging
from typing import Any, Callable, Final

logger = logging.getLogger(__name__)

TOUR_RESTART: Final[str] = "tour.restart"
TASK_STATUS_CHANGED: Final[str] = "task.status_changed"
NAVIGATE: Final[str] = "navigate"

Handler = Callable[..., None]


class EventBus:
    """Publish/subscribe by topic name.

    Handlers run in subscription order on the publisher's thread. A failing
    handler is logged and does not prevent the remaining handlers from running.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """Register ``handler`` for ``topic`` and return an unsubscribe callable."""

        self._handlers[topic].append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(topic, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, topic: str, **payload: Any) -> int:
        """Deliver ``payload`` to every handler of ``topic``; return how many succeeded."""

        delivered = 0
        for handler in list(self._handlers.get(topic, ())):
            try:
                handler(**payload)
            except Exception:
                logger.exception("Event handler failed", extra={"event": "coach.event_error", "topic": topic})
                continue
            delivered += 1
        return delivered


__all__ = ["EventBus", "NAVIGATE", "TASK_STATUS_CHANGED", "TOUR_RESTART"]
