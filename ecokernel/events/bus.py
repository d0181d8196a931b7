"""Event Bus — pub/sub with wildcard topics.

The ecosystem announces lifecycle changes here ("ecosystem.started",
"concepts.discovered", ...). Subscribers register a topic pattern;
"ecosystem.*" matches every ecosystem event, "*" matches everything.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
from collections import defaultdict, deque
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from ecokernel.types import new_id

_logger = logging.getLogger(__name__)

EventHandler = Callable[["Event"], Awaitable[None]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Event(BaseModel):
    id: str = Field(default_factory=new_id)
    topic: str
    data: dict[str, Any] = Field(default_factory=dict)
    source: str = ""
    timestamp: datetime = Field(default_factory=_now)


class EventBus:
    """Async pub/sub bus keeping a bounded event history."""

    def __init__(self, history_limit: int = 500) -> None:
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._history: deque[Event] = deque(maxlen=history_limit)

    def subscribe(self, pattern: str, handler: EventHandler) -> None:
        self._subscribers[pattern].append(handler)

    def unsubscribe(self, pattern: str, handler: EventHandler) -> None:
        handlers = self._subscribers.get(pattern, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, topic: str, data: dict | None = None, source: str = "") -> Event:
        """Record an event and deliver it to every matching subscriber."""
        event = Event(topic=topic, data=data or {}, source=source)
        self._history.append(event)

        handlers = [
            handler
            for pattern, subs in self._subscribers.items()
            if fnmatch.fnmatch(topic, pattern)
            for handler in subs
        ]
        if handlers:
            results = await asyncio.gather(*(h(event) for h in handlers), return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    _logger.warning("Handler for '%s' failed: %s", topic, result)
        return event

    def history(self, topic_filter: str = "*", limit: int = 50) -> list[Event]:
        """Recent events, newest first."""
        events = [e for e in self._history if fnmatch.fnmatch(e.topic, topic_filter)]
        return list(reversed(events[-limit:]))

    def topics(self) -> list[str]:
        """Distinct topics still in the history, sorted."""
        return sorted({e.topic for e in self._history})

    @property
    def subscriber_count(self) -> int:
        return sum(len(h) for h in self._subscribers.values())
