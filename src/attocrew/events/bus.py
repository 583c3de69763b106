"""Event broadcaster for crew status, task, lock and message events.

Provides a simple project-scoped pub/sub.  Components call ``publish``
after committing a state change; delivery is fire-and-forget, so a
failing subscriber or an unwritable event log never reaches the caller.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Callable

from attocrew.types.events import CrewEvent, EventType

logger = logging.getLogger(__name__)

Subscriber = Callable[[CrewEvent], Any]


class EventBroadcaster:
    """In-process pub/sub for crew events.

    Subscribers registered without a project receive every event;
    project subscribers only see events published for that project.
    Events are also optionally appended to a JSONL file.
    """

    def __init__(self, persist_path: str | None = None, *, history_size: int = 1000) -> None:
        self._subscribers: list[tuple[int | None, Subscriber]] = []
        self._persist_path = persist_path
        self._history: deque[CrewEvent] = deque(maxlen=history_size)

    def publish(self, project_id: int | None, event: CrewEvent) -> None:
        """Fan an event out to subscribers and persist it."""
        event.project_id = project_id
        self._history.append(event)

        for scope, cb in list(self._subscribers):
            if scope is not None and scope != project_id:
                continue
            try:
                cb(event)
            except Exception as exc:
                logger.debug("EventBroadcaster subscriber error: %s", exc)

        if self._persist_path:
            try:
                p = Path(self._persist_path)
                p.parent.mkdir(parents=True, exist_ok=True)
                with p.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(event.to_dict(), default=str) + "\n")
            except Exception as exc:
                logger.debug("EventBroadcaster persist error: %s", exc)

    def emit(
        self,
        event_type: EventType,
        project_id: int | None,
        *,
        agent_id: int | None = None,
        task_id: int | None = None,
        **data: Any,
    ) -> None:
        """Build and publish an event in one call."""
        self.publish(
            project_id,
            CrewEvent(type=event_type, agent_id=agent_id, task_id=task_id, data=data),
        )

    def subscribe(self, callback: Subscriber, *, project_id: int | None = None) -> None:
        """Register a subscriber, optionally scoped to one project."""
        self._subscribers.append((project_id, callback))

    def unsubscribe(self, callback: Subscriber) -> None:
        """Remove a subscriber from every scope."""
        self._subscribers = [(s, cb) for s, cb in self._subscribers if cb != callback]

    @property
    def history(self) -> list[CrewEvent]:
        return list(self._history)

    def recent(self, n: int = 20, *, event_type: EventType | None = None) -> list[CrewEvent]:
        """Return the *n* most recent events, optionally of one type."""
        events = [e for e in self._history if event_type is None or e.type == event_type]
        return events[-n:]
