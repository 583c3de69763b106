"""Tests for the crew event broadcaster."""

from __future__ import annotations

import json
from pathlib import Path

from attocrew.events.bus import EventBroadcaster
from attocrew.types.events import CrewEvent, EventType


class TestEventBroadcaster:
    def test_global_subscriber_sees_everything(self) -> None:
        bus = EventBroadcaster()
        seen: list[CrewEvent] = []
        bus.subscribe(seen.append)
        bus.emit(EventType.TASK_CREATED, 1, task_id=5)
        bus.emit(EventType.TASK_CREATED, 2, task_id=6)
        assert [e.project_id for e in seen] == [1, 2]

    def test_project_scope(self) -> None:
        bus = EventBroadcaster()
        seen: list[CrewEvent] = []
        bus.subscribe(seen.append, project_id=2)
        bus.emit(EventType.AGENT_STATUS, 1, agent_id=1, status="working")
        bus.emit(EventType.AGENT_STATUS, 2, agent_id=3, status="idle")
        assert len(seen) == 1
        assert seen[0].data == {"status": "idle"}

    def test_failing_subscriber_is_isolated(self) -> None:
        bus = EventBroadcaster()
        seen: list[CrewEvent] = []

        def boom(event: CrewEvent) -> None:
            raise RuntimeError("subscriber down")

        bus.subscribe(boom)
        bus.subscribe(seen.append)
        bus.emit(EventType.RUN_START, 1)
        assert len(seen) == 1

    def test_unsubscribe(self) -> None:
        bus = EventBroadcaster()
        seen: list[CrewEvent] = []
        bus.subscribe(seen.append)
        bus.unsubscribe(seen.append)
        bus.emit(EventType.RUN_START, 1)
        assert seen == []

    def test_unsubscribe_scoped_bound_method(self) -> None:
        bus = EventBroadcaster()
        seen: list[CrewEvent] = []
        bus.subscribe(seen.append, project_id=1)
        bus.subscribe(seen.append)
        bus.unsubscribe(seen.append)
        bus.emit(EventType.RUN_START, 1)
        bus.emit(EventType.RUN_START, 2)
        assert seen == []

    def test_history_is_bounded(self) -> None:
        bus = EventBroadcaster(history_size=3)
        for i in range(5):
            bus.emit(EventType.RUN_ITERATION, 1, iteration=i)
        assert [e.data["iteration"] for e in bus.history] == [2, 3, 4]

    def test_recent_filters_by_type(self) -> None:
        bus = EventBroadcaster()
        bus.emit(EventType.RUN_START, 1)
        bus.emit(EventType.TOOL_START, 1, tool="lock_file")
        bus.emit(EventType.RUN_COMPLETE, 1)
        recent = bus.recent(event_type=EventType.TOOL_START)
        assert len(recent) == 1
        assert recent[0].data["tool"] == "lock_file"

    def test_persists_jsonl(self, tmp_path: Path) -> None:
        log = tmp_path / "logs" / "events.jsonl"
        bus = EventBroadcaster(str(log))
        bus.emit(EventType.FILE_LOCK, 3, agent_id=7, action="acquired")
        lines = log.read_text(encoding="utf-8").splitlines()
        payload = json.loads(lines[0])
        assert payload["type"] == "file.lock"
        assert payload["project_id"] == 3
        assert payload["data"]["action"] == "acquired"
