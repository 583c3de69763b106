"""Tests for runtime wiring and lifecycle."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from attocrew.config import CrewConfig
from attocrew.errors import ProviderError
from attocrew.providers.mock import MockProvider
from attocrew.providers.responses import ResponsesProvider
from attocrew.runtime import CrewRuntime, build_provider, open_runtime
from attocrew.tools.base import WorkspaceContext
from attocrew.types.events import EventType
from tests.helpers.fixtures import call, make_tool, seed_team


async def ping(args: dict[str, Any], ctx: WorkspaceContext) -> str:
    return f"pong from agent {ctx.agent_id}"


class TestCreateRuntime:
    @pytest.mark.asyncio
    async def test_wires_components(self, crew: CrewRuntime) -> None:
        assert crew.registry.list_tools() == ["lock_file", "unlock_file", "check_file_lock"]
        assert len(await crew.roles.list_roles()) == 5
        assert not crew.locks.sweeping

    @pytest.mark.asyncio
    async def test_open_runtime_with_extra_tools(self, crew_config: CrewConfig) -> None:
        provider = MockProvider().add_tool_response([call("ping")]).add_response("done")
        crew_config.event_log_path = str(Path(crew_config.working_directory) / "events.jsonl")

        async with open_runtime(
            crew_config, provider=provider, tools=[make_tool("ping", ping)],
        ) as crew:
            assert crew.locks.sweeping
            team = await seed_team(crew, base_dir=crew_config.working_directory)
            result = await crew.pool.execute(team.backend.id, "ping it")
            assert result.action_log[0].summary == f"pong from agent {team.backend.id}"

        assert not crew.locks.sweeping
        log = Path(crew_config.event_log_path).read_text(encoding="utf-8")
        assert str(EventType.RUN_COMPLETE) in log

    @pytest.mark.asyncio
    async def test_close_flushes_pooled_history(self, crew_config: CrewConfig) -> None:
        provider = MockProvider().add_response("hello")
        async with open_runtime(crew_config, provider=provider, start_sweeper=False) as crew:
            team = await seed_team(crew)
            await crew.pool.execute(team.frontend.id, "hi")
            agent_id = team.frontend.id

        async with open_runtime(crew_config, provider=MockProvider(), start_sweeper=False) as crew:
            instance = await crew.pool.get_or_create(agent_id)
            assert [m.content for m in instance.history] == ["hi", "hello"]


class TestBuildProvider:
    def test_responses_provider(self) -> None:
        provider = build_provider(CrewConfig(api_key="sk-test", model="m"))
        assert isinstance(provider, ResponsesProvider)

    def test_missing_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("LLM_PROVIDER_KEY", raising=False)
        with pytest.raises(ProviderError):
            build_provider(CrewConfig())
