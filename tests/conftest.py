"""Global test fixtures for attocrew."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from attocrew.config import CrewConfig
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import CrewStore
from attocrew.providers.mock import MockProvider
from attocrew.runtime import CrewRuntime, create_runtime
from tests.helpers.fixtures import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def store(tmp_path: Path) -> AsyncIterator[CrewStore]:
    """Create a temporary crew store."""
    s = CrewStore(tmp_path / "crew.db")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def broadcaster() -> EventBroadcaster:
    return EventBroadcaster()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def crew_config(tmp_path: Path) -> CrewConfig:
    return CrewConfig(
        db_path=str(tmp_path / "crew.db"),
        working_directory=str(tmp_path),
        configure_logging=False,
        wait_poll_interval=0.01,
        max_iterations=5,
    )


@pytest.fixture
async def crew(
    crew_config: CrewConfig,
    mock_provider: MockProvider,
    clock: FakeClock,
) -> AsyncIterator[CrewRuntime]:
    """Fully wired runtime backed by a scripted reasoning service."""
    runtime = await create_runtime(
        crew_config, provider=mock_provider, clock=clock, start_sweeper=False,
    )
    yield runtime
    await runtime.close()
