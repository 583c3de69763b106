"""Shared test helpers for the attocrew test suite."""

from __future__ import annotations

from tests.helpers.fixtures import FakeClock, Team, call, make_tool, seed_team

__all__ = ["FakeClock", "Team", "call", "make_tool", "seed_team"]
