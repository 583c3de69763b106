"""Agent instances."""

from attocrew.agent.coordinator import CoordinatorInstance
from attocrew.agent.instance import AgentInstance

__all__ = ["AgentInstance", "CoordinatorInstance"]
