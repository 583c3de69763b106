"""Instance pool / orchestrator."""

from attocrew.orchestrator.pool import AgentPool

__all__ = ["AgentPool"]
