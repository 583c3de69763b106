"""Agents, roles and agent messaging."""

from attocrew.team.agents import AgentManager, AgentStatus
from attocrew.team.messages import CommunicationManager, MessageType
from attocrew.team.roles import RoleManager

__all__ = ["AgentManager", "AgentStatus", "CommunicationManager", "MessageType", "RoleManager"]
