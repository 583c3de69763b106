"""Role registry with default system prompts.

Five predefined roles are seeded at startup and cannot be edited or
removed.  Custom roles use lowercase slug names and can be deleted once
no agent uses them.
"""

from __future__ import annotations

import re

from attocrew.errors import RoleNotFoundError, TeamError
from attocrew.persistence.store import CrewStore, RoleRecord

COORDINATOR_ROLE = "coordinator"

ROLE_NAME_RE = re.compile(r"^[a-z0-9_-]+$")

_SHARED_RULES = (
    "You work inside a shared project workspace alongside other agents. "
    "Before editing a file, take a write lock with lock_file and release it "
    "with unlock_file when you are done. If a file is locked by another agent, "
    "work on something else or try again later."
)

PREDEFINED_ROLES: dict[str, tuple[str, str, str]] = {
    # name: (display name, description, system prompt)
    "coordinator": (
        "Coordinator",
        "Breaks requests into tasks and delegates them to specialists",
        "You are the coordinator of a team of specialist agents. Analyze the "
        "request, split it into focused tasks, and delegate each one with "
        "assign_task to the role best suited for it. Use get_agent_status to "
        "see who is available, send_agent_message to clarify or hand off work, "
        "and wait_for_task when a later step depends on an earlier result. "
        "Summarize the outcome once all delegated work has finished.",
    ),
    "frontend": (
        "Frontend Developer",
        "User interfaces, styling and client-side logic",
        "You are a frontend developer. You build user interfaces, components "
        "and client-side behavior with attention to accessibility and "
        "maintainable styling. " + _SHARED_RULES,
    ),
    "backend": (
        "Backend Developer",
        "Services, APIs and data storage",
        "You are a backend developer. You design and implement services, APIs "
        "and data access, keeping error handling explicit and interfaces "
        "stable. " + _SHARED_RULES,
    ),
    "devops": (
        "DevOps Engineer",
        "Build, deployment and infrastructure",
        "You are a DevOps engineer. You own build scripts, deployment "
        "configuration and infrastructure automation, and keep them "
        "reproducible. " + _SHARED_RULES,
    ),
    "tester": (
        "QA Tester",
        "Test plans, automated tests and bug reports",
        "You are a QA engineer. You write and run tests, reproduce defects and "
        "report findings precisely, including the steps to reproduce. "
        + _SHARED_RULES,
    ),
}


class RoleManager:
    """Manages predefined and custom roles."""

    def __init__(self, store: CrewStore) -> None:
        self._store = store

    async def seed_predefined(self) -> None:
        """Insert the predefined roles if they are missing."""
        for name, (display_name, description, prompt) in PREDEFINED_ROLES.items():
            await self._store.insert_role(
                name, display_name, prompt, description=description, is_predefined=True,
            )

    @staticmethod
    def predefined_role_names() -> list[str]:
        return list(PREDEFINED_ROLES)

    async def get_role(self, name: str) -> RoleRecord | None:
        return await self._store.get_role(name)

    async def require_role(self, name: str) -> RoleRecord:
        role = await self._store.get_role(name)
        if role is None:
            raise RoleNotFoundError(name)
        return role

    async def role_exists(self, name: str) -> bool:
        return await self._store.get_role(name) is not None

    async def list_roles(self, *, predefined_only: bool = False) -> list[RoleRecord]:
        return await self._store.list_roles(predefined_only=predefined_only)

    async def create_custom_role(
        self,
        name: str,
        display_name: str,
        system_prompt: str,
        *,
        description: str = "",
    ) -> RoleRecord:
        if not name or not display_name or not system_prompt:
            raise TeamError("name, display_name and system_prompt are required")
        if not ROLE_NAME_RE.match(name):
            raise TeamError(
                "Role name must be lowercase alphanumeric with underscores or hyphens only"
            )
        if await self.role_exists(name):
            raise TeamError(f"Role '{name}' already exists")
        await self._store.insert_role(name, display_name, system_prompt, description=description)
        return await self.require_role(name)

    async def update_role(
        self,
        name: str,
        *,
        display_name: str | None = None,
        system_prompt: str | None = None,
        description: str | None = None,
    ) -> RoleRecord:
        role = await self.require_role(name)
        if role.is_predefined:
            raise TeamError("Cannot update predefined roles. Create a custom role instead.")
        fields = {
            k: v
            for k, v in (
                ("display_name", display_name),
                ("system_prompt", system_prompt),
                ("description", description),
            )
            if v is not None
        }
        if fields:
            await self._store.update_role(name, **fields)
        return await self.require_role(name)

    async def delete_role(self, name: str) -> None:
        role = await self.require_role(name)
        if role.is_predefined:
            raise TeamError("Cannot delete predefined roles")
        in_use = await self._store.count_agents_with_role(name)
        if in_use:
            raise TeamError(f"Cannot delete role '{name}': {in_use} agent(s) are using this role")
        await self._store.delete_role(name)

    async def get_system_prompt(self, name: str) -> str:
        return (await self.require_role(name)).system_prompt
