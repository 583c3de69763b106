"""File lock tools for agents.

Lets an agent take, drop and inspect cooperative locks on workspace
files.  A conflict comes back as a failed result naming the holder so
the agent can wait, retry or pick another file.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from attocrew.tools.base import Tool, ToolParam, ToolSpec, WorkspaceContext
from attocrew.types.messages import ActionResult
from attocrew.workspace.locks import LockRegistry


class LockFileArgs(ToolParam):
    path: str = Field(min_length=1)
    lock_type: Literal["read", "write"] = "write"
    ttl_seconds: float | None = Field(default=None, ge=0)


class PathArgs(ToolParam):
    path: str = Field(min_length=1)


def create_lock_tools(locks: LockRegistry) -> list[Tool]:
    """Create lock tools bound to a lock registry."""

    async def lock_file(args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = LockFileArgs.model_validate(args)
        lock = await locks.acquire(
            ctx.project_id, params.path, ctx.agent_id, params.lock_type, params.ttl_seconds,
        )
        remaining = max(0.0, lock.expires_at - locks.now)
        return ActionResult(
            call_id="",
            name="lock_file",
            success=True,
            summary=f"Acquired {lock.lock_type} lock on {lock.file_path}",
            details=f"Expires in {remaining:.0f}s",
            data={"lock_id": lock.id, "file_path": lock.file_path, "expires_at": lock.expires_at},
        )

    async def unlock_file(args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = PathArgs.model_validate(args)
        released = await locks.release(ctx.project_id, params.path, ctx.agent_id)
        return ActionResult(
            call_id="",
            name="unlock_file",
            success=True,
            summary=f"Released lock on {params.path}" if released else f"No lock held on {params.path}",
            warning=None if released else "Nothing to release",
            data={"released": released},
        )

    async def check_file_lock(args: dict[str, Any], ctx: WorkspaceContext) -> ActionResult:
        params = PathArgs.model_validate(args)
        lock = await locks.check(ctx.project_id, params.path)
        if lock is None:
            return ActionResult(
                call_id="", name="check_file_lock", success=True,
                summary=f"{params.path} is not locked", data={"locked": False},
            )
        return ActionResult(
            call_id="",
            name="check_file_lock",
            success=True,
            summary=f"{lock.file_path} has a {lock.lock_type} lock held by agent {lock.holder_id}",
            data={
                "locked": True,
                "holder_id": lock.holder_id,
                "lock_type": lock.lock_type,
                "expires_at": lock.expires_at,
                "held_by_you": lock.holder_id == ctx.agent_id,
            },
        )

    return [
        Tool(
            spec=ToolSpec(
                name="lock_file",
                description=(
                    "Lock a file in the shared workspace before editing it. "
                    "Write locks are exclusive; read locks can be shared."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path relative to the project"},
                        "lock_type": {
                            "type": "string",
                            "enum": ["read", "write"],
                            "description": "Kind of lock (default: write)",
                        },
                        "ttl_seconds": {
                            "type": "number",
                            "description": "Seconds until the lock expires (default: 300)",
                        },
                    },
                    "required": ["path"],
                },
            ),
            execute=lock_file,
            tags=["locks"],
        ),
        Tool(
            spec=ToolSpec(
                name="unlock_file",
                description="Release your lock on a file",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path relative to the project"},
                    },
                    "required": ["path"],
                },
            ),
            execute=unlock_file,
            tags=["locks"],
        ),
        Tool(
            spec=ToolSpec(
                name="check_file_lock",
                description="Check whether a file is locked and by whom",
                parameters={
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path relative to the project"},
                    },
                    "required": ["path"],
                },
            ),
            execute=check_file_lock,
            tags=["locks"],
        ),
    ]
