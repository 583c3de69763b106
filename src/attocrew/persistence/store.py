"""SQLite-based crew store using aiosqlite.

Provides async persistence for projects, roles, agents, conversation
history, tasks, agent messages, group messages, file locks and the
tool execution audit log. All SQL lives here; managers own the rules.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiosqlite

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS projects (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    base_dir TEXT NOT NULL DEFAULT '',
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS roles (
    name TEXT PRIMARY KEY,
    display_name TEXT NOT NULL,
    description TEXT DEFAULT '',
    system_prompt TEXT NOT NULL,
    is_predefined INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS agents (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    name TEXT NOT NULL,
    role TEXT NOT NULL,
    custom_prompt TEXT,
    status TEXT NOT NULL DEFAULT 'idle',
    current_task_id INTEGER,
    created_at REAL NOT NULL,
    updated_at REAL NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS agent_history (
    agent_id INTEGER PRIMARY KEY,
    messages TEXT NOT NULL DEFAULT '[]',
    task_id INTEGER,
    updated_at REAL NOT NULL,
    FOREIGN KEY (agent_id) REFERENCES agents(id)
);

CREATE TABLE IF NOT EXISTS agent_tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    priority INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending',
    agent_id INTEGER,
    created_by INTEGER,
    result TEXT,
    error TEXT,
    created_at REAL NOT NULL,
    started_at REAL,
    completed_at REAL,
    updated_at REAL NOT NULL,
    FOREIGN KEY (project_id) REFERENCES projects(id)
);

CREATE TABLE IF NOT EXISTS agent_communications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_agent_id INTEGER NOT NULL,
    to_agent_id INTEGER NOT NULL,
    message TEXT NOT NULL,
    message_type TEXT NOT NULL DEFAULT 'message',
    related_task_id INTEGER,
    is_read INTEGER NOT NULL DEFAULT 0,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS group_messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    sender_type TEXT NOT NULL,
    sender_agent_id INTEGER,
    message TEXT NOT NULL,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS file_locks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    project_id INTEGER NOT NULL,
    file_path TEXT NOT NULL,
    lock_type TEXT NOT NULL,
    holder_id INTEGER NOT NULL,
    acquired_at REAL NOT NULL,
    expires_at REAL NOT NULL,
    UNIQUE (project_id, file_path, lock_type, holder_id)
);

CREATE TABLE IF NOT EXISTS tool_executions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_id INTEGER NOT NULL,
    task_id INTEGER,
    tool_name TEXT NOT NULL,
    args_json TEXT DEFAULT '{}',
    result_json TEXT DEFAULT '{}',
    success INTEGER NOT NULL DEFAULT 1,
    duration_ms INTEGER DEFAULT 0,
    timestamp REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE INDEX IF NOT EXISTS idx_agents_project ON agents(project_id);
CREATE INDEX IF NOT EXISTS idx_agents_role ON agents(project_id, role);
CREATE INDEX IF NOT EXISTS idx_tasks_project ON agent_tasks(project_id, status);
CREATE INDEX IF NOT EXISTS idx_tasks_agent ON agent_tasks(agent_id);
CREATE INDEX IF NOT EXISTS idx_comms_to ON agent_communications(to_agent_id, is_read);
CREATE INDEX IF NOT EXISTS idx_group_project ON group_messages(project_id);
CREATE INDEX IF NOT EXISTS idx_locks_path ON file_locks(project_id, file_path);
CREATE INDEX IF NOT EXISTS idx_locks_holder ON file_locks(holder_id);
CREATE INDEX IF NOT EXISTS idx_locks_expiry ON file_locks(expires_at);
CREATE INDEX IF NOT EXISTS idx_tool_exec_agent ON tool_executions(agent_id);
"""

# Columns the update helpers may touch.
_TASK_COLUMNS = frozenset({
    "title", "description", "priority", "status", "agent_id",
    "result", "error", "started_at", "completed_at",
})
_AGENT_COLUMNS = frozenset({"name", "custom_prompt", "status", "current_task_id"})
_ROLE_COLUMNS = frozenset({"display_name", "description", "system_prompt"})


@dataclass(slots=True)
class ProjectRecord:
    """A stored project (shared workspace)."""

    id: int
    name: str
    base_dir: str = ""
    created_at: float = 0.0


@dataclass(slots=True)
class RoleRecord:
    """A stored role with its default system prompt."""

    name: str
    display_name: str
    system_prompt: str
    description: str = ""
    is_predefined: bool = False
    created_at: float = 0.0
    updated_at: float = 0.0


@dataclass(slots=True)
class AgentRecord:
    """A stored agent identity."""

    id: int
    project_id: int
    name: str
    role: str
    custom_prompt: str | None = None
    status: str = "idle"
    current_task_id: int | None = None
    created_at: float = 0.0
    updated_at: float = 0.0


@dataclass(slots=True)
class TaskRecord:
    """A stored task."""

    id: int
    project_id: int
    title: str
    description: str = ""
    priority: int = 0
    status: str = "pending"
    agent_id: int | None = None
    created_by: int | None = None
    result: str | None = None
    error: str | None = None
    created_at: float = 0.0
    started_at: float | None = None
    completed_at: float | None = None
    updated_at: float = 0.0


@dataclass(slots=True)
class MessageRecord:
    """A stored directed agent-to-agent message."""

    id: int
    from_agent_id: int
    to_agent_id: int
    message: str
    message_type: str = "message"
    related_task_id: int | None = None
    is_read: bool = False
    created_at: float = 0.0


@dataclass(slots=True)
class GroupMessageRecord:
    """A stored project-wide message."""

    id: int
    project_id: int
    sender_type: str
    message: str
    sender_agent_id: int | None = None
    created_at: float = 0.0


@dataclass(slots=True)
class LockRecord:
    """A stored file lock."""

    id: int
    project_id: int
    file_path: str
    lock_type: str
    holder_id: int
    acquired_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass(slots=True)
class ToolExecutionRecord:
    """A stored action dispatch (audit log)."""

    id: int
    agent_id: int
    tool_name: str
    task_id: int | None = None
    args: dict[str, Any] = field(default_factory=dict)
    result: dict[str, Any] = field(default_factory=dict)
    success: bool = True
    duration_ms: int = 0
    timestamp: float = 0.0


class CrewStore:
    """Async SQLite crew store.

    Uses aiosqlite for async database access. Every write commits
    immediately; history saves replace the stored list wholesale.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create tables."""
        if self._db_path is not None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(self._db_path)
        else:
            target = ":memory:"
        self._db = await aiosqlite.connect(target)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(CREATE_TABLES_SQL)
        await self._db.execute(
            "INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
        )
        await self._db.commit()

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    def _ensure_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("CrewStore not initialized. Call initialize() first.")
        return self._db

    async def _insert(self, sql: str, params: tuple[Any, ...]) -> int:
        db = self._ensure_db()
        cursor = await db.execute(sql, params)
        await db.commit()
        return int(cursor.lastrowid)

    async def _write(self, sql: str, params: tuple[Any, ...]) -> int:
        """Execute a write and return the affected row count."""
        db = self._ensure_db()
        cursor = await db.execute(sql, params)
        await db.commit()
        return cursor.rowcount

    async def _fetchone(self, sql: str, params: tuple[Any, ...]) -> aiosqlite.Row | None:
        db = self._ensure_db()
        async with db.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def _fetchall(self, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        db = self._ensure_db()
        async with db.execute(sql, params) as cursor:
            return list(await cursor.fetchall())

    async def _update(
        self,
        table: str,
        key: str,
        key_value: Any,
        fields: dict[str, Any],
        allowed: frozenset[str],
    ) -> None:
        unknown = set(fields) - allowed
        if unknown:
            raise ValueError(f"Unknown {table} columns: {', '.join(sorted(unknown))}")
        assignments = [f"{col} = ?" for col in fields]
        params: list[Any] = list(fields.values())
        assignments.append("updated_at = ?")
        params.append(time.time())
        params.append(key_value)
        await self._write(
            f"UPDATE {table} SET {', '.join(assignments)} WHERE {key} = ?",
            tuple(params),
        )

    # --- Projects ---

    async def create_project(self, name: str, base_dir: str = "") -> ProjectRecord:
        now = time.time()
        project_id = await self._insert(
            "INSERT INTO projects (name, base_dir, created_at) VALUES (?, ?, ?)",
            (name, base_dir, now),
        )
        return ProjectRecord(id=project_id, name=name, base_dir=base_dir, created_at=now)

    async def get_project(self, project_id: int) -> ProjectRecord | None:
        row = await self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        if row is None:
            return None
        return ProjectRecord(
            id=row["id"], name=row["name"], base_dir=row["base_dir"], created_at=row["created_at"],
        )

    async def list_projects(self) -> list[ProjectRecord]:
        rows = await self._fetchall("SELECT * FROM projects ORDER BY created_at ASC, id ASC")
        return [
            ProjectRecord(id=r["id"], name=r["name"], base_dir=r["base_dir"], created_at=r["created_at"])
            for r in rows
        ]

    # --- Roles ---

    async def insert_role(
        self,
        name: str,
        display_name: str,
        system_prompt: str,
        *,
        description: str = "",
        is_predefined: bool = False,
        replace: bool = False,
    ) -> None:
        """Insert a role. With ``replace=False`` an existing row is kept."""
        now = time.time()
        verb = "INSERT OR REPLACE" if replace else "INSERT OR IGNORE"
        await self._write(
            f"{verb} INTO roles (name, display_name, description, system_prompt, "
            "is_predefined, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (name, display_name, description, system_prompt, int(is_predefined), now, now),
        )

    async def get_role(self, name: str) -> RoleRecord | None:
        row = await self._fetchone("SELECT * FROM roles WHERE name = ?", (name,))
        return self._row_to_role(row) if row is not None else None

    async def list_roles(self, *, predefined_only: bool = False) -> list[RoleRecord]:
        if predefined_only:
            rows = await self._fetchall(
                "SELECT * FROM roles WHERE is_predefined = 1 ORDER BY name ASC"
            )
        else:
            rows = await self._fetchall(
                "SELECT * FROM roles ORDER BY is_predefined DESC, name ASC"
            )
        return [self._row_to_role(r) for r in rows]

    async def update_role(self, name: str, **fields: Any) -> None:
        await self._update("roles", "name", name, fields, _ROLE_COLUMNS)

    async def delete_role(self, name: str) -> bool:
        return await self._write("DELETE FROM roles WHERE name = ?", (name,)) > 0

    async def count_agents_with_role(self, role: str) -> int:
        row = await self._fetchone("SELECT COUNT(*) AS n FROM agents WHERE role = ?", (role,))
        return int(row["n"]) if row else 0

    # --- Agents ---

    async def insert_agent(
        self,
        project_id: int,
        name: str,
        role: str,
        custom_prompt: str | None = None,
    ) -> AgentRecord:
        now = time.time()
        agent_id = await self._insert(
            "INSERT INTO agents (project_id, name, role, custom_prompt, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, 'idle', ?, ?)",
            (project_id, name, role, custom_prompt, now, now),
        )
        return AgentRecord(
            id=agent_id, project_id=project_id, name=name, role=role,
            custom_prompt=custom_prompt, created_at=now, updated_at=now,
        )

    async def get_agent(self, agent_id: int) -> AgentRecord | None:
        row = await self._fetchone("SELECT * FROM agents WHERE id = ?", (agent_id,))
        return self._row_to_agent(row) if row is not None else None

    async def list_agents(
        self,
        project_id: int,
        *,
        status: str | None = None,
    ) -> list[AgentRecord]:
        if status:
            rows = await self._fetchall(
                "SELECT * FROM agents WHERE project_id = ? AND status = ? ORDER BY created_at ASC, id ASC",
                (project_id, status),
            )
        else:
            rows = await self._fetchall(
                "SELECT * FROM agents WHERE project_id = ? ORDER BY created_at ASC, id ASC",
                (project_id,),
            )
        return [self._row_to_agent(r) for r in rows]

    async def first_agent_with_role(self, project_id: int, role: str) -> AgentRecord | None:
        row = await self._fetchone(
            "SELECT * FROM agents WHERE project_id = ? AND role = ? "
            "ORDER BY created_at ASC, id ASC LIMIT 1",
            (project_id, role),
        )
        return self._row_to_agent(row) if row is not None else None

    async def update_agent(self, agent_id: int, **fields: Any) -> None:
        await self._update("agents", "id", agent_id, fields, _AGENT_COLUMNS)

    async def delete_agent(self, agent_id: int) -> bool:
        db = self._ensure_db()
        await db.execute("DELETE FROM agent_history WHERE agent_id = ?", (agent_id,))
        cursor = await db.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
        await db.commit()
        return cursor.rowcount > 0

    # --- Conversation history ---

    async def load_history(self, agent_id: int) -> list[dict[str, Any]]:
        row = await self._fetchone(
            "SELECT messages FROM agent_history WHERE agent_id = ?", (agent_id,)
        )
        if row is None:
            return []
        return json.loads(row["messages"])

    async def save_history(
        self,
        agent_id: int,
        messages: list[dict[str, Any]],
        *,
        task_id: int | None = None,
    ) -> None:
        """Replace the stored history for an agent (last writer wins)."""
        await self._write(
            "INSERT OR REPLACE INTO agent_history (agent_id, messages, task_id, updated_at) "
            "VALUES (?, ?, ?, ?)",
            (agent_id, json.dumps(messages), task_id, time.time()),
        )

    # --- Tasks ---

    async def insert_task(
        self,
        project_id: int,
        title: str,
        description: str = "",
        *,
        priority: int = 0,
        created_by: int | None = None,
        created_at: float | None = None,
    ) -> TaskRecord:
        now = created_at if created_at is not None else time.time()
        task_id = await self._insert(
            "INSERT INTO agent_tasks (project_id, title, description, priority, status, "
            "created_by, created_at, updated_at) VALUES (?, ?, ?, ?, 'pending', ?, ?, ?)",
            (project_id, title, description, priority, created_by, now, now),
        )
        return TaskRecord(
            id=task_id, project_id=project_id, title=title, description=description,
            priority=priority, created_by=created_by, created_at=now, updated_at=now,
        )

    async def get_task(self, task_id: int) -> TaskRecord | None:
        row = await self._fetchone("SELECT * FROM agent_tasks WHERE id = ?", (task_id,))
        return self._row_to_task(row) if row is not None else None

    async def update_task(self, task_id: int, **fields: Any) -> None:
        await self._update("agent_tasks", "id", task_id, fields, _TASK_COLUMNS)

    async def delete_task(self, task_id: int) -> bool:
        return await self._write("DELETE FROM agent_tasks WHERE id = ?", (task_id,)) > 0

    async def list_tasks(
        self,
        *,
        project_id: int | None = None,
        status: str | None = None,
        agent_id: int | None = None,
        created_by: int | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[TaskRecord]:
        """List tasks by priority (desc), then creation order."""
        clauses: list[str] = []
        params: list[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if agent_id is not None:
            clauses.append("agent_id = ?")
            params.append(agent_id)
        if created_by is not None:
            clauses.append("created_by = ?")
            params.append(created_by)
        query = "SELECT * FROM agent_tasks"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY priority DESC, created_at ASC, id ASC"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])
        rows = await self._fetchall(query, tuple(params))
        return [self._row_to_task(r) for r in rows]

    async def task_status_counts(
        self,
        *,
        project_id: int | None = None,
        agent_id: int | None = None,
    ) -> dict[str, int]:
        if agent_id is not None:
            rows = await self._fetchall(
                "SELECT status, COUNT(*) AS n FROM agent_tasks WHERE agent_id = ? GROUP BY status",
                (agent_id,),
            )
        else:
            rows = await self._fetchall(
                "SELECT status, COUNT(*) AS n FROM agent_tasks WHERE project_id = ? GROUP BY status",
                (project_id,),
            )
        return {r["status"]: int(r["n"]) for r in rows}

    # --- Agent messages ---

    async def insert_message(
        self,
        from_agent_id: int,
        to_agent_id: int,
        message: str,
        message_type: str,
        related_task_id: int | None = None,
    ) -> MessageRecord:
        now = time.time()
        message_id = await self._insert(
            "INSERT INTO agent_communications (from_agent_id, to_agent_id, message, "
            "message_type, related_task_id, is_read, created_at) VALUES (?, ?, ?, ?, ?, 0, ?)",
            (from_agent_id, to_agent_id, message, message_type, related_task_id, now),
        )
        return MessageRecord(
            id=message_id, from_agent_id=from_agent_id, to_agent_id=to_agent_id,
            message=message, message_type=message_type, related_task_id=related_task_id,
            created_at=now,
        )

    async def list_messages(
        self,
        *,
        to_agent_id: int | None = None,
        from_agent_id: int | None = None,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[MessageRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if to_agent_id is not None:
            clauses.append("to_agent_id = ?")
            params.append(to_agent_id)
        if from_agent_id is not None:
            clauses.append("from_agent_id = ?")
            params.append(from_agent_id)
        if unread_only:
            clauses.append("is_read = 0")
        query = "SELECT * FROM agent_communications"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        rows = await self._fetchall(query, tuple(params))
        return [self._row_to_message(r) for r in rows]

    async def conversation(self, agent_a: int, agent_b: int, *, limit: int = 100) -> list[MessageRecord]:
        rows = await self._fetchall(
            "SELECT * FROM agent_communications "
            "WHERE (from_agent_id = ? AND to_agent_id = ?) OR (from_agent_id = ? AND to_agent_id = ?) "
            "ORDER BY created_at ASC, id ASC LIMIT ?",
            (agent_a, agent_b, agent_b, agent_a, limit),
        )
        return [self._row_to_message(r) for r in rows]

    async def mark_message_read(self, message_id: int, agent_id: int) -> bool:
        return await self._write(
            "UPDATE agent_communications SET is_read = 1 WHERE id = ? AND to_agent_id = ?",
            (message_id, agent_id),
        ) > 0

    async def mark_all_messages_read(self, agent_id: int) -> int:
        return await self._write(
            "UPDATE agent_communications SET is_read = 1 WHERE to_agent_id = ? AND is_read = 0",
            (agent_id,),
        )

    async def unread_count(self, agent_id: int) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) AS n FROM agent_communications WHERE to_agent_id = ? AND is_read = 0",
            (agent_id,),
        )
        return int(row["n"]) if row else 0

    # --- Group messages ---

    async def insert_group_message(
        self,
        project_id: int,
        sender_type: str,
        message: str,
        sender_agent_id: int | None = None,
    ) -> GroupMessageRecord:
        now = time.time()
        message_id = await self._insert(
            "INSERT INTO group_messages (project_id, sender_type, sender_agent_id, message, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (project_id, sender_type, sender_agent_id, message, now),
        )
        return GroupMessageRecord(
            id=message_id, project_id=project_id, sender_type=sender_type,
            message=message, sender_agent_id=sender_agent_id, created_at=now,
        )

    async def list_group_messages(
        self, project_id: int, *, limit: int = 100, offset: int = 0,
    ) -> list[GroupMessageRecord]:
        rows = await self._fetchall(
            "SELECT * FROM group_messages WHERE project_id = ? "
            "ORDER BY created_at ASC, id ASC LIMIT ? OFFSET ?",
            (project_id, limit, offset),
        )
        return [
            GroupMessageRecord(
                id=r["id"], project_id=r["project_id"], sender_type=r["sender_type"],
                message=r["message"], sender_agent_id=r["sender_agent_id"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # --- File locks ---

    async def insert_lock(
        self,
        project_id: int,
        file_path: str,
        lock_type: str,
        holder_id: int,
        acquired_at: float,
        expires_at: float,
    ) -> LockRecord:
        lock_id = await self._insert(
            "INSERT INTO file_locks (project_id, file_path, lock_type, holder_id, acquired_at, expires_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (project_id, file_path, lock_type, holder_id, acquired_at, expires_at),
        )
        return LockRecord(
            id=lock_id, project_id=project_id, file_path=file_path, lock_type=lock_type,
            holder_id=holder_id, acquired_at=acquired_at, expires_at=expires_at,
        )

    async def get_lock(self, lock_id: int) -> LockRecord | None:
        row = await self._fetchone("SELECT * FROM file_locks WHERE id = ?", (lock_id,))
        return self._row_to_lock(row) if row is not None else None

    async def locks_for_path(self, project_id: int, file_path: str) -> list[LockRecord]:
        """All stored locks on a path, expired ones included. Write locks first."""
        rows = await self._fetchall(
            "SELECT * FROM file_locks WHERE project_id = ? AND file_path = ? "
            "ORDER BY CASE lock_type WHEN 'write' THEN 0 ELSE 1 END, acquired_at ASC",
            (project_id, file_path),
        )
        return [self._row_to_lock(r) for r in rows]

    async def list_locks(
        self,
        *,
        project_id: int | None = None,
        holder_id: int | None = None,
        active_at: float | None = None,
        acquired_before: float | None = None,
    ) -> list[LockRecord]:
        clauses: list[str] = []
        params: list[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if holder_id is not None:
            clauses.append("holder_id = ?")
            params.append(holder_id)
        if active_at is not None:
            clauses.append("expires_at > ?")
            params.append(active_at)
        if acquired_before is not None:
            clauses.append("acquired_at < ?")
            params.append(acquired_before)
        query = "SELECT * FROM file_locks"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY acquired_at ASC, id ASC"
        rows = await self._fetchall(query, tuple(params))
        return [self._row_to_lock(r) for r in rows]

    async def update_lock_expiry(self, lock_id: int, expires_at: float) -> bool:
        """Move a lock's expiry.  False when the row no longer exists."""
        return await self._write(
            "UPDATE file_locks SET expires_at = ? WHERE id = ?", (expires_at, lock_id)
        ) > 0

    async def delete_lock(self, lock_id: int) -> bool:
        return await self._write("DELETE FROM file_locks WHERE id = ?", (lock_id,)) > 0

    async def delete_locks(
        self,
        *,
        project_id: int | None = None,
        file_path: str | None = None,
        holder_id: int | None = None,
    ) -> int:
        clauses: list[str] = []
        params: list[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        if file_path is not None:
            clauses.append("file_path = ?")
            params.append(file_path)
        if holder_id is not None:
            clauses.append("holder_id = ?")
            params.append(holder_id)
        if not clauses:
            raise ValueError("delete_locks requires at least one filter")
        return await self._write(
            "DELETE FROM file_locks WHERE " + " AND ".join(clauses), tuple(params)
        )

    async def delete_expired_locks(self, now: float) -> int:
        return await self._write("DELETE FROM file_locks WHERE expires_at <= ?", (now,))

    # --- Tool execution audit ---

    async def record_tool_execution(
        self,
        agent_id: int,
        tool_name: str,
        args: dict[str, Any],
        result: dict[str, Any],
        *,
        success: bool,
        duration_ms: int = 0,
        task_id: int | None = None,
    ) -> int:
        return await self._insert(
            "INSERT INTO tool_executions (agent_id, task_id, tool_name, args_json, result_json, "
            "success, duration_ms, timestamp) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                agent_id, task_id, tool_name,
                json.dumps(args, default=str), json.dumps(result, default=str),
                int(success), duration_ms, time.time(),
            ),
        )

    async def list_tool_executions(self, agent_id: int, *, limit: int = 100) -> list[ToolExecutionRecord]:
        rows = await self._fetchall(
            "SELECT * FROM tool_executions WHERE agent_id = ? ORDER BY timestamp ASC, id ASC LIMIT ?",
            (agent_id, limit),
        )
        return [
            ToolExecutionRecord(
                id=r["id"], agent_id=r["agent_id"], tool_name=r["tool_name"],
                task_id=r["task_id"], args=json.loads(r["args_json"] or "{}"),
                result=json.loads(r["result_json"] or "{}"), success=bool(r["success"]),
                duration_ms=r["duration_ms"], timestamp=r["timestamp"],
            )
            for r in rows
        ]

    async def count_tool_executions(self, agent_id: int) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) AS n FROM tool_executions WHERE agent_id = ?", (agent_id,)
        )
        return int(row["n"]) if row else 0

    # --- Row converters ---

    @staticmethod
    def _row_to_role(row: aiosqlite.Row) -> RoleRecord:
        return RoleRecord(
            name=row["name"],
            display_name=row["display_name"],
            system_prompt=row["system_prompt"],
            description=row["description"] or "",
            is_predefined=bool(row["is_predefined"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_agent(row: aiosqlite.Row) -> AgentRecord:
        return AgentRecord(
            id=row["id"],
            project_id=row["project_id"],
            name=row["name"],
            role=row["role"],
            custom_prompt=row["custom_prompt"],
            status=row["status"],
            current_task_id=row["current_task_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> TaskRecord:
        return TaskRecord(
            id=row["id"],
            project_id=row["project_id"],
            title=row["title"],
            description=row["description"] or "",
            priority=row["priority"],
            status=row["status"],
            agent_id=row["agent_id"],
            created_by=row["created_by"],
            result=row["result"],
            error=row["error"],
            created_at=row["created_at"],
            started_at=row["started_at"],
            completed_at=row["completed_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            from_agent_id=row["from_agent_id"],
            to_agent_id=row["to_agent_id"],
            message=row["message"],
            message_type=row["message_type"],
            related_task_id=row["related_task_id"],
            is_read=bool(row["is_read"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_lock(row: aiosqlite.Row) -> LockRecord:
        return LockRecord(
            id=row["id"],
            project_id=row["project_id"],
            file_path=row["file_path"],
            lock_type=row["lock_type"],
            holder_id=row["holder_id"],
            acquired_at=row["acquired_at"],
            expires_at=row["expires_at"],
        )
