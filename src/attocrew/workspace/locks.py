"""Lock Registry - cooperative read/write file locks with expiry.

Locks are advisory and live in the crew store so they survive the
process that took them.  Invariants per (project, path):

1. At most one write lock, and a write lock excludes every read lock.
2. Any number of read locks by different holders may coexist.
3. A lock whose expiry has passed is absent.  It is purged lazily when
   the path is next touched, and by the periodic sweep.

Re-acquiring with the same holder and kind refreshes the lock.  There
is no upgrade: a holder asking for a different kind on a path it already
locks conflicts with its own lock.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import posixpath
import time
from enum import StrEnum
from typing import Callable

from attocrew.errors import LockConflictError, LockNotHeldError
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import CrewStore, LockRecord
from attocrew.types.events import EventType

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TTL = 300.0  # 5 minutes
DEFAULT_SWEEP_INTERVAL = 60.0
DEFAULT_STALE_AGE = 600.0  # 10 minutes


class LockType(StrEnum):
    """Kind of file lock."""

    READ = "read"
    WRITE = "write"


def normalize_path(file_path: str) -> str:
    """Canonical form used as the lock key."""
    path = posixpath.normpath(file_path.replace("\\", "/"))
    return path[2:] if path.startswith("./") else path


class LockRegistry:
    """Grants and revokes file locks backed by ``CrewStore``.

    Check-then-insert on a path runs under an ``asyncio.Lock`` for that
    (project, path) key so two acquirers cannot both pass the conflict
    check.
    """

    def __init__(
        self,
        store: CrewStore,
        *,
        broadcaster: EventBroadcaster | None = None,
        default_ttl: float = DEFAULT_LOCK_TTL,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        stale_age: float = DEFAULT_STALE_AGE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._default_ttl = default_ttl
        self._sweep_interval = sweep_interval
        self._stale_age = stale_age
        self._clock = clock
        self._path_locks: dict[tuple[int, str], asyncio.Lock] = {}
        self._sweeper: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    async def acquire(
        self,
        project_id: int,
        file_path: str,
        holder_id: int,
        lock_type: LockType | str = LockType.WRITE,
        ttl: float | None = None,
    ) -> LockRecord:
        """Take a lock on *file_path* for *holder_id*.

        Raises:
            LockConflictError: another lock on the path is incompatible.
        """
        kind = LockType(lock_type)
        path = normalize_path(file_path)
        ttl = ttl if ttl is not None else self._default_ttl

        async with self._get_lock(project_id, path):
            now = self._clock()
            active = await self._active_locks(project_id, path, now)

            own = next(
                (lock for lock in active if lock.holder_id == holder_id and lock.lock_type == kind),
                None,
            )
            if own is not None:
                own.expires_at = now + ttl
                if await self._store.update_lock_expiry(own.id, own.expires_at):
                    return own
                # Swept after it was read; take a fresh one below
                logger.debug("Lock %s on %s vanished before refresh", own.id, path)
                active.remove(own)

            for existing in active:
                if kind == LockType.WRITE or existing.lock_type == LockType.WRITE:
                    logger.debug(
                        "Lock conflict on %s: holder %s blocks %s",
                        path, existing.holder_id, holder_id,
                    )
                    raise LockConflictError(path, existing.holder_id, existing.lock_type)

            record = await self._store.insert_lock(
                project_id, path, str(kind), holder_id, now, now + ttl,
            )

        self._emit(project_id, holder_id, "acquired", path=path, lock_type=str(kind))
        return record

    async def release(self, project_id: int, file_path: str, holder_id: int) -> bool:
        """Drop *holder_id*'s lock on the path.  Not holding it is a no-op."""
        path = normalize_path(file_path)
        async with self._get_lock(project_id, path):
            removed = await self._store.delete_locks(
                project_id=project_id, file_path=path, holder_id=holder_id,
            )
        if removed:
            self._emit(project_id, holder_id, "released", path=path)
        return removed > 0

    async def release_all_for_agent(self, holder_id: int) -> int:
        """Release every lock held by an agent, across projects."""
        held = await self._store.list_locks(holder_id=holder_id)
        removed = await self._store.delete_locks(holder_id=holder_id)
        for project_id in {lock.project_id for lock in held}:
            self._emit(project_id, holder_id, "released_all")
        return removed

    async def release_all_for_project(self, project_id: int) -> int:
        """Release every lock in a project (teardown)."""
        removed = await self._store.delete_locks(project_id=project_id)
        if removed:
            self._emit(project_id, None, "released_project", count=removed)
        return removed

    async def force_release(self, lock_id: int) -> bool:
        """Remove a lock by id regardless of holder (operator override)."""
        lock = await self._store.get_lock(lock_id)
        if lock is None:
            return False
        removed = await self._store.delete_lock(lock_id)
        if removed:
            logger.info(
                "Force-released %s lock on %s held by %s",
                lock.lock_type, lock.file_path, lock.holder_id,
            )
            self._emit(lock.project_id, lock.holder_id, "force_released", path=lock.file_path)
        return removed

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def check(self, project_id: int, file_path: str) -> LockRecord | None:
        """Return the most restrictive live lock on the path, purging expired ones."""
        path = normalize_path(file_path)
        async with self._get_lock(project_id, path):
            active = await self._active_locks(project_id, path, self._clock())
        return active[0] if active else None

    async def extend(
        self,
        project_id: int,
        file_path: str,
        holder_id: int,
        extra: float,
    ) -> LockRecord:
        """Push a held lock's expiry forward by *extra* seconds.

        Raises:
            LockNotHeldError: the holder has no live lock on the path.
        """
        path = normalize_path(file_path)
        async with self._get_lock(project_id, path):
            active = await self._active_locks(project_id, path, self._clock())
            for lock in active:
                if lock.holder_id == holder_id:
                    lock.expires_at += extra
                    if await self._store.update_lock_expiry(lock.id, lock.expires_at):
                        return lock
                    break
        raise LockNotHeldError(path, holder_id)

    async def project_locks(self, project_id: int) -> list[LockRecord]:
        return await self._store.list_locks(project_id=project_id, active_at=self._clock())

    async def agent_locks(self, holder_id: int) -> list[LockRecord]:
        return await self._store.list_locks(holder_id=holder_id, active_at=self._clock())

    async def stale_locks(
        self,
        project_id: int | None = None,
        *,
        older_than: float | None = None,
    ) -> list[LockRecord]:
        """Live locks held longer than *older_than* seconds.

        Long-held locks usually mean a hung run or two agents waiting on
        each other's files.
        """
        now = self._clock()
        age = older_than if older_than is not None else self._stale_age
        return await self._store.list_locks(
            project_id=project_id, active_at=now, acquired_before=now - age,
        )

    # ------------------------------------------------------------------
    # Expiry sweep
    # ------------------------------------------------------------------

    async def cleanup_expired(self) -> int:
        """Delete every expired lock row.  Returns the number removed."""
        removed = await self._store.delete_expired_locks(self._clock())
        if removed:
            logger.info("Swept %d expired file lock(s)", removed)
        return removed

    def start(self) -> None:
        """Start the periodic expiry sweep."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="lock-sweeper")

    async def stop(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweeper
        self._sweeper = None

    @property
    def now(self) -> float:
        """Current time on the registry's clock."""
        return self._clock()

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.cleanup_expired()
            except Exception:
                logger.exception("Lock sweep failed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _get_lock(self, project_id: int, path: str) -> asyncio.Lock:
        key = (project_id, path)
        if key not in self._path_locks:
            self._path_locks[key] = asyncio.Lock()
        return self._path_locks[key]

    async def _active_locks(self, project_id: int, path: str, now: float) -> list[LockRecord]:
        """Live locks on the path (write first); expired rows are deleted."""
        active: list[LockRecord] = []
        for lock in await self._store.locks_for_path(project_id, path):
            if lock.is_expired(now):
                await self._store.delete_lock(lock.id)
                logger.debug("Purged expired %s lock on %s", lock.lock_type, path)
            else:
                active.append(lock)
        return active

    def _emit(self, project_id: int, holder_id: int | None, action: str, **data: object) -> None:
        if self._broadcaster is not None:
            self._broadcaster.emit(
                EventType.FILE_LOCK, project_id, agent_id=holder_id, action=action, **data,
            )
