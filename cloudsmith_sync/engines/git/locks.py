"""Per-repository mutual exclusion for shared working copies."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog

log = structlog.get_logger("cloudsmith_sync.git")


class RepositoryLocks:
    """One ``asyncio.Lock`` per working-copy path.

    Deliveries for the same repository queue on its lock; deliveries for
    different repositories never contend.
    """

    def __init__(self) -> None:
        self._locks: dict[Path, asyncio.Lock] = {}

    def _lock_for(self, path: Path) -> asyncio.Lock:
        key = path.resolve()
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def locked(self, path: Path) -> bool:
        return self._lock_for(path).locked()

    @asynccontextmanager
    async def hold(self, path: Path) -> AsyncIterator[None]:
        lock = self._lock_for(path)
        if lock.locked():
            log.info("git.lock_wait", path=str(path))
        async with lock:
            yield
