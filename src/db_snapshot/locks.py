"""Named restore locks.

A ``RestoreLock`` opens a transaction that no other holder of the same lock
can have open at the same time.  The restore engine only ever writes through
such a transaction, so at most one restore is in flight per lock.

- ``AdvisoryLock``: PostgreSQL ``pg_advisory_xact_lock`` on a fixed key.
  Works across processes and hosts; released when the transaction ends.
- ``LocalLock``: an ``asyncio.Lock`` per lock name.  Serializes restores
  within one event loop only; for single-process deployments and tests.

Usage:
    from db_snapshot.locks import AdvisoryLock

    lock = AdvisoryLock(key=7_385_204_117)
    async with lock.locked_transaction(adapter) as tx:
        ...
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol

from db_snapshot.adapters.base import DatabaseClient, Transaction

logger = logging.getLogger(__name__)

DEFAULT_LOCK_NAME = "snapshot-restore"
DEFAULT_ADVISORY_KEY = 7_385_204_117


class RestoreLock(Protocol):
    """A named mutual-exclusion primitive scoped to one transaction."""

    name: str

    def locked_transaction(
        self, adapter: DatabaseClient
    ) -> AbstractAsyncContextManager[Transaction]:
        """Open a transaction on *adapter* while holding the lock.

        The lock is held from before the first statement until after the
        transaction has committed or rolled back.
        """
        ...


class AdvisoryLock:
    """PostgreSQL transaction-scoped advisory lock on a fixed key.

    Args:
        key: 64-bit advisory lock key shared by every process that restores
            into the same database.
        name: Label used in logs.
    """

    def __init__(self, key: int = DEFAULT_ADVISORY_KEY, name: str = DEFAULT_LOCK_NAME) -> None:
        self.key = key
        self.name = name

    @asynccontextmanager
    async def locked_transaction(self, adapter: DatabaseClient) -> AsyncIterator[Transaction]:
        async with adapter.transaction() as tx:
            logger.debug(f"[lock] Waiting for advisory lock {self.name} ({self.key})")
            # Blocks until any other holder's transaction ends.
            await tx.execute("SELECT pg_advisory_xact_lock(:key)", {"key": self.key})
            logger.debug(f"[lock] Acquired advisory lock {self.name}")
            yield tx


# asyncio locks bind to one event loop, so the registry is kept per loop.
_local_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


class LocalLock:
    """In-process lock: one ``asyncio.Lock`` per name, shared by all instances.

    Args:
        name: Lock name.  Instances with the same name exclude each other.
    """

    def __init__(self, name: str = DEFAULT_LOCK_NAME) -> None:
        self.name = name

    def _lock(self) -> asyncio.Lock:
        locks = _local_locks.setdefault(asyncio.get_running_loop(), {})
        return locks.setdefault(self.name, asyncio.Lock())

    @asynccontextmanager
    async def locked_transaction(self, adapter: DatabaseClient) -> AsyncIterator[Transaction]:
        async with self._lock():
            logger.debug(f"[lock] Acquired local lock {self.name}")
            async with adapter.transaction() as tx:
                yield tx
