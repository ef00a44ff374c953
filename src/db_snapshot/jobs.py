"""Background snapshot jobs reported through an external task tracker.

The take/restore engine calls are detached onto their own asyncio task so
the caller gets a task id back immediately.  The job's only logic is to turn
progress reports into tracker updates and to end in exactly one terminal
state: ``complete`` on success, ``fail`` on any exception.  Persisting that
state is the tracker's business.

Usage:
    from db_snapshot.jobs import start_snapshot_take_job

    task_id = await start_snapshot_take_job(tracker, adapter, store, "demo-1")
    # ... poll the tracker for task_id
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.errors import SnapshotExistsError, SnapshotNotFoundError
from db_snapshot.locks import RestoreLock
from db_snapshot.snapshot.models import SnapshotProgress
from db_snapshot.snapshot.restore import DEFAULT_BATCH_SIZE, DEFAULT_TIMEOUT, restore_snapshot
from db_snapshot.snapshot.store import SnapshotStore, validate_snapshot_name
from db_snapshot.snapshot.writer import take_snapshot

logger = logging.getLogger(__name__)

TASK_TYPE_TAKE = "snapshot_take"
TASK_TYPE_RESTORE = "snapshot_restore"

# Strong references to running jobs; the event loop only keeps weak ones.
_background_tasks: set[asyncio.Task] = set()


class TaskTracker(Protocol):
    """External task-tracking collaborator (persists job state)."""

    async def start(self, task_type: str, context: dict[str, Any]) -> str:
        """Register a new in-progress task and return its id."""
        ...

    async def update(self, task_id: str, context: dict[str, Any]) -> None:
        """Record a progress update."""
        ...

    async def complete(self, task_id: str, context: dict[str, Any]) -> None:
        """Mark the task completed with a final summary."""
        ...

    async def fail(self, task_id: str, error: str) -> None:
        """Mark the task failed."""
        ...


async def _run_job(
    tracker: TaskTracker,
    task_id: str,
    work: Callable[[Callable[[SnapshotProgress], Awaitable[None]]], Awaitable[dict[str, Any]]],
) -> None:
    async def on_progress(progress: SnapshotProgress) -> None:
        await tracker.update(task_id, progress.as_context())

    try:
        summary = await work(on_progress)
    except Exception as e:
        logger.exception(f"[jobs] Task {task_id} failed")
        await tracker.fail(task_id, str(e))
        return

    await tracker.complete(task_id, summary)


def _detach(coro: Coroutine[Any, Any, None]) -> asyncio.Task:
    task = asyncio.create_task(coro)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def start_snapshot_take_job(
    tracker: TaskTracker,
    adapter: DatabaseClient,
    store: SnapshotStore,
    name: str,
    description: str | None = None,
    include_top_layer: bool = False,
) -> str:
    """Start ``take_snapshot()`` in the background and return the task id.

    Name validation and the already-exists check happen before the task is
    registered, so those errors reach the caller directly.

    Raises:
        InvalidSnapshotName: If *name* fails validation.
        SnapshotExistsError: If the snapshot already exists.
    """
    validate_snapshot_name(name)
    if store.exists(name):
        raise SnapshotExistsError(f"Snapshot '{name}' already exists")

    task_id = await tracker.start(TASK_TYPE_TAKE, {
        "name": name,
        "withLearners": include_top_layer,
        "phase": "starting",
        "message": f"Taking snapshot '{name}'...",
    })

    async def work(on_progress) -> dict[str, Any]:
        metadata = await take_snapshot(
            adapter,
            store,
            name,
            description=description,
            include_top_layer=include_top_layer,
            on_progress=on_progress,
        )
        return {
            "name": metadata.name,
            "totalRows": metadata.total_rows,
            "tables": len(metadata.stats),
            "message": f"Snapshot '{name}' saved ({metadata.total_rows} rows)",
        }

    _detach(_run_job(tracker, task_id, work))
    logger.info(f"[jobs] Started {TASK_TYPE_TAKE} task {task_id} for '{name}'")
    return task_id


async def start_snapshot_restore_job(
    tracker: TaskTracker,
    adapter: DatabaseClient,
    store: SnapshotStore,
    name: str,
    lock: RestoreLock | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Start ``restore_snapshot()`` in the background and return the task id.

    Raises:
        InvalidSnapshotName: If *name* fails validation.
        SnapshotNotFoundError: If the snapshot does not exist.
    """
    validate_snapshot_name(name)
    if not store.exists(name):
        raise SnapshotNotFoundError(f"Snapshot '{name}' not found")

    task_id = await tracker.start(TASK_TYPE_RESTORE, {
        "name": name,
        "phase": "starting",
        "message": f"Restoring snapshot '{name}'...",
    })

    async def work(on_progress) -> dict[str, Any]:
        result = await restore_snapshot(
            adapter,
            store,
            name,
            lock=lock,
            batch_size=batch_size,
            timeout=timeout,
            on_progress=on_progress,
        )
        return {
            "name": name,
            "tablesCleared": len(result.tables_cleared),
            "totalInserted": result.total_inserted,
            "warnings": result.errors,
            "message": f"Snapshot '{name}' restored ({result.total_inserted} rows)",
        }

    _detach(_run_job(tracker, task_id, work))
    logger.info(f"[jobs] Started {TASK_TYPE_RESTORE} task {task_id} for '{name}'")
    return task_id
