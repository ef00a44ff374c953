"""Snapshot writer: export every table in the active layer set to one file.

Tables are read in insertion order (parents first).  Rows are held in
memory and the file is written once, after every read has succeeded, so a
failed read never leaves a partial snapshot behind.

Usage:
    from db_snapshot.snapshot.writer import take_snapshot

    metadata = await take_snapshot(
        adapter,
        store,
        "demo-1",
        description="Before the spring import",
        include_top_layer=False,
    )
    print(metadata.total_rows)
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.base import DatabaseClient
from db_snapshot.catalog import insertion_order, layers_for, physical_name, table_def
from db_snapshot.errors import SnapshotExistsError, SnapshotReadError
from db_snapshot.snapshot.models import (
    SNAPSHOT_FORMAT_VERSION,
    SnapshotFile,
    SnapshotMetadata,
    SnapshotProgress,
)
from db_snapshot.snapshot.store import SnapshotStore, validate_snapshot_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SnapshotProgress], Awaitable[None] | None]


async def report_progress(
    on_progress: ProgressCallback | None,
    progress: SnapshotProgress,
) -> None:
    """Invoke a sync or async progress callback."""
    if on_progress is None:
        return
    result = on_progress(progress)
    if inspect.isawaitable(result):
        await result


async def take_snapshot(
    adapter: DatabaseClient,
    store: SnapshotStore,
    name: str,
    description: str | None = None,
    include_top_layer: bool = False,
    on_progress: ProgressCallback | None = None,
) -> SnapshotMetadata:
    """Export the active layer set to ``<store>/<name>.json``.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        store: Snapshot store to write into.
        name: Snapshot name (letters, digits, ``-``, ``_``; max 100).
        description: Optional free-text description.
        include_top_layer: Include layer 3 (learner data).  When ``False``,
            tables with a scope filter also drop their learner-scoped rows.
        on_progress: Optional callback (sync or async), invoked once per
            table and once before the file is written.

    Returns:
        Metadata of the written snapshot.

    Raises:
        InvalidSnapshotName: If *name* fails validation.
        SnapshotExistsError: If a snapshot with this name already exists.
            Delete it first; snapshots are never overwritten.
        SnapshotReadError: If a table read fails.  No file is written.

    Example:
        meta = await take_snapshot(adapter, store, "nightly_2026-10-18")
    """
    validate_snapshot_name(name)
    if store.exists(name):
        raise SnapshotExistsError(f"Snapshot '{name}' already exists")

    tables = insertion_order(include_top_layer)
    logger.info(
        f"[snapshot] Taking '{name}': {len(tables)} tables, "
        f"layers {layers_for(include_top_layer)}"
    )

    data: dict[str, list[dict]] = {}
    stats: dict[str, int] = {}
    total_rows = 0

    for i, table in enumerate(tables, start=1):
        try:
            rows = await adapter.select(physical_name(table), "*")
        except SQLAlchemyError as e:
            logger.error(f"[snapshot] Reading {table} failed; nothing written: {e}")
            raise SnapshotReadError(f"Snapshot '{name}' failed reading {table.value}: {e}") from e

        scope_filter = table_def(table).scope_filter
        if scope_filter is not None and not include_top_layer:
            kept = [r for r in rows if scope_filter.keeps(r)]
            if len(kept) != len(rows):
                logger.debug(
                    f"[snapshot] {table}: left out {len(rows) - len(kept)} rows "
                    f"with {scope_filter.column} in {sorted(scope_filter.excluded_values)}"
                )
            rows = kept

        data[table.value] = rows
        stats[table.value] = len(rows)
        total_rows += len(rows)

        await report_progress(on_progress, SnapshotProgress(
            phase="read",
            message=f"Read {table.value} ({len(rows)} rows)",
            table=table.value,
            current=i,
            total=len(tables),
            rows=total_rows,
        ))

    metadata = SnapshotMetadata(
        name=name,
        description=description,
        version=SNAPSHOT_FORMAT_VERSION,
        created_at=datetime.now(timezone.utc),
        layers=layers_for(include_top_layer),
        with_learners=include_top_layer,
        stats=stats,
        total_rows=total_rows,
    )

    await report_progress(on_progress, SnapshotProgress(
        phase="write",
        message=f"Writing snapshot file ({total_rows} rows)",
        current=len(tables),
        total=len(tables),
        rows=total_rows,
    ))

    path = store.write(SnapshotFile(metadata=metadata, data=data))
    logger.info(f"[snapshot] Wrote '{name}' to {path} ({total_rows} rows)")

    return metadata
