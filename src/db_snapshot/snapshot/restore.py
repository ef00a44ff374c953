"""Restore engine: replace the active layer set with a snapshot's contents.

A real restore runs as one transaction:

1. Loaded: the snapshot file is parsed and validated.
2. LockAcquired: the restore lock is taken, so restores never overlap.
3. ConstraintsDeferred: ``SET CONSTRAINTS ALL DEFERRED``.
4. Cleared: every table in the active set is emptied, children first.  A
   table missing from the live schema is skipped with a warning.
5. Inserted: snapshot rows are inserted, parents first, in batches that
   stay under the bind-parameter limit.
6. Committed: deferred constraints are checked.

An exception at any step rolls the whole transaction back; the database is
left exactly as it was.  Tables outside the active layer set are never
touched.

Usage:
    from db_snapshot.snapshot.restore import restore_snapshot

    plan = await restore_snapshot(adapter, store, "demo-1", dry_run=True)
    result = await restore_snapshot(adapter, store, "demo-1")
"""

import asyncio
import logging
import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from db_snapshot.adapters.base import MAX_BIND_PARAMS, DatabaseClient, Transaction
from db_snapshot.catalog import Table, insertion_order, physical_name, table_def, truncation_order
from db_snapshot.errors import (
    InvalidSnapshotFormat,
    RestoreTimeoutError,
    RestoreTransactionError,
    SchemaDrift,
)
from db_snapshot.locks import AdvisoryLock, RestoreLock
from db_snapshot.snapshot.models import (
    RestorePlan,
    RestoreResult,
    SnapshotFile,
    SnapshotProgress,
)
from db_snapshot.snapshot.store import SnapshotStore
from db_snapshot.snapshot.writer import ProgressCallback, report_progress

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_TIMEOUT = 600.0

JSON_TYPES = frozenset({"json", "jsonb"})

ISO_TIMESTAMP = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?(Z|[+-]\d{2}:\d{2})?"
)
ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
ISO_TIME = re.compile(r"\d{2}:\d{2}(:\d{2}(\.\d{1,6})?)?([+-]\d{2}:\d{2})?")


# ------------------------------------------------------------------
# Row conversion
# ------------------------------------------------------------------


def revive_value(value, data_type: str | None = None):
    """Turn a serialized string back into the value the driver expects.

    ISO-8601 strings become ``datetime`` (``date``, ``time`` for those
    column types); strings in ``numeric`` columns become ``Decimal``.

    Args:
        value: A serialized field value.
        data_type: The column's ``information_schema`` data type, when
            known.  Strings in known non-temporal columns are left alone, so
            a text column holding a timestamp-looking string stays a string.

    Returns:
        The converted value, or *value* unchanged.

    Raises:
        InvalidSnapshotFormat: A well-formed ISO string names an impossible
            date or time (e.g. ``2024-02-30``) in a column of that type.
            Untyped strings are left unchanged.
    """
    if not isinstance(value, str):
        return value
    try:
        return _revive_string(value, data_type)
    except ValueError as e:
        if data_type is None:
            return value
        raise InvalidSnapshotFormat(f"Invalid {data_type} value {value!r}: {e}") from e


def _revive_string(value: str, data_type: str | None):
    if data_type is not None:
        if data_type == "date" and ISO_DATE.fullmatch(value):
            return date.fromisoformat(value)
        if data_type == "numeric":
            try:
                return Decimal(value)
            except InvalidOperation:
                return value
        if data_type.startswith("time ") and ISO_TIME.fullmatch(value):
            return time.fromisoformat(value)
        if not data_type.startswith("timestamp"):
            return value
    if ISO_TIMESTAMP.fullmatch(value):
        return datetime.fromisoformat(value)
    return value


def revive_row(row: dict, column_types: dict[str, str] | None = None) -> dict:
    """Apply ``revive_value()`` to every field of *row*."""
    column_types = column_types or {}
    return {k: revive_value(v, column_types.get(k)) for k, v in row.items()}


def effective_batch_size(column_count: int, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    """Rows per INSERT so that rows x columns stays within ``MAX_BIND_PARAMS``."""
    per_row = max(column_count, 1)
    return max(1, min(batch_size, MAX_BIND_PARAMS // per_row))


# ------------------------------------------------------------------
# Planning
# ------------------------------------------------------------------


def build_restore_plan(snapshot: SnapshotFile) -> RestorePlan:
    """Compute the clear/insert plan for *snapshot* without touching the database."""
    include_top_layer = snapshot.metadata.with_learners
    inserts = insertion_order(include_top_layer)
    warnings = []
    if not include_top_layer:
        for t in inserts:
            scope_filter = table_def(t).scope_filter
            if scope_filter is not None:
                warnings.append(
                    f"{t.value}: rows with {scope_filter.column} in "
                    f"{sorted(scope_filter.excluded_values)} are deleted and not restored"
                )
    return RestorePlan(
        truncation_order=[t.value for t in truncation_order(include_top_layer)],
        insertion_order=[t.value for t in inserts],
        row_counts={t.value: len(snapshot.data.get(t.value, [])) for t in inserts},
        warnings=warnings,
    )


# ------------------------------------------------------------------
# Transaction steps
# ------------------------------------------------------------------


async def _clear_table(tx: Transaction, table: Table) -> int:
    name = physical_name(table)
    if not await tx.table_exists(name):
        raise SchemaDrift(name)
    return await tx.delete_all(name)


async def _insert_table(
    tx: Transaction,
    table: Table,
    rows: list[dict],
    batch_size: int,
) -> int:
    name = physical_name(table)
    column_types = await tx.column_types(name)
    json_columns = frozenset(c for c, t in column_types.items() if t in JSON_TYPES)

    columns: set[str] = set()
    for row in rows:
        columns.update(row)
    size = effective_batch_size(len(columns), batch_size)

    inserted = 0
    for start in range(0, len(rows), size):
        batch = [revive_row(r, column_types) for r in rows[start:start + size]]
        inserted += await tx.insert_many(name, batch, json_columns)
    return inserted


async def _apply_snapshot(
    tx: Transaction,
    snapshot: SnapshotFile,
    result: RestoreResult,
    batch_size: int,
    on_progress: ProgressCallback | None,
) -> None:
    include_top_layer = snapshot.metadata.with_learners

    await tx.execute("SET CONSTRAINTS ALL DEFERRED")

    to_clear = truncation_order(include_top_layer)
    for i, table in enumerate(to_clear, start=1):
        try:
            deleted = await _clear_table(tx, table)
        except SchemaDrift as drift:
            logger.warning(f"[restore] {drift}; skipping")
            result.tables_skipped.append(table.value)
            result.errors.append(str(drift))
            continue
        result.tables_cleared.append(table.value)
        logger.debug(f"[restore] Cleared {table} ({deleted} rows)")
        await report_progress(on_progress, SnapshotProgress(
            phase="clear",
            message=f"Cleared {table.value}",
            table=table.value,
            current=i,
            total=len(to_clear),
        ))

    to_insert = insertion_order(include_top_layer)
    total = 0
    for i, table in enumerate(to_insert, start=1):
        rows = snapshot.data.get(table.value, [])
        if not rows:
            result.inserted[table.value] = 0
            continue
        count = await _insert_table(tx, table, rows, batch_size)
        result.inserted[table.value] = count
        total += count
        if count != len(rows):
            logger.info(f"[restore] {table}: {len(rows) - count} duplicate rows ignored")
        await report_progress(on_progress, SnapshotProgress(
            phase="insert",
            message=f"Inserted {table.value} ({count} rows)",
            table=table.value,
            current=i,
            total=len(to_insert),
            rows=total,
        ))

    await report_progress(on_progress, SnapshotProgress(
        phase="commit",
        message="Committing",
        current=len(to_insert),
        total=len(to_insert),
        rows=total,
    ))


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------


async def restore_snapshot(
    adapter: DatabaseClient,
    store: SnapshotStore,
    name: str,
    dry_run: bool = False,
    lock: RestoreLock | None = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    on_progress: ProgressCallback | None = None,
) -> RestoreResult:
    """Replace the contents of the snapshot's layer set with its rows.

    Args:
        adapter: Database adapter implementing ``DatabaseClient``.
        store: Snapshot store to load from.
        name: Snapshot name.
        dry_run: Load and plan only.  The database is not contacted.
        lock: Restore lock; defaults to ``AdvisoryLock()``.
        batch_size: Upper bound on rows per INSERT (lowered further for
            wide tables to respect the bind-parameter limit).
        timeout: Seconds before the transaction is abandoned and rolled back.
        on_progress: Optional callback (sync or async) per cleared and
            inserted table, and once before commit.

    Returns:
        ``RestoreResult`` with the plan, cleared tables, inserted counts,
        and any schema drift warnings.

    Raises:
        InvalidSnapshotName, SnapshotNotFoundError, InvalidSnapshotFormat,
        UnsupportedSnapshotVersion: Before any database work.
        RestoreTransactionError: A database error aborted the restore
            (including deferred constraint violations at commit).
        RestoreTimeoutError: The restore took longer than *timeout*.
        InvalidSnapshotFormat: A row holds a value its column type cannot
            take (e.g. an impossible date); rolled back.
    """
    snapshot = store.load(name)
    plan = build_restore_plan(snapshot)
    result = RestoreResult(name=name, dry_run=dry_run, plan=plan)

    if dry_run:
        logger.info(
            f"[restore] Dry run '{name}': clear {len(plan.truncation_order)} tables, "
            f"insert {plan.total_rows} rows"
        )
        return result

    for warning in plan.warnings:
        logger.warning(f"[restore] {warning}")

    lock = lock or AdvisoryLock()
    logger.info(f"[restore] Restoring '{name}' ({plan.total_rows} rows) under lock {lock.name}")

    try:
        async with asyncio.timeout(timeout):
            async with lock.locked_transaction(adapter) as tx:
                await _apply_snapshot(tx, snapshot, result, batch_size, on_progress)
    except TimeoutError as e:
        logger.error(f"[restore] '{name}' timed out after {timeout}s; rolled back")
        raise RestoreTimeoutError(
            f"Restore of '{name}' timed out after {timeout}s and was rolled back"
        ) from e
    except SQLAlchemyError as e:
        logger.error(f"[restore] '{name}' failed; rolled back: {e}")
        raise RestoreTransactionError(
            f"Restore of '{name}' failed and was rolled back: {e}"
        ) from e
    except InvalidSnapshotFormat as e:
        logger.error(f"[restore] '{name}' has an invalid row; rolled back: {e}")
        raise

    logger.info(f"[restore] Restored '{name}': {result.total_inserted} rows inserted")
    return result
