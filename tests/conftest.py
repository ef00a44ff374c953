"""Shared fixtures: an in-memory transactional database and a snapshot store.

``FakeDatabase`` implements the ``DatabaseClient`` protocol.  Each
``transaction()`` works on a private copy of the committed state and
publishes it only on a clean exit, so a raised exception leaves the
committed tables untouched exactly like a PostgreSQL rollback.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError, ProgrammingError

from db_snapshot.catalog import CATALOG, Table, physical_name
from db_snapshot.snapshot.store import SnapshotStore


class FakeTransaction:
    """``Transaction`` over a working copy of the fake database's tables."""

    def __init__(self, db: "FakeDatabase", tx_id: int, tables: dict[str, list[dict]]) -> None:
        self.db = db
        self.tx_id = tx_id
        self.tables = tables

    async def _step(self, op: str, table: str | None = None) -> None:
        self.db.log.append((self.tx_id, op, table))
        # Yield so concurrent transactions can interleave unless serialized.
        await asyncio.sleep(0)

    async def execute(self, sql: str, params: dict | None = None) -> None:
        self.db.statements.append((sql, params))
        await self._step("execute")

    async def scalar(self, sql: str, params: dict | None = None):
        await self._step("scalar")
        return None

    async def table_exists(self, table: str) -> bool:
        return table in self.tables

    async def column_types(self, table: str) -> dict[str, str]:
        return dict(self.db.column_types.get(table, {}))

    async def delete_all(self, table: str) -> int:
        await self._step("delete", table)
        if table not in self.tables:
            raise ProgrammingError("DELETE", {}, Exception(f'relation "{table}" does not exist'))
        count = len(self.tables[table])
        self.tables[table] = []
        return count

    async def insert_many(self, table: str, rows: list[dict], json_columns=frozenset()) -> int:
        await self._step("insert", table)
        self.db.batches.setdefault(table, []).append(len(rows))
        if table not in self.tables:
            raise ProgrammingError("INSERT", {}, Exception(f'relation "{table}" does not exist'))
        if table in self.db.fail_inserts:
            raise IntegrityError("INSERT", {}, Exception(f"forced failure on {table}"))

        existing = {r.get("id") for r in self.tables[table]}
        inserted = 0
        for row in rows:
            # ON CONFLICT DO NOTHING on the primary key
            if "id" in row and row["id"] in existing:
                continue
            existing.add(row.get("id"))
            self.tables[table].append(dict(row))
            inserted += 1
        return inserted


class FakeDatabase:
    """In-memory ``DatabaseClient`` keyed by physical table name.

    Attributes:
        tables: Committed rows per physical table.  A table that is absent
            from this dict does not exist in the "live schema".
        column_types: Optional ``information_schema`` types per table.
        fail_inserts: Physical table names whose inserts raise
            ``IntegrityError``.
        log: ``(tx_id, op, table)`` for every transactional operation.
        statements: Every ``execute()`` call.
        batches: Row counts of each ``insert_many()`` call per table.
    """

    def __init__(self, tables: dict[str, list[dict]] | None = None) -> None:
        self.tables: dict[str, list[dict]] = tables if tables is not None else {}
        self.column_types: dict[str, dict[str, str]] = {}
        self.fail_inserts: set[str] = set()
        self.log: list[tuple[int, str, str | None]] = []
        self.statements: list[tuple[str, dict | None]] = []
        self.batches: dict[str, list[int]] = {}
        self.selects: list[str] = []
        self.closed = False
        self._next_tx = 0

    async def select(self, table: str, columns: str = "*", filters: dict | None = None) -> list[dict]:
        self.selects.append(table)
        if table not in self.tables:
            raise ProgrammingError("SELECT", {}, Exception(f'relation "{table}" does not exist'))
        rows = copy.deepcopy(self.tables[table])
        if filters:
            rows = [r for r in rows if all(r.get(k) == v for k, v in filters.items())]
        return rows

    @asynccontextmanager
    async def transaction(self):
        self._next_tx += 1
        tx_id = self._next_tx
        self.log.append((tx_id, "begin", None))
        tx = FakeTransaction(self, tx_id, copy.deepcopy(self.tables))
        try:
            yield tx
        except BaseException:
            self.log.append((tx_id, "rollback", None))
            raise
        self.tables = tx.tables
        self.log.append((tx_id, "commit", None))

    async def close(self) -> None:
        self.closed = True

    def count(self, table: Table) -> int:
        return len(self.tables[physical_name(table)])

    def rows(self, table: Table) -> list[dict]:
        return self.tables[physical_name(table)]


def make_database(rows: dict[Table, list[dict]] | None = None) -> FakeDatabase:
    """A fake database where every catalogued table exists, seeded with *rows*."""
    tables: dict[str, list[dict]] = {t.physical_name: [] for t in CATALOG}
    for table, table_rows in (rows or {}).items():
        tables[physical_name(table)] = [dict(r) for r in table_rows]
    return FakeDatabase(tables)


class FakeTracker:
    """In-memory ``TaskTracker`` recording every call."""

    def __init__(self) -> None:
        self.started: list[tuple[str, str, dict]] = []
        self.updates: dict[str, list[dict]] = {}
        self.completed: dict[str, dict] = {}
        self.failed: dict[str, str] = {}
        self.done = asyncio.Event()

    async def start(self, task_type: str, context: dict) -> str:
        task_id = f"task-{len(self.started) + 1}"
        self.started.append((task_id, task_type, context))
        return task_id

    async def update(self, task_id: str, context: dict) -> None:
        self.updates.setdefault(task_id, []).append(context)

    async def complete(self, task_id: str, context: dict) -> None:
        self.completed[task_id] = context
        self.done.set()

    async def fail(self, task_id: str, error: str) -> None:
        self.failed[task_id] = error
        self.done.set()


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    """Snapshot store in a temporary directory."""
    return SnapshotStore(tmp_path / "snapshots")


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()
