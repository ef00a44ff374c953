"""Database client protocol definitions.

Defines the ``DatabaseClient`` and ``Transaction`` Protocols the snapshot
engine is written against.  All methods are ``async def`` -- the library is
async-first.

Usage:
    from db_snapshot.adapters.base import DatabaseClient

    async def count_rows(client: DatabaseClient) -> int:
        rows = await client.select('"Parameter"', "*")
        return len(rows)

    async def wipe(client: DatabaseClient) -> None:
        async with client.transaction() as tx:
            await tx.delete_all('"Parameter"')
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

# PostgreSQL's wire protocol counts bind parameters in an Int16.
MAX_BIND_PARAMS = 32767


class Transaction(Protocol):
    """One open database transaction.

    Everything done through a ``Transaction`` commits together when the
    owning ``transaction()`` block exits normally and rolls back together
    when it exits with an exception.
    """

    async def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement inside the transaction."""
        ...

    async def scalar(self, sql: str, params: dict | None = None) -> Any:
        """Execute a query and return the first column of the first row."""
        ...

    async def table_exists(self, table: str) -> bool:
        """True if *table* (physical name) exists in the live schema."""
        ...

    async def column_types(self, table: str) -> dict[str, str]:
        """Map column name to ``information_schema`` data type for *table*."""
        ...

    async def delete_all(self, table: str) -> int:
        """Delete every row of *table* and return the number deleted."""
        ...

    async def insert_many(
        self,
        table: str,
        rows: list[dict],
        json_columns: frozenset[str] = frozenset(),
    ) -> int:
        """Insert *rows* in one statement, ignoring duplicate keys.

        Args:
            table: Physical table name.
            rows: Row dicts.  All rows are inserted with the union of their keys.
            json_columns: Columns whose non-null values are JSON-encoded.

        Returns:
            Number of rows actually inserted.
        """
        ...


class DatabaseClient(Protocol):
    """Database client interface the snapshot engine depends on."""

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
    ) -> list[dict]:
        """Select rows from *table*, serialized to JSON-compatible values.

        Args:
            table: Physical table name.
            columns: Comma-separated column list, or ``"*"``.
            filters: Optional dict of field=value filters (all must match).

        Returns:
            List of dicts, one per row.  Empty list if no matches.
        """
        ...

    def transaction(self) -> AbstractAsyncContextManager[Transaction]:
        """Open a transaction: commit on normal exit, roll back on error.

        Example:
            async with client.transaction() as tx:
                await tx.execute("SET CONSTRAINTS ALL DEFERRED")
        """
        ...

    async def close(self) -> None:
        """Close database connection and clean up resources."""
        ...
