"""Tests for the async PostgreSQL adapter helpers and transaction SQL.

No database is needed: ``AsyncConnection`` is replaced by an ``AsyncMock``
and the generated SQL and bind parameters are inspected.
"""

import inspect
from datetime import date, datetime, time, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import pytest

from db_snapshot.adapters.base import MAX_BIND_PARAMS, DatabaseClient, Transaction
from db_snapshot.adapters.postgres import (
    AsyncPostgresAdapter,
    AsyncPostgresTransaction,
    create_async_engine_pooled,
    normalize_url,
    quote_ident,
    serialize_row,
    serialize_value,
)


def _mock_conn(rowcount: int = 0, scalar=None, rows=None) -> AsyncMock:
    result = MagicMock()
    result.rowcount = rowcount
    result.scalar.return_value = scalar
    result.fetchall.return_value = rows or []
    conn = AsyncMock()
    conn.execute = AsyncMock(return_value=result)
    return conn


def _sql(conn: AsyncMock, call: int = -1) -> str:
    return str(conn.execute.call_args_list[call].args[0])


def _params(conn: AsyncMock, call: int = -1) -> dict:
    return conn.execute.call_args_list[call].args[1]


# ============================================================================
# Helpers
# ============================================================================


class TestHelpers:
    """Verify URL, identifier and value helpers."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@h/d", "postgresql+asyncpg://u:p@h/d"),
            ("postgresql://u:p@h/d", "postgresql+asyncpg://u:p@h/d"),
            ("postgresql+asyncpg://u:p@h/d", "postgresql+asyncpg://u:p@h/d"),
        ],
    )
    def test_normalize_url(self, url: str, expected: str) -> None:
        assert normalize_url(url) == expected

    def test_quote_ident(self) -> None:
        assert quote_ident("PromptSlug") == '"PromptSlug"'
        assert quote_ident('we"ird') == '"we""ird"'

    def test_serialize_value(self) -> None:
        uid = UUID("12345678-1234-5678-1234-567812345678")
        assert serialize_value(uid) == str(uid)
        assert serialize_value(Decimal("1.50")) == "1.50"
        assert serialize_value(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == (
            "2026-01-02T03:04:05+00:00"
        )
        assert serialize_value(date(2026, 1, 2)) == "2026-01-02"
        assert serialize_value(time(3, 4)) == "03:04:00"
        assert serialize_value([uid, 1]) == [str(uid), 1]
        assert serialize_value({"a": 1}) == {"a": 1}
        assert serialize_value(None) is None

    def test_serialize_row(self) -> None:
        row = serialize_row({"id": 1, "at": date(2026, 1, 2)})
        assert row == {"id": 1, "at": "2026-01-02"}

    def test_engine_defaults(self) -> None:
        with patch("db_snapshot.adapters.postgres.create_async_engine") as create:
            create_async_engine_pooled("postgresql+asyncpg://u:p@h/d", pool_size=2)
        kwargs = create.call_args.kwargs
        assert kwargs["pool_size"] == 2
        assert kwargs["pool_pre_ping"] is True
        assert kwargs["connect_args"] == {"timeout": 5}


# ============================================================================
# Transaction SQL
# ============================================================================


class TestAsyncPostgresTransaction:
    """Verify the SQL issued by AsyncPostgresTransaction."""

    @pytest.mark.asyncio
    async def test_insert_many_multi_row(self) -> None:
        conn = _mock_conn(rowcount=2)
        tx = AsyncPostgresTransaction(conn)

        count = await tx.insert_many("Parameter", [{"id": "a", "n": 1}, {"id": "b", "n": 2}])

        assert count == 2
        sql = _sql(conn)
        assert sql.startswith('INSERT INTO "Parameter" ("id", "n") VALUES')
        assert "(:r0_c0, :r0_c1), (:r1_c0, :r1_c1)" in sql
        assert sql.endswith("ON CONFLICT DO NOTHING")
        assert _params(conn) == {"r0_c0": "a", "r0_c1": 1, "r1_c0": "b", "r1_c1": 2}

    @pytest.mark.asyncio
    async def test_insert_many_union_of_columns(self) -> None:
        conn = _mock_conn(rowcount=2)
        tx = AsyncPostgresTransaction(conn)

        await tx.insert_many("tags", [{"id": "a"}, {"id": "b", "color": "red"}])

        assert '("id", "color")' in _sql(conn)
        assert _params(conn)["r0_c1"] is None

    @pytest.mark.asyncio
    async def test_insert_many_encodes_json_columns(self) -> None:
        conn = _mock_conn(rowcount=1)
        tx = AsyncPostgresTransaction(conn)

        await tx.insert_many(
            "Parameter",
            [{"id": "a", "config": {"k": [1, 2]}, "empty": None}],
            json_columns=frozenset({"config", "empty"}),
        )

        params = _params(conn)
        assert params["r0_c1"] == '{"k": [1, 2]}'
        assert params["r0_c2"] is None

    @pytest.mark.asyncio
    async def test_insert_many_empty(self) -> None:
        conn = _mock_conn()
        assert await AsyncPostgresTransaction(conn).insert_many("Parameter", []) == 0
        conn.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_many_rejects_oversized_batch(self) -> None:
        conn = _mock_conn()
        rows = [{f"c{j}": j for j in range(10)} for _ in range(MAX_BIND_PARAMS // 10 + 1)]
        with pytest.raises(ValueError, match="bind parameters"):
            await AsyncPostgresTransaction(conn).insert_many("Parameter", rows)

    @pytest.mark.asyncio
    async def test_delete_all(self) -> None:
        conn = _mock_conn(rowcount=4)
        assert await AsyncPostgresTransaction(conn).delete_all("subject_media") == 4
        assert _sql(conn) == 'DELETE FROM "subject_media"'

    @pytest.mark.asyncio
    async def test_table_exists_uses_to_regclass(self) -> None:
        conn = _mock_conn(scalar=True)
        assert await AsyncPostgresTransaction(conn).table_exists("PromptSlug") is True
        assert "to_regclass" in _sql(conn)
        assert _params(conn) == {"name": '"PromptSlug"'}

    @pytest.mark.asyncio
    async def test_table_missing(self) -> None:
        conn = _mock_conn(scalar=False)
        assert await AsyncPostgresTransaction(conn).table_exists("Gone") is False

    @pytest.mark.asyncio
    async def test_column_types(self) -> None:
        conn = _mock_conn(rows=[("id", "text"), ("createdAt", "timestamp with time zone")])
        types = await AsyncPostgresTransaction(conn).column_types("Parameter")
        assert types == {"id": "text", "createdAt": "timestamp with time zone"}
        assert _params(conn) == {"table": "Parameter"}


# ============================================================================
# Protocol conformance
# ============================================================================


class TestProtocols:
    """Verify the adapter exposes the protocol surface as async methods."""

    @pytest.mark.parametrize("method", ["select", "close"])
    def test_adapter_methods_async(self, method: str) -> None:
        assert inspect.iscoroutinefunction(getattr(AsyncPostgresAdapter, method))
        assert hasattr(DatabaseClient, method)

    @pytest.mark.parametrize(
        "method",
        ["execute", "scalar", "table_exists", "column_types", "delete_all", "insert_many"],
    )
    def test_transaction_methods_async(self, method: str) -> None:
        assert inspect.iscoroutinefunction(getattr(AsyncPostgresTransaction, method))
        assert hasattr(Transaction, method)

    @pytest.mark.asyncio
    async def test_transaction_wraps_engine_begin(self) -> None:
        conn = _mock_conn()
        begin_ctx = MagicMock()
        begin_ctx.__aenter__ = AsyncMock(return_value=conn)
        begin_ctx.__aexit__ = AsyncMock(return_value=False)

        with patch("db_snapshot.adapters.postgres.create_async_engine") as create:
            create.return_value.begin.return_value = begin_ctx
            adapter = AsyncPostgresAdapter("postgresql://u:p@h/d")
            async with adapter.transaction() as tx:
                await tx.execute("SET CONSTRAINTS ALL DEFERRED")

        assert create.call_args.args[0] == "postgresql+asyncpg://u:p@h/d"
        begin_ctx.__aexit__.assert_awaited_once()
        assert _sql(conn) == "SET CONSTRAINTS ALL DEFERRED"
