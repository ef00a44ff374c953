"""PostgreSQL schema introspection via information_schema.

Reads the live table list and foreign key graph so the static catalog can
be checked against the database it will restore into.

Uses psycopg (v3) async connections.

Usage:
    async with SchemaIntrospector(database_url) as introspector:
        tables = await introspector.get_table_names()
        fks = await introspector.get_foreign_keys()
"""

from psycopg import AsyncConnection

DEFAULT_EXCLUDED_TABLES = frozenset({
    "_prisma_migrations",
    "schema_migrations",
    "spatial_ref_sys",
})


def to_libpq_url(database_url: str) -> str:
    """Strip a SQLAlchemy driver suffix so psycopg accepts the URL."""
    for prefix in ("postgresql+asyncpg://", "postgresql+psycopg://", "postgres://"):
        if database_url.startswith(prefix):
            return "postgresql://" + database_url[len(prefix):]
    return database_url


class SchemaIntrospector:
    """Introspects a PostgreSQL schema's tables and foreign keys.

    Args:
        database_url: PostgreSQL connection URL.
        excluded_tables: Tables to ignore (migration bookkeeping etc.).
            Defaults to ``DEFAULT_EXCLUDED_TABLES``.
        connect_timeout: Connection timeout in seconds.
    """

    def __init__(
        self,
        database_url: str,
        excluded_tables: frozenset[str] | None = None,
        connect_timeout: int = 10,
    ) -> None:
        self._database_url = to_libpq_url(database_url)
        self._excluded_tables = (
            DEFAULT_EXCLUDED_TABLES if excluded_tables is None else excluded_tables
        )
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "SchemaIntrospector":
        self._conn = await AsyncConnection.connect(
            self._database_url, connect_timeout=self._connect_timeout
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> AsyncConnection:
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use 'async with'.")
        return self._conn

    async def get_table_names(self, schema_name: str = "public") -> set[str]:
        """Names of all base tables in *schema_name*, minus excluded ones."""
        conn = self._require_conn()
        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
        """
        async with conn.cursor() as cur:
            await cur.execute(query, (schema_name,))
            rows = await cur.fetchall()
        return {row[0] for row in rows if row[0] not in self._excluded_tables}

    async def get_foreign_keys(self, schema_name: str = "public") -> dict[str, set[str]]:
        """Map each table to the set of tables it references via foreign key."""
        conn = self._require_conn()
        query = """
            SELECT DISTINCT
                tc.table_name,
                ccu.table_name AS references_table
            FROM information_schema.table_constraints tc
            JOIN information_schema.constraint_column_usage ccu
                ON tc.constraint_name = ccu.constraint_name
                AND tc.constraint_schema = ccu.constraint_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
              AND tc.table_schema = %s
        """
        async with conn.cursor() as cur:
            await cur.execute(query, (schema_name,))
            rows = await cur.fetchall()

        result: dict[str, set[str]] = {}
        for table, referenced in rows:
            if table in self._excluded_tables:
                continue
            result.setdefault(table, set()).add(referenced)
        return result
