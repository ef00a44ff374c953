"""Database adapters package.

Provides the ``DatabaseClient`` and ``Transaction`` Protocols and the async
PostgreSQL implementation.

Usage:
    from db_snapshot.adapters import DatabaseClient, AsyncPostgresAdapter
"""

from db_snapshot.adapters.base import DatabaseClient, Transaction
from db_snapshot.adapters.postgres import AsyncPostgresAdapter, AsyncPostgresTransaction

__all__ = [
    "DatabaseClient",
    "Transaction",
    "AsyncPostgresAdapter",
    "AsyncPostgresTransaction",
]
