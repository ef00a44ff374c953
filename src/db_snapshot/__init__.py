"""db-snapshot: layered PostgreSQL snapshot and atomic restore.

Exports the logical state of a schema's catalogued tables to one JSON file
and restores it in a single transaction under a restore lock.

Usage:
    from db_snapshot import SnapshotStore, take_snapshot, restore_snapshot
    from db_snapshot import AsyncPostgresAdapter, AdvisoryLock
    from db_snapshot import load_db_config, get_adapter
"""

__version__ = "0.1.0"

# Adapters
from db_snapshot.adapters.base import DatabaseClient, Transaction
from db_snapshot.adapters.postgres import AsyncPostgresAdapter

# Catalog
from db_snapshot.catalog import Layer, Table, insertion_order, truncation_order

# Config
from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings

# Errors
from db_snapshot.errors import (
    InvalidSnapshotFormat,
    InvalidSnapshotName,
    RestoreTimeoutError,
    RestoreTransactionError,
    SchemaDrift,
    SnapshotError,
    SnapshotExistsError,
    SnapshotNotFoundError,
    SnapshotReadError,
    UnsupportedSnapshotVersion,
)

# Factory
from db_snapshot.factory import ProfileNotFoundError, get_adapter, get_store, resolve_url

# Jobs
from db_snapshot.jobs import TaskTracker, start_snapshot_restore_job, start_snapshot_take_job

# Locks
from db_snapshot.locks import AdvisoryLock, LocalLock, RestoreLock

# Snapshots
from db_snapshot.snapshot import (
    RestorePlan,
    RestoreResult,
    SnapshotInfo,
    SnapshotMetadata,
    SnapshotStore,
    delete_snapshot,
    get_snapshot,
    list_snapshots,
    restore_snapshot,
    take_snapshot,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "Transaction",
    "AsyncPostgresAdapter",
    # Catalog
    "Layer",
    "Table",
    "insertion_order",
    "truncation_order",
    # Config
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    "SnapshotSettings",
    # Errors
    "SnapshotError",
    "InvalidSnapshotName",
    "SnapshotExistsError",
    "SnapshotNotFoundError",
    "SnapshotReadError",
    "InvalidSnapshotFormat",
    "UnsupportedSnapshotVersion",
    "SchemaDrift",
    "RestoreTransactionError",
    "RestoreTimeoutError",
    # Factory
    "get_adapter",
    "get_store",
    "ProfileNotFoundError",
    "resolve_url",
    # Jobs
    "TaskTracker",
    "start_snapshot_take_job",
    "start_snapshot_restore_job",
    # Locks
    "RestoreLock",
    "AdvisoryLock",
    "LocalLock",
    # Snapshots
    "SnapshotStore",
    "SnapshotInfo",
    "SnapshotMetadata",
    "RestorePlan",
    "RestoreResult",
    "take_snapshot",
    "restore_snapshot",
    "list_snapshots",
    "get_snapshot",
    "delete_snapshot",
]
