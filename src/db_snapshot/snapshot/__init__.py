"""Snapshot take, list, load and restore.

Usage:
    from db_snapshot.snapshot import SnapshotStore, take_snapshot, restore_snapshot

    store = SnapshotStore("snapshots")
    await take_snapshot(adapter, store, "demo-1")
    result = await restore_snapshot(adapter, store, "demo-1", dry_run=True)
"""

from db_snapshot.snapshot.models import (
    SNAPSHOT_FORMAT_VERSION,
    RestorePlan,
    RestoreResult,
    SnapshotFile,
    SnapshotInfo,
    SnapshotMetadata,
    SnapshotProgress,
)
from db_snapshot.snapshot.restore import build_restore_plan, restore_snapshot
from db_snapshot.snapshot.store import (
    SnapshotStore,
    delete_snapshot,
    get_snapshot,
    list_snapshots,
    validate_snapshot_name,
)
from db_snapshot.snapshot.writer import take_snapshot

__all__ = [
    "SNAPSHOT_FORMAT_VERSION",
    "RestorePlan",
    "RestoreResult",
    "SnapshotFile",
    "SnapshotInfo",
    "SnapshotMetadata",
    "SnapshotProgress",
    "SnapshotStore",
    "build_restore_plan",
    "delete_snapshot",
    "get_snapshot",
    "list_snapshots",
    "restore_snapshot",
    "take_snapshot",
    "validate_snapshot_name",
]
