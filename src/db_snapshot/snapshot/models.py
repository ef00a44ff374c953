"""Pydantic models for snapshot files, listings and restore results.

The on-disk format uses camelCase keys (``createdAt``, ``withLearners``,
``totalRows``); models accept both the alias and the field name and dump
with aliases via ``to_json_dict()``.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_FORMAT_VERSION = "1.0"


class SnapshotMetadata(BaseModel):
    """Metadata section of a snapshot file."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: str | None = None
    version: str = SNAPSHOT_FORMAT_VERSION
    created_at: datetime = Field(alias="createdAt")
    layers: list[int]
    with_learners: bool = Field(alias="withLearners")
    stats: dict[str, int] = Field(default_factory=dict)
    total_rows: int = Field(default=0, alias="totalRows")


class SnapshotFile(BaseModel):
    """A complete snapshot: metadata plus rows per logical table name."""

    metadata: SnapshotMetadata
    data: dict[str, list[dict]] = Field(default_factory=dict)

    def to_json_dict(self) -> dict:
        """Dump in the on-disk layout (camelCase metadata keys)."""
        return self.model_dump(mode="json", by_alias=True)


class SnapshotInfo(BaseModel):
    """A snapshot as listed from the store (metadata only, no rows)."""

    name: str
    metadata: SnapshotMetadata
    path: Path
    size_bytes: int = 0


class RestorePlan(BaseModel):
    """What a restore clears and inserts, in order.

    ``warnings`` names data the restore removes without putting back: rows
    of a scope-filtered table that belong to the excluded top layer.
    """

    truncation_order: list[str] = Field(default_factory=list)
    insertion_order: list[str] = Field(default_factory=list)
    row_counts: dict[str, int] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return sum(self.row_counts.values())


class RestoreResult(BaseModel):
    """Outcome of ``restore_snapshot()``.

    Attributes:
        name: Snapshot name.
        dry_run: True if nothing was written.
        plan: Clear/insert plan computed from the snapshot.
        tables_cleared: Tables deleted, in truncation order.
        tables_skipped: Tables absent from the live schema (skipped on delete).
        inserted: Rows inserted per table.  Lower than the snapshot's count
            when duplicate keys were ignored.
        errors: Non-fatal problems (schema drift warnings).
    """

    name: str
    dry_run: bool = False
    plan: RestorePlan = Field(default_factory=RestorePlan)
    tables_cleared: list[str] = Field(default_factory=list)
    tables_skipped: list[str] = Field(default_factory=list)
    inserted: dict[str, int] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @property
    def total_inserted(self) -> int:
        return sum(self.inserted.values())


@dataclass
class SnapshotProgress:
    """One progress report from the writer or the restore engine.

    Attributes:
        phase: ``"read"``, ``"write"``, ``"clear"``, ``"insert"`` or ``"commit"``.
        message: Human-readable status line.
        table: Logical table name the report refers to, if any.
        current: Tables handled so far in this phase.
        total: Tables in this phase.
        rows: Running row count.
    """

    phase: str
    message: str
    table: str | None = None
    current: int = 0
    total: int = 0
    rows: int = 0

    def as_context(self) -> dict:
        """Flatten into a task-tracker context dict."""
        return {
            "phase": self.phase,
            "message": self.message,
            "table": self.table,
            "current": self.current,
            "total": self.total,
            "rows": self.rows,
        }
