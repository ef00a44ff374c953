"""Snapshot files on disk: naming, listing, loading, writing, deleting.

A store is a directory of ``<name>.json`` files.  Nothing here touches the
database.

Usage:
    from db_snapshot.snapshot.store import SnapshotStore

    store = SnapshotStore("snapshots")
    for info in store.list():
        print(info.name, info.metadata.total_rows)

    snapshot = store.load("demo-1")
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import timezone
from pathlib import Path

from pydantic import ValidationError

from db_snapshot.catalog import tables_for_layers
from db_snapshot.errors import (
    InvalidSnapshotFormat,
    InvalidSnapshotName,
    SnapshotExistsError,
    SnapshotNotFoundError,
    UnsupportedSnapshotVersion,
)
from db_snapshot.snapshot.models import (
    SNAPSHOT_FORMAT_VERSION,
    SnapshotFile,
    SnapshotInfo,
    SnapshotMetadata,
)

logger = logging.getLogger(__name__)

SNAPSHOT_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,100}")
SNAPSHOT_SUFFIX = ".json"


def validate_snapshot_name(name: str) -> str:
    """Return *name* unchanged if it is a valid snapshot name.

    Valid names are 1-100 characters of letters, digits, ``-`` and ``_``.

    Raises:
        InvalidSnapshotName: For anything else (slashes, spaces, dots,
            empty, too long).
    """
    if not isinstance(name, str) or not SNAPSHOT_NAME_PATTERN.fullmatch(name):
        raise InvalidSnapshotName(
            f"Invalid snapshot name {name!r}: use 1-100 letters, digits, '-' or '_'"
        )
    return name


def _sort_key(info: SnapshotInfo):
    created = info.metadata.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return created


class SnapshotStore:
    """Directory-backed snapshot repository.

    Args:
        directory: Directory holding snapshot files.  Created on first write.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        """Path of the file for snapshot *name* (validated first)."""
        return self.directory / f"{validate_snapshot_name(name)}{SNAPSHOT_SUFFIX}"

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list(self) -> list[SnapshotInfo]:
        """All readable snapshots, newest first.

        Files that fail to parse are skipped with a warning.
        """
        if not self.directory.is_dir():
            return []

        infos: list[SnapshotInfo] = []
        for path in self.directory.glob(f"*{SNAPSHOT_SUFFIX}"):
            try:
                infos.append(self._read_info(path))
            except (OSError, ValueError, InvalidSnapshotFormat, InvalidSnapshotName) as e:
                logger.warning(f"[snapshot] Skipping unreadable snapshot {path.name}: {e}")

        infos.sort(key=_sort_key, reverse=True)
        return infos

    def get(self, name: str) -> SnapshotInfo | None:
        """Metadata for snapshot *name*, or ``None`` if it does not exist."""
        path = self.path_for(name)
        if not path.exists():
            return None
        return self._read_info(path)

    def delete(self, name: str) -> bool:
        """Remove snapshot *name*.  Returns ``False`` if it did not exist."""
        path = self.path_for(name)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.info(f"[snapshot] Deleted snapshot '{name}'")
        return True

    # ------------------------------------------------------------------
    # Full read / write
    # ------------------------------------------------------------------

    def load(self, name: str) -> SnapshotFile:
        """Parse and validate the full snapshot *name*.

        Raises:
            InvalidSnapshotName: If *name* is invalid.
            SnapshotNotFoundError: If the file does not exist.
            InvalidSnapshotFormat: If the file is not valid JSON, lacks the
                ``metadata`` or ``data`` sections, or names tables outside
                its layer set.
            UnsupportedSnapshotVersion: If the format version is not ``1.0``.
        """
        path = self.path_for(name)
        if not path.exists():
            raise SnapshotNotFoundError(f"Snapshot '{name}' not found")

        raw = self._read_json(path)
        metadata = self._parse_metadata(raw, path)

        if "data" not in raw or not isinstance(raw["data"], dict):
            raise InvalidSnapshotFormat(f"{path.name}: missing 'data' section")

        allowed = {t.value for t in tables_for_layers(metadata.with_learners)}
        unknown = sorted(set(raw["data"]) - allowed)
        if unknown:
            raise InvalidSnapshotFormat(
                f"{path.name}: tables outside layers {metadata.layers}: {', '.join(unknown)}"
            )

        try:
            return SnapshotFile(metadata=metadata, data=raw["data"])
        except ValidationError as e:
            raise InvalidSnapshotFormat(f"{path.name}: invalid data section: {e}") from e

    def write(self, snapshot: SnapshotFile) -> Path:
        """Write *snapshot* atomically (temp file + rename).

        Raises:
            SnapshotExistsError: If a file for this name already exists.
        """
        path = self.path_for(snapshot.metadata.name)
        if path.exists():
            raise SnapshotExistsError(f"Snapshot '{snapshot.metadata.name}' already exists")

        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.directory, prefix=f".{snapshot.metadata.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(snapshot.to_json_dict(), f, indent=2, default=str)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        return path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _read_json(self, path: Path) -> dict:
        try:
            with open(path, "r") as f:
                raw = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidSnapshotFormat(f"{path.name}: invalid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise InvalidSnapshotFormat(f"{path.name}: top level is not an object")
        return raw

    def _parse_metadata(self, raw: dict, path: Path) -> SnapshotMetadata:
        metadata = raw.get("metadata")
        if not isinstance(metadata, dict):
            raise InvalidSnapshotFormat(f"{path.name}: missing 'metadata' section")

        version = metadata.get("version")
        if version != SNAPSHOT_FORMAT_VERSION:
            raise UnsupportedSnapshotVersion(
                f"{path.name}: unsupported snapshot version '{version}' "
                f"(expected '{SNAPSHOT_FORMAT_VERSION}')"
            )

        try:
            return SnapshotMetadata.model_validate(metadata)
        except ValidationError as e:
            raise InvalidSnapshotFormat(f"{path.name}: invalid metadata: {e}") from e

    def _read_info(self, path: Path) -> SnapshotInfo:
        # The file name is the key for get/load/delete; metadata.name is informational.
        name = validate_snapshot_name(path.stem)
        raw = self._read_json(path)
        metadata = self._parse_metadata(raw, path)
        if metadata.name != name:
            logger.debug(f"[snapshot] {path.name} was taken as '{metadata.name}'")
        return SnapshotInfo(
            name=name,
            metadata=metadata,
            path=path,
            size_bytes=path.stat().st_size,
        )


# ------------------------------------------------------------------
# Module-level API
# ------------------------------------------------------------------


def list_snapshots(store: SnapshotStore) -> list[SnapshotInfo]:
    """All readable snapshots in *store*, newest first."""
    return store.list()


def get_snapshot(store: SnapshotStore, name: str) -> SnapshotInfo | None:
    """Metadata for snapshot *name*, or ``None``."""
    return store.get(name)


def delete_snapshot(store: SnapshotStore, name: str) -> bool:
    """Delete snapshot *name*; ``False`` if it was absent."""
    return store.delete(name)
