"""Tests for the snapshot store: naming, listing, loading, deleting."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from db_snapshot.errors import (
    InvalidSnapshotFormat,
    InvalidSnapshotName,
    SnapshotExistsError,
    SnapshotNotFoundError,
    UnsupportedSnapshotVersion,
)
from db_snapshot.snapshot import (
    SnapshotFile,
    SnapshotMetadata,
    SnapshotStore,
    delete_snapshot,
    get_snapshot,
    list_snapshots,
    validate_snapshot_name,
)


def _snapshot(name: str, created_at: datetime | None = None, with_learners: bool = False, data=None) -> SnapshotFile:
    data = data if data is not None else {"Parameter": [{"id": "p1", "name": "pace"}]}
    stats = {k: len(v) for k, v in data.items()}
    return SnapshotFile(
        metadata=SnapshotMetadata(
            name=name,
            description=f"{name} description",
            created_at=created_at or datetime.now(timezone.utc),
            layers=[0, 1, 2, 3] if with_learners else [0, 1, 2],
            with_learners=with_learners,
            stats=stats,
            total_rows=sum(stats.values()),
        ),
        data=data,
    )


def _write_raw(store: SnapshotStore, name: str, payload) -> Path:
    store.directory.mkdir(parents=True, exist_ok=True)
    path = store.directory / f"{name}.json"
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload))
    return path


# ============================================================================
# Name validation
# ============================================================================


class TestNameValidation:
    """Verify snapshot name rules."""

    @pytest.mark.parametrize("name", ["demo-1", "nightly_2026-10-18", "A", "x" * 100, "0"])
    def test_valid_names(self, name: str) -> None:
        assert validate_snapshot_name(name) == name

    @pytest.mark.parametrize(
        "name",
        ["", "a/b", "../etc", "with space", "x" * 101, "dot.json", "tab\tname", "demo-1\n"],
    )
    def test_invalid_names(self, name: str) -> None:
        with pytest.raises(InvalidSnapshotName):
            validate_snapshot_name(name)

    def test_invalid_name_rejected_before_file_io(self, store: SnapshotStore) -> None:
        with pytest.raises(InvalidSnapshotName):
            store.load("../outside")
        assert not store.directory.exists()

    def test_non_string_rejected(self) -> None:
        with pytest.raises(InvalidSnapshotName):
            validate_snapshot_name(None)  # type: ignore[arg-type]


# ============================================================================
# Write
# ============================================================================


class TestWrite:
    """Verify snapshot file writing."""

    def test_write_creates_directory_and_file(self, store: SnapshotStore) -> None:
        path = store.write(_snapshot("demo-1"))
        assert path == store.directory / "demo-1.json"
        assert path.exists()

    def test_on_disk_keys_are_camel_case(self, store: SnapshotStore) -> None:
        path = store.write(_snapshot("demo-1"))
        raw = json.loads(path.read_text())
        assert set(raw) == {"metadata", "data"}
        for key in ("createdAt", "withLearners", "totalRows", "version", "layers", "stats"):
            assert key in raw["metadata"]
        assert raw["metadata"]["version"] == "1.0"

    def test_refuses_overwrite(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1"))
        with pytest.raises(SnapshotExistsError):
            store.write(_snapshot("demo-1"))

    def test_no_temp_files_left(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1"))
        assert [p.name for p in store.directory.iterdir()] == ["demo-1.json"]


# ============================================================================
# List / get / delete
# ============================================================================


class TestListGetDelete:
    """Verify metadata listing and deletion."""

    def test_list_empty_when_directory_missing(self, store: SnapshotStore) -> None:
        assert store.list() == []

    def test_list_newest_first(self, store: SnapshotStore) -> None:
        now = datetime.now(timezone.utc)
        store.write(_snapshot("old", created_at=now - timedelta(days=2)))
        store.write(_snapshot("new", created_at=now))
        store.write(_snapshot("mid", created_at=now - timedelta(days=1)))
        assert [i.name for i in list_snapshots(store)] == ["new", "mid", "old"]

    def test_list_skips_unreadable_files(self, store: SnapshotStore) -> None:
        store.write(_snapshot("good"))
        _write_raw(store, "broken", "{not json")
        _write_raw(store, "future", {"metadata": {"version": "9.9"}, "data": {}})
        assert [i.name for i in store.list()] == ["good"]

    def test_renamed_file_listed_by_file_name(self, store: SnapshotStore) -> None:
        path = store.write(_snapshot("demo-1"))
        path.rename(store.directory / "renamed.json")

        (info,) = store.list()
        assert info.name == "renamed"
        assert info.metadata.name == "demo-1"
        assert get_snapshot(store, "renamed") is not None
        assert store.load("renamed").metadata.total_rows == 1
        assert delete_snapshot(store, "renamed") is True
        assert store.list() == []

    def test_list_skips_files_with_invalid_names(self, store: SnapshotStore) -> None:
        path = store.write(_snapshot("demo-1"))
        path.rename(store.directory / "has space.json")
        assert store.list() == []

    def test_list_reports_size_and_metadata(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1"))
        (info,) = store.list()
        assert info.size_bytes > 0
        assert info.metadata.total_rows == 1
        assert info.metadata.description == "demo-1 description"

    def test_get(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1", with_learners=True))
        info = get_snapshot(store, "demo-1")
        assert info is not None
        assert info.metadata.with_learners is True
        assert info.metadata.layers == [0, 1, 2, 3]

    def test_get_missing_returns_none(self, store: SnapshotStore) -> None:
        assert get_snapshot(store, "nope") is None

    def test_delete(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1"))
        assert delete_snapshot(store, "demo-1") is True
        assert not store.exists("demo-1")

    def test_delete_missing_returns_false(self, store: SnapshotStore) -> None:
        assert delete_snapshot(store, "nope") is False

    def test_delete_validates_name(self, store: SnapshotStore) -> None:
        with pytest.raises(InvalidSnapshotName):
            delete_snapshot(store, "../x")


# ============================================================================
# Load
# ============================================================================


class TestLoad:
    """Verify full snapshot loading and validation."""

    def test_load_round_trip(self, store: SnapshotStore) -> None:
        store.write(_snapshot("demo-1"))
        snapshot = store.load("demo-1")
        assert snapshot.metadata.name == "demo-1"
        assert snapshot.data["Parameter"] == [{"id": "p1", "name": "pace"}]

    def test_missing(self, store: SnapshotStore) -> None:
        with pytest.raises(SnapshotNotFoundError):
            store.load("nope")

    def test_invalid_json(self, store: SnapshotStore) -> None:
        _write_raw(store, "bad", "{oops")
        with pytest.raises(InvalidSnapshotFormat, match="invalid JSON"):
            store.load("bad")

    def test_top_level_not_object(self, store: SnapshotStore) -> None:
        _write_raw(store, "bad", [1, 2, 3])
        with pytest.raises(InvalidSnapshotFormat):
            store.load("bad")

    def test_missing_metadata(self, store: SnapshotStore) -> None:
        _write_raw(store, "bad", {"data": {}})
        with pytest.raises(InvalidSnapshotFormat, match="metadata"):
            store.load("bad")

    def test_missing_data(self, store: SnapshotStore) -> None:
        raw = _snapshot("bad").to_json_dict()
        del raw["data"]
        _write_raw(store, "bad", raw)
        with pytest.raises(InvalidSnapshotFormat, match="data"):
            store.load("bad")

    @pytest.mark.parametrize("version", ["2.0", "0.9", None])
    def test_unsupported_version(self, store: SnapshotStore, version) -> None:
        raw = _snapshot("old").to_json_dict()
        raw["metadata"]["version"] = version
        _write_raw(store, "old", raw)
        with pytest.raises(UnsupportedSnapshotVersion):
            store.load("old")

    def test_unsupported_version_is_format_error(self) -> None:
        assert issubclass(UnsupportedSnapshotVersion, InvalidSnapshotFormat)

    def test_top_layer_table_rejected_without_learners(self, store: SnapshotStore) -> None:
        raw = _snapshot("mixed").to_json_dict()
        raw["data"]["Caller"] = [{"id": "c1"}]
        _write_raw(store, "mixed", raw)
        with pytest.raises(InvalidSnapshotFormat, match="Caller"):
            store.load("mixed")

    def test_top_layer_table_allowed_with_learners(self, store: SnapshotStore) -> None:
        store.write(_snapshot("full", with_learners=True, data={"Caller": [{"id": "c1"}]}))
        assert store.load("full").data["Caller"] == [{"id": "c1"}]

    def test_unknown_table_rejected(self, store: SnapshotStore) -> None:
        raw = _snapshot("odd").to_json_dict()
        raw["data"]["Session"] = []
        _write_raw(store, "odd", raw)
        with pytest.raises(InvalidSnapshotFormat, match="Session"):
            store.load("odd")

    def test_rows_must_be_objects(self, store: SnapshotStore) -> None:
        raw = _snapshot("odd").to_json_dict()
        raw["data"]["Parameter"] = ["not-a-row"]
        _write_raw(store, "odd", raw)
        with pytest.raises(InvalidSnapshotFormat):
            store.load("odd")

    def test_snake_case_metadata_accepted(self, store: SnapshotStore) -> None:
        _write_raw(store, "legacy", {
            "metadata": {
                "name": "legacy",
                "version": "1.0",
                "created_at": "2026-01-02T03:04:05Z",
                "layers": [0, 1, 2],
                "with_learners": False,
            },
            "data": {},
        })
        assert store.load("legacy").metadata.total_rows == 0
