"""Exception hierarchy for snapshot and restore operations."""


class SnapshotError(Exception):
    """Base class for all snapshot errors."""

    pass


class InvalidSnapshotName(SnapshotError):
    """Raised when a snapshot name fails validation (before any file I/O)."""

    pass


class SnapshotExistsError(SnapshotError):
    """Raised when taking a snapshot whose file already exists."""

    pass


class SnapshotNotFoundError(SnapshotError):
    """Raised when loading a snapshot that does not exist."""

    pass


class InvalidSnapshotFormat(SnapshotError):
    """Raised when a snapshot file is corrupt or structurally invalid."""

    pass


class UnsupportedSnapshotVersion(InvalidSnapshotFormat):
    """Raised when a snapshot file has a format version this reader can't read."""

    pass


class SchemaDrift(SnapshotError):
    """A catalogued table is absent from the live schema.

    Recovered locally while clearing tables (skipped with a warning).
    """

    def __init__(self, table: str) -> None:
        super().__init__(f"Table '{table}' does not exist in the live schema")
        self.table = table


class RestoreTransactionError(SnapshotError):
    """Raised when a database error aborts a restore (rolled back in full)."""

    pass


class RestoreTimeoutError(RestoreTransactionError):
    """Raised when a restore exceeds its transaction timeout (rolled back)."""

    pass


class SnapshotReadError(SnapshotError):
    """Raised when reading a table for a snapshot fails (nothing is written)."""

    pass
