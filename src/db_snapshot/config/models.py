"""Pydantic models for db.toml configuration."""

from pydantic import BaseModel, Field

from db_snapshot.locks import DEFAULT_ADVISORY_KEY


class DatabaseProfile(BaseModel):
    """Database connection profile from db.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class SnapshotSettings(BaseModel):
    """``[snapshots]`` section of db.toml."""

    directory: str = "snapshots"
    batch_size: int = Field(default=1000, gt=0)
    transaction_timeout: float = Field(default=600.0, gt=0)  # seconds
    lock_key: int = DEFAULT_ADVISORY_KEY


class DatabaseConfig(BaseModel):
    """Complete configuration from db.toml."""

    profiles: dict[str, DatabaseProfile]
    default_profile: str | None = None
    snapshots: SnapshotSettings = Field(default_factory=SnapshotSettings)
