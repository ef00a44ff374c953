"""TOML configuration loader."""

import tomllib
from pathlib import Path

from db_snapshot.config.models import DatabaseConfig, DatabaseProfile, SnapshotSettings

DEFAULT_CONFIG_NAME = "db.toml"


def load_db_config(config_path: Path | None = None) -> DatabaseConfig:
    """Load database and snapshot configuration from a TOML file.

    Args:
        config_path: Path to db.toml (default: ``./db.toml`` in the current
            working directory).

    Returns:
        DatabaseConfig with all profiles and snapshot settings.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config format is invalid.

    Example:
        >>> config = load_db_config(Path("db.toml"))
        >>> config.snapshots.directory
        'snapshots'
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Database config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_NAME} with a [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    snapshot_settings = SnapshotSettings(**data.get("snapshots", {}))

    return DatabaseConfig(
        profiles=profiles,
        default_profile=data.get("default_profile"),
        snapshots=snapshot_settings,
    )
