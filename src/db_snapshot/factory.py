"""Adapter, store and lock factory driven by db.toml.

Profile resolution priority:

1. Explicit ``profile_name`` argument
2. ``{env_prefix}DB_PROFILE`` environment variable
3. ``default_profile`` in db.toml
4. ``ProfileNotFoundError``
"""

import os
from urllib.parse import quote

from db_snapshot.adapters.postgres import AsyncPostgresAdapter
from db_snapshot.config.models import DatabaseConfig, DatabaseProfile
from db_snapshot.locks import AdvisoryLock
from db_snapshot.snapshot.store import SnapshotStore


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured."""

    pass


def get_active_profile_name(config: DatabaseConfig, env_prefix: str = "") -> str:
    """Get active profile name from env var or config default.

    Args:
        config: Loaded configuration.
        env_prefix: Prefix for the environment variable
            (``APP_`` reads ``APP_DB_PROFILE``).

    Returns:
        Profile name.

    Raises:
        ProfileNotFoundError: If no profile is configured.
    """
    env_profile = os.environ.get(f"{env_prefix}DB_PROFILE")
    if env_profile:
        return env_profile

    if config.default_profile:
        return config.default_profile

    available = ", ".join(config.profiles.keys()) or "(none)"
    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_prefix}DB_PROFILE=<name> or default_profile in db.toml.\n"
        f"Available profiles: {available}"
    )


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config.

    Returns:
        Connection URL with ``[YOUR-PASSWORD]`` replaced by the URL-quoted
        ``db_password``.
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_profile(config: DatabaseConfig, profile_name: str | None = None, env_prefix: str = "") -> tuple[str, DatabaseProfile]:
    """Resolve the active profile name and its configuration.

    Raises:
        ProfileNotFoundError: If no profile is configured, or the named
            profile is not in db.toml.
    """
    if profile_name is None:
        profile_name = get_active_profile_name(config, env_prefix=env_prefix)

    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys())
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml. Available: {available}"
        )

    return profile_name, config.profiles[profile_name]


async def get_adapter(
    config: DatabaseConfig,
    profile_name: str | None = None,
    env_prefix: str = "",
    check_connection: bool = False,
) -> AsyncPostgresAdapter:
    """Create an ``AsyncPostgresAdapter`` for the active profile.

    Args:
        config: Loaded configuration.
        profile_name: Profile to use instead of the active one.
        env_prefix: Prefix for environment variable lookup.
        check_connection: Run ``SELECT 1`` before returning.

    Raises:
        ProfileNotFoundError: If no usable profile is configured.
    """
    _, profile = get_profile(config, profile_name, env_prefix)
    adapter = AsyncPostgresAdapter(resolve_url(profile))
    if check_connection:
        try:
            await adapter.test_connection()
        except Exception:
            await adapter.close()
            raise
    return adapter


def get_store(config: DatabaseConfig) -> SnapshotStore:
    """Snapshot store for the configured directory."""
    return SnapshotStore(config.snapshots.directory)


def get_restore_lock(config: DatabaseConfig) -> AdvisoryLock:
    """Advisory restore lock on the configured key."""
    return AdvisoryLock(key=config.snapshots.lock_key)
