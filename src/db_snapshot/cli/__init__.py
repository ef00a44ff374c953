"""CLI for taking, inspecting and restoring database snapshots.

Usage:
    DB_PROFILE=local db-snapshot take demo-1 -d "Before the spring import"
    db-snapshot list
    db-snapshot show demo-1
    db-snapshot restore demo-1 --dry-run
    db-snapshot restore demo-1 --yes
    db-snapshot delete demo-1 --yes
    db-snapshot check

Commands:
    take     - Export the active layer set to a new snapshot file
    list     - List snapshots, newest first
    show     - Show one snapshot's metadata and per-table row counts
    delete   - Delete a snapshot file
    restore  - Replace the snapshot's layer set with its contents
    check    - Compare the table catalog with the live schema
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm
from rich.table import Table

from db_snapshot.config.loader import load_db_config
from db_snapshot.config.models import DatabaseConfig
from db_snapshot.errors import SnapshotError
from db_snapshot.factory import (
    ProfileNotFoundError,
    get_adapter,
    get_profile,
    get_restore_lock,
    get_store,
    resolve_url,
)
from db_snapshot.schema import SchemaIntrospector, compare_catalog
from db_snapshot.snapshot import SnapshotProgress, restore_snapshot, take_snapshot

console = Console()


def _load_config(args: argparse.Namespace) -> DatabaseConfig | None:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    try:
        return load_db_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


def _print_progress(progress: SnapshotProgress) -> None:
    if progress.total:
        console.print(f"  [{progress.current}/{progress.total}] {progress.message}", style="dim")
    else:
        console.print(f"  {progress.message}", style="dim")


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_take(args: argparse.Namespace) -> int:
    """Async implementation for take command.

    Returns:
        0 on success, 1 on failure.
    """
    config = _load_config(args)
    if config is None:
        return 1

    try:
        adapter = await get_adapter(config, env_prefix=args.env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    layers = "0-3 (with learners)" if args.with_learners else "0-2"
    console.print(f"Taking snapshot [bold]{args.name}[/bold] (layers {layers})...", style="dim")

    try:
        metadata = await take_snapshot(
            adapter,
            get_store(config),
            args.name,
            description=args.description,
            include_top_layer=args.with_learners,
            on_progress=_print_progress,
        )
    except SnapshotError as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1
    finally:
        await adapter.close()

    console.print()
    console.print(
        f"[bold green]v[/bold green] Snapshot [bold]{metadata.name}[/bold] saved "
        f"({metadata.total_rows} rows, {len(metadata.stats)} tables)"
    )
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    ``--dry-run`` prints the plan without connecting to the database.

    Returns:
        0 on success, 1 on failure or when the user declines.
    """
    config = _load_config(args)
    if config is None:
        return 1
    store = get_store(config)

    if args.dry_run:
        try:
            result = await restore_snapshot(None, store, args.name, dry_run=True)
        except SnapshotError as e:
            console.print(f"[bold red]x[/bold red] {e}")
            return 1

        plan_table = Table(title=f"Restore Plan: {args.name}", show_header=True, header_style="bold")
        plan_table.add_column("#", justify="right", style="dim")
        plan_table.add_column("Table")
        plan_table.add_column("Rows", justify="right")
        for i, table_name in enumerate(result.plan.insertion_order, start=1):
            rows = result.plan.row_counts.get(table_name, 0)
            plan_table.add_row(str(i), table_name, str(rows) if rows else "-")
        console.print(plan_table)
        console.print(
            f"Clears {len(result.plan.truncation_order)} tables, "
            f"inserts {result.plan.total_rows} rows."
        )
        for warning in result.plan.warnings:
            console.print(f"[yellow]Warning:[/yellow] {warning}")
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
        return 0

    if not args.yes and not Confirm.ask(
        f"Replace current data with snapshot [bold]{args.name}[/bold]?", console=console
    ):
        console.print("[yellow]Aborted.[/yellow]")
        return 1

    try:
        adapter = await get_adapter(config, env_prefix=args.env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(f"Restoring snapshot [bold]{args.name}[/bold]...", style="dim")
    try:
        result = await restore_snapshot(
            adapter,
            store,
            args.name,
            lock=get_restore_lock(config),
            batch_size=config.snapshots.batch_size,
            timeout=config.snapshots.transaction_timeout,
            on_progress=_print_progress,
        )
    except SnapshotError as e:
        console.print(f"\n[bold red]x[/bold red] {e}")
        return 1
    finally:
        await adapter.close()

    console.print()
    console.print(
        f"[bold green]v[/bold green] Restored [bold]{args.name}[/bold]: "
        f"{len(result.tables_cleared)} tables cleared, {result.total_inserted} rows inserted"
    )
    for warning in result.errors:
        console.print(f"  [yellow]warning:[/yellow] {warning}")
    return 0


async def _async_check(args: argparse.Namespace) -> int:
    """Async implementation for check command.

    Returns:
        0 if the catalog matches the live schema, 1 otherwise.
    """
    config = _load_config(args)
    if config is None:
        return 1

    try:
        profile_name, profile = get_profile(config, env_prefix=args.env_prefix)
    except ProfileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(f"Introspecting [cyan]{profile_name}[/cyan]...", style="dim")
    try:
        async with SchemaIntrospector(resolve_url(profile)) as introspector:
            live_tables = await introspector.get_table_names()
            live_fks = await introspector.get_foreign_keys()
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Could not introspect schema: {e}")
        return 1

    report = compare_catalog(live_tables, live_fks)
    console.print()
    if report.valid:
        console.print("[bold green]v[/bold green] " + report.format_report())
        return 0
    console.print("[bold red]x[/bold red] " + report.format_report())
    return 1


# ============================================================================
# Sync command wrappers (list, show, delete read local files only)
# ============================================================================


def cmd_take(args: argparse.Namespace) -> int:
    """Take a new snapshot.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_take(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore a snapshot.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_check(args: argparse.Namespace) -> int:
    """Compare the catalog with the live schema.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_check(args))


def cmd_list(args: argparse.Namespace) -> int:
    """List snapshots from the configured directory.

    Reads only local files -- no database calls.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    config = _load_config(args)
    if config is None:
        return 1

    infos = get_store(config).list()
    if not infos:
        console.print(f"[yellow]No snapshots in {config.snapshots.directory}[/yellow]")
        return 0

    table = Table(title="Snapshots", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Created")
    table.add_column("Layers")
    table.add_column("Rows", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Description")

    for info in infos:
        meta = info.metadata
        table.add_row(
            info.name,
            meta.created_at.strftime("%Y-%m-%d %H:%M"),
            ",".join(str(layer) for layer in meta.layers),
            str(meta.total_rows),
            _format_size(info.size_bytes),
            meta.description or "",
        )

    console.print(table)
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Show one snapshot's metadata and row counts.

    Returns:
        0 on success, 1 if the snapshot is missing or unreadable.
    """
    config = _load_config(args)
    if config is None:
        return 1

    try:
        info = get_store(config).get(args.name)
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1
    if info is None:
        console.print(f"[bold red]x[/bold red] Snapshot '{args.name}' not found")
        return 1

    meta = info.metadata
    summary = Table(title=f"Snapshot: {info.name}", show_header=False)
    summary.add_column("Key", style="dim")
    summary.add_column("Value")
    summary.add_row("Created", meta.created_at.isoformat())
    summary.add_row("Description", meta.description or "")
    summary.add_row("Version", meta.version)
    summary.add_row("Layers", ", ".join(str(layer) for layer in meta.layers))
    summary.add_row("With learners", "yes" if meta.with_learners else "no")
    summary.add_row("Total rows", str(meta.total_rows))
    summary.add_row("File", f"{info.path} ({_format_size(info.size_bytes)})")
    console.print(summary)

    stats = Table(title="Rows per table", show_header=True, header_style="bold")
    stats.add_column("Table")
    stats.add_column("Rows", justify="right")
    for table_name, count in meta.stats.items():
        if count:
            stats.add_row(table_name, str(count))
    console.print(stats)
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete a snapshot file.

    Returns:
        0 on success, 1 if missing, invalid or declined.
    """
    config = _load_config(args)
    if config is None:
        return 1
    store = get_store(config)

    try:
        if not store.exists(args.name):
            console.print(f"[bold red]x[/bold red] Snapshot '{args.name}' not found")
            return 1
    except SnapshotError as e:
        console.print(f"[bold red]x[/bold red] {e}")
        return 1

    if not args.yes and not Confirm.ask(f"Delete snapshot [bold]{args.name}[/bold]?", console=console):
        console.print("[yellow]Aborted.[/yellow]")
        return 1

    store.delete(args.name)
    console.print(f"[bold green]v[/bold green] Deleted snapshot [bold]{args.name}[/bold]")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="db-snapshot",
        description="Snapshot and restore layered database state",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # take command
    p_take = subparsers.add_parser("take", help="Take a new snapshot")
    p_take.add_argument("name", help="Snapshot name (letters, digits, - and _)")
    p_take.add_argument("--description", "-d", default=None, help="Free-text description")
    p_take.add_argument(
        "--with-learners",
        action="store_true",
        help="Include layer 3 (learner data)",
    )
    p_take.set_defaults(func=cmd_take)

    # list command
    p_list = subparsers.add_parser("list", help="List snapshots")
    p_list.set_defaults(func=cmd_list)

    # show command
    p_show = subparsers.add_parser("show", help="Show snapshot details")
    p_show.add_argument("name", help="Snapshot name")
    p_show.set_defaults(func=cmd_show)

    # delete command
    p_delete = subparsers.add_parser("delete", help="Delete a snapshot")
    p_delete.add_argument("name", help="Snapshot name")
    p_delete.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_delete.set_defaults(func=cmd_delete)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore a snapshot")
    p_restore.add_argument("name", help="Snapshot name")
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the restore plan without touching the database",
    )
    p_restore.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    p_restore.set_defaults(func=cmd_restore)

    # check command
    p_check = subparsers.add_parser(
        "check",
        help="Compare the table catalog with the live schema",
    )
    p_check.set_defaults(func=cmd_check)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
