"""CLI module for PostgreSQL backup and restore orchestration.

Provides commands for profile listing, catalog inspection, backup planning
and execution, artifact validation, and restore.

Usage:
    DB_PROFILE=prod pg-orchestrator catalog
    pg-orchestrator profiles
    pg-orchestrator plan --scope database --format custom --database inventory
    pg-orchestrator --profile prod backup --scope database --database inventory
    pg-orchestrator --profile prod backup --scope globals
    pg-orchestrator validate backups/inventory-2026-01-15-093000.dump
    pg-orchestrator list backups/inventory-2026-01-15-093000.dump
    pg-orchestrator --profile staging restore backups/inventory-2026-01-15-093000.dump \\
        --dest inventory --mode create_and_restore --yes

Commands:
    profiles  - List available profiles
    catalog   - Show databases, roles and tablespaces of the active profile
    plan      - Show the export command a backup would run
    backup    - Run a backup and write its manifest
    restore   - Restore an artifact into a database
    validate  - Validate an artifact and its manifest
    list      - List the contents of an archive artifact
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Confirm
from rich.table import Table

from pg_orchestrator.backup.manifest import load_artifact, validate_artifact
from pg_orchestrator.backup.models import (
    BackupArtifact,
    BackupFormat,
    BackupScope,
    Consistency,
)
from pg_orchestrator.backup.planner import plan_backup
from pg_orchestrator.backup.runner import run_backup, run_globals_backup
from pg_orchestrator.catalog.inspector import CatalogInspector
from pg_orchestrator.config.loader import load_config
from pg_orchestrator.config.models import OrchestratorConfig
from pg_orchestrator.context import ConnectionContext
from pg_orchestrator.errors import OrchestratorError, PartialFailureError
from pg_orchestrator.factory import connect_and_inspect, get_context, get_runner
from pg_orchestrator.restore.executor import RestoreExecutor, list_archive
from pg_orchestrator.restore.models import (
    ObjectSelector,
    RestoreMode,
    RestoreRequest,
    RestoreResult,
)

console = Console()


# ============================================================================
# Shared helpers
# ============================================================================


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(args: argparse.Namespace) -> OrchestratorConfig:
    config_path = Path(args.config) if getattr(args, "config", None) else None
    return load_config(config_path)


def _positive_int(value: str) -> int:
    """argparse type for job counts."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: '{value}'") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _export_format(
    scope: BackupScope, requested: str | None, default: BackupFormat
) -> BackupFormat:
    """Requested format, else plain for cluster-level scopes, else ``default``."""
    if requested:
        return BackupFormat(requested)
    if scope in (BackupScope.GLOBALS, BackupScope.ALL_DATABASES, BackupScope.CLUSTER):
        return BackupFormat.PLAIN
    return default


def _default_destination(artifact: BackupArtifact, context: ConnectionContext) -> str:
    """Cluster-level scripts replay into the maintenance database."""
    if artifact.is_cluster_level:
        return context.maintenance_db
    return artifact.source_identity


def _print_error(error: Exception) -> None:
    console.print(f"[bold red]x[/bold red] {error}")
    diagnostics = getattr(error, "diagnostics", "")
    if diagnostics:
        console.print("\n[bold]Diagnostics:[/bold]")
        console.print(diagnostics.rstrip(), style="dim", markup=False, highlight=False)


def _print_restore_result(result: RestoreResult) -> None:
    history = " -> ".join(state.value for state in result.history)
    console.print(f"  States: [dim]{history}[/dim]")

    if result.failed_objects:
        table = Table(
            title="Failed Objects", show_header=True, header_style="bold"
        )
        table.add_column("Kind")
        table.add_column("Name", style="cyan")
        table.add_column("Error")
        for failure in result.failed_objects:
            table.add_row(failure.kind, failure.name, failure.message)
        console.print(table)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_catalog(args: argparse.Namespace) -> int:
    """Async implementation for catalog command.

    Args:
        args: Parsed arguments with env_prefix, profile and config.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load(args)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print("Reading catalog...", style="dim")
    result = await connect_and_inspect(
        profile_name=args.profile, env_prefix=args.env_prefix, config=config
    )

    if not result.success:
        console.print()
        console.print(f"[bold red]x[/bold red] {result.error_type}: {result.error}")
        return 1

    snapshot = result.snapshot
    console.print()
    console.print(
        f"[bold green]v[/bold green] Connected to profile: "
        f"[bold cyan]{result.profile_name}[/bold cyan]"
    )
    console.print(f"  Server version: {snapshot.server_version}")
    console.print(f"  Superuser: {'yes' if snapshot.is_superuser else 'no'}")

    db_table = Table(title="Databases", show_header=True, header_style="bold")
    db_table.add_column("Name", style="cyan")
    db_table.add_column("Owner")
    db_table.add_column("Encoding")
    for db in snapshot.databases:
        db_table.add_row(db.name, db.owner, db.encoding)
    console.print()
    console.print(db_table)

    if snapshot.globals_included:
        role_table = Table(title="Roles", show_header=True, header_style="bold")
        role_table.add_column("Name", style="cyan")
        role_table.add_column("Superuser")
        role_table.add_column("Login")
        for role in snapshot.roles:
            role_table.add_row(
                role.name,
                "yes" if role.is_superuser else "",
                "yes" if role.can_login else "",
            )
        console.print(role_table)

        ts_table = Table(title="Tablespaces", show_header=True, header_style="bold")
        ts_table.add_column("Name", style="cyan")
        ts_table.add_column("Owner")
        ts_table.add_column("Location")
        for ts in snapshot.tablespaces:
            ts_table.add_row(ts.name, ts.owner, ts.location or "[dim](default)[/dim]")
        console.print(ts_table)
    else:
        console.print(
            "[yellow]Roles and tablespaces hidden: connected role is not a superuser[/yellow]"
        )

    return 0


async def _async_backup(args: argparse.Namespace) -> int:
    """Async implementation for backup command.

    Args:
        args: Parsed arguments with scope, format, database and output options.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load(args)
        context = get_context(args.profile, args.env_prefix, config)
    except (FileNotFoundError, OrchestratorError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    runner = get_runner(config)
    scope = BackupScope(args.scope)
    backup_dir = args.backup_dir or config.backup.directory
    console.print(
        f"Backing up [bold]{scope.value}[/bold] from "
        f"[bold cyan]{context.describe()}[/bold cyan]...",
        style="dim",
    )

    try:
        if scope is BackupScope.GLOBALS:
            async with CatalogInspector(context.maintenance()) as inspector:
                snapshot = await run_globals_backup(
                    context,
                    runner,
                    inspector=inspector,
                    output_path=args.output,
                    backup_dir=backup_dir,
                )
            artifact = snapshot.artifact
            console.print(
                f"  Roles: [dim]{', '.join(snapshot.roles) or '(none)'}[/dim]"
            )
            console.print(
                f"  Tablespaces: [dim]{', '.join(snapshot.tablespaces) or '(none)'}[/dim]"
            )
        else:
            plan = plan_backup(
                scope,
                _export_format(scope, args.format, config.backup.default_format),
                database=args.database,
                include_create=args.include_create,
                consistency=Consistency(args.consistency) if args.consistency else None,
                jobs=args.jobs or config.backup.jobs,
            )
            artifact = await run_backup(
                plan, context, runner, output_path=args.output, backup_dir=backup_dir
            )
    except OrchestratorError as e:
        console.print()
        _print_error(e)
        return 1

    console.print()
    console.print(f"[bold green]v[/bold green] Backup written: [cyan]{artifact.path}[/cyan]")
    console.print(f"  Manifest: [dim]{artifact.manifest_path}[/dim]")
    return 0


async def _async_restore(args: argparse.Namespace) -> int:
    """Async implementation for restore command.

    Args:
        args: Parsed arguments with artifact, dest, mode and restore options.

    Returns:
        0 on committed restore (or successful dry run), 1 otherwise.
    """
    try:
        config = _load(args)
        context = get_context(args.profile, args.env_prefix, config)
        artifact = load_artifact(args.artifact)
    except (FileNotFoundError, OrchestratorError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    objects = [ObjectSelector(kind="schema", name=n) for n in args.schema or []]
    objects += [ObjectSelector(kind="table", name=n) for n in args.table or []]

    request = RestoreRequest(
        artifact=artifact,
        destination=args.dest or _default_destination(artifact, context),
        mode=RestoreMode(args.mode),
        clean_first=args.clean,
        stop_on_error=args.stop_on_error,
        jobs=args.jobs,
        objects=objects,
        single_transaction=args.single_transaction,
    )

    console.print(f"  Artifact: [bold]{artifact.path}[/bold] ({artifact.format.value})")
    console.print(f"  Destination: [bold cyan]{request.destination}[/bold cyan]")
    console.print(f"  Mode: {request.mode.value}")
    if request.clean_first:
        console.print("  [bold yellow]Clean first: existing objects will be dropped[/bold yellow]")

    if not args.dry_run and not args.yes:
        console.print()
        if not Confirm.ask("Proceed with restore?", console=console, default=False):
            console.print("[dim]Cancelled.[/dim]")
            return 1

    runner = get_runner(config)
    try:
        async with CatalogInspector(context.maintenance()) as inspector:
            executor = RestoreExecutor(context, runner, inspector=inspector)
            result = await executor.run(request, dry_run=args.dry_run)
    except OrchestratorError as e:
        console.print()
        _print_error(e)
        return 1

    if args.dry_run and not result.failed:
        console.print()
        console.print("[bold]Commands:[/bold]")
        for step, argv in enumerate(result.commands, start=1):
            console.print(f"  {step}. {' '.join(argv)}", markup=False, highlight=False)
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - No changes made.")
        return 0

    console.print()
    if result.committed:
        console.print("[bold green]v[/bold green] Restore committed.")
        _print_restore_result(result)
        return 0

    if isinstance(result.error, PartialFailureError):
        console.print(f"[bold red]x[/bold red] {result.error}")
    else:
        _print_error(result.error)
    _print_restore_result(result)
    return 1


async def _async_list(args: argparse.Namespace) -> int:
    """Async implementation for list command."""
    try:
        artifact = load_artifact(args.artifact)
        config = _load(args) if args.config else None
        entries = await list_archive(artifact, get_runner(config))
    except (FileNotFoundError, OrchestratorError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(
        title=f"Archive Contents: {artifact.path}", show_header=True, header_style="bold"
    )
    table.add_column("ID", justify="right")
    table.add_column("Kind")
    table.add_column("Object", style="cyan")
    table.add_column("Owner", style="dim")
    for entry in entries:
        table.add_row(str(entry.dump_id), entry.kind, entry.qualified_name, entry.owner)
    console.print(table)
    return 0


# ============================================================================
# Command wrappers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from pg-orchestrator.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if the config file is not found.
    """
    try:
        config = _load(args)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = args.profile or os.environ.get(f"{args.env_prefix}DB_PROFILE")

    table = Table(
        title="Database Profiles", show_header=True, header_style="bold"
    )
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        name_style = "bold cyan" if name == current else ""
        table.add_row(
            marker,
            f"[{name_style}]{name}[/{name_style}]" if name_style else name,
            profile.description or "",
        )

    console.print(table)

    if current in config.profiles:
        console.print("\n[bold green]*[/bold green] = active profile")

    return 0


def cmd_catalog(args: argparse.Namespace) -> int:
    """Show the catalog of the active profile.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_catalog(args))


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the export command a backup would run, without running it.

    Returns:
        0 on a valid plan, 1 on an invalid option combination.
    """
    scope = BackupScope(args.scope)
    try:
        plan = plan_backup(
            scope,
            _export_format(scope, args.format, BackupFormat.CUSTOM),
            database=args.database,
            include_create=args.include_create,
            consistency=Consistency(args.consistency) if args.consistency else None,
            jobs=args.jobs or 1,
        )
    except OrchestratorError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Export Plan", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Scope", plan.scope.value)
    table.add_row("Mode", plan.mode.value)
    table.add_row("Tool", plan.mode.tool)
    table.add_row("Format", plan.format.value)
    table.add_row("Source", plan.source_identity)
    if plan.include_create:
        table.add_row("Include CREATE DATABASE", "yes")
    if plan.jobs > 1:
        table.add_row("Jobs", str(plan.jobs))
    console.print(table)

    argv = plan.build_argv("<output>", "<connection>")
    console.print(f"\n[bold]Command:[/bold] {' '.join(argv)}", highlight=False)
    return 0


def cmd_backup(args: argparse.Namespace) -> int:
    """Run a backup.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_backup(args))


def cmd_restore(args: argparse.Namespace) -> int:
    """Restore an artifact.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_restore(args))


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate an artifact and its manifest.

    Reads only local files -- no database calls.

    Returns:
        0 if valid, 1 otherwise.
    """
    report = validate_artifact(args.artifact)

    for warning in report["warnings"]:
        console.print(f"[yellow]! {warning}[/yellow]")

    if report["valid"]:
        console.print(f"[bold green]v[/bold green] Artifact is valid: {args.artifact}")
        return 0

    console.print(f"[bold red]x[/bold red] Artifact is invalid: {args.artifact}")
    for error in report["errors"]:
        console.print(f"  - {error}")
    return 1


def cmd_list(args: argparse.Namespace) -> int:
    """List an archive's table of contents.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_list(args))


# ============================================================================
# Main entry point
# ============================================================================


def _add_plan_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--scope",
        choices=[s.value for s in BackupScope],
        default=BackupScope.DATABASE.value,
        help="What to back up (default: database)",
    )
    p.add_argument(
        "--format",
        choices=[f.value for f in BackupFormat],
        help=(
            "Output format (default: plain for globals, all_databases and cluster; "
            "otherwise [backup] default_format, else custom)"
        ),
    )
    p.add_argument("--database", help="Database name (database scope)")
    p.add_argument(
        "--consistency",
        choices=[c.value for c in Consistency],
        help="logical or physical (default: physical for cluster, logical otherwise)",
    )
    p.add_argument(
        "--include-create",
        action="store_true",
        help="Include CREATE DATABASE in plain-format database dumps",
    )
    p.add_argument(
        "--jobs",
        type=_positive_int,
        help="Parallel dump jobs (directory format only)",
    )


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="pg-orchestrator",
        description="PostgreSQL backup and restore orchestration",
    )

    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument("--profile", help="Profile name (overrides DB_PROFILE)")
    parser.add_argument(
        "--config",
        help="Path to config file (default: ./pg-orchestrator.toml)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    # catalog command
    p_catalog = subparsers.add_parser(
        "catalog",
        help="Show databases, roles and tablespaces of the active profile",
    )
    p_catalog.set_defaults(func=cmd_catalog)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the export command a backup would run",
    )
    _add_plan_arguments(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    # backup command
    p_backup = subparsers.add_parser("backup", help="Run a backup")
    _add_plan_arguments(p_backup)
    p_backup.add_argument(
        "--output",
        "-o",
        help="Artifact path (default: timestamped path under the backup directory)",
    )
    p_backup.add_argument(
        "--backup-dir",
        help="Directory for generated artifact paths (default: [backup] directory)",
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser("restore", help="Restore an artifact")
    p_restore.add_argument("artifact", help="Artifact or manifest path")
    p_restore.add_argument(
        "--dest",
        help=(
            "Destination database (default: the artifact's source database, "
            "or the maintenance database for globals and all-database scripts)"
        ),
    )
    p_restore.add_argument(
        "--mode",
        choices=[m.value for m in RestoreMode],
        default=RestoreMode.INTO_EXISTING.value,
        help="How the destination is prepared (default: into_existing)",
    )
    p_restore.add_argument(
        "--clean",
        action="store_true",
        help="Drop existing objects (or the destination database) first",
    )
    stop = p_restore.add_mutually_exclusive_group()
    stop.add_argument(
        "--stop-on-error",
        dest="stop_on_error",
        action="store_const",
        const=True,
        default=None,
        help="Stop at the first failing statement",
    )
    stop.add_argument(
        "--continue-on-error",
        dest="stop_on_error",
        action="store_const",
        const=False,
        help="Keep going after failures (all failures are reported)",
    )
    p_restore.add_argument(
        "--jobs", type=_positive_int, default=1, help="Parallel restore jobs (archives only)"
    )
    p_restore.add_argument(
        "--single-transaction",
        action="store_true",
        help="Restore inside one transaction",
    )
    p_restore.add_argument(
        "--schema", action="append", help="Restore only this schema (repeatable)"
    )
    p_restore.add_argument(
        "--table", action="append", help="Restore only this table (repeatable)"
    )
    p_restore.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate and show the commands without running them",
    )
    p_restore.add_argument(
        "--yes", "-y", action="store_true", help="Do not ask for confirmation"
    )
    p_restore.set_defaults(func=cmd_restore)

    # validate command
    p_validate = subparsers.add_parser(
        "validate", help="Validate an artifact and its manifest"
    )
    p_validate.add_argument("artifact", help="Artifact or manifest path")
    p_validate.set_defaults(func=cmd_validate)

    # list command
    p_list = subparsers.add_parser("list", help="List an archive's contents")
    p_list.add_argument("artifact", help="Artifact or manifest path")
    p_list.set_defaults(func=cmd_list)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
