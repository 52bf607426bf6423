"""Run an ``ExportPlan`` and record the resulting artifact.

Each invocation writes exactly one artifact.  The export tool writes to a
``.partial`` staging path that is renamed into place only after the tool
exits successfully; on failure or cancellation the staging output is
removed, so a half-written artifact never carries the final name.  The
manifest is written last.

Usage:
    from pg_orchestrator.backup.planner import plan_backup
    from pg_orchestrator.backup.runner import run_backup, run_globals_backup

    plan = plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory")
    artifact = await run_backup(plan, context, runner, backup_dir="backups")

    snapshot = await run_globals_backup(context, runner, inspector=inspector)
"""

import logging
import shutil
from datetime import datetime
from pathlib import Path

from pg_orchestrator.backup.manifest import write_manifest
from pg_orchestrator.backup.models import (
    BackupArtifact,
    BackupFormat,
    BackupScope,
    ExportMode,
    ExportPlan,
    GlobalsSnapshot,
)
from pg_orchestrator.backup.planner import plan_backup
from pg_orchestrator.catalog.inspector import CatalogInspector
from pg_orchestrator.context import ConnectionContext
from pg_orchestrator.engine.base import ToolRunner
from pg_orchestrator.errors import (
    AuthorizationError,
    ConfigurationError,
    FatalEngineError,
    classify_tool_failure,
)

logger = logging.getLogger(__name__)

_FILE_SUFFIXES = {
    BackupFormat.PLAIN: ".sql",
    BackupFormat.CUSTOM: ".dump",
    BackupFormat.TAR: ".tar",
}

STAGING_SUFFIX = ".partial"


def default_output_path(plan: ExportPlan, backup_dir: str | Path | None = None) -> Path:
    """Timestamped artifact path under ``backup_dir`` (default ``./backups``).

    Example:
        backups/inventory-2026-01-15-093000.dump
        backups/globals-2026-01-15-093000.sql
        backups/basebackup-2026-01-15-093000/
    """
    base = Path(backup_dir) if backup_dir is not None else Path.cwd() / "backups"
    timestamp = datetime.now().strftime("%Y-%m-%d-%H%M%S")

    if plan.mode is ExportMode.PHYSICAL_BASE:
        prefix = "basebackup"
    elif plan.mode is ExportMode.GLOBALS_ONLY:
        prefix = "globals"
    else:
        prefix = plan.source_identity

    suffix = "" if plan.writes_directory else _FILE_SUFFIXES[plan.format]
    return base / f"{prefix}-{timestamp}{suffix}"


def _discard(path: Path) -> None:
    """Remove a staging file or directory if present."""
    if path.is_dir():
        shutil.rmtree(path, ignore_errors=True)
    elif path.exists():
        path.unlink()


async def run_backup(
    plan: ExportPlan,
    context: ConnectionContext,
    runner: ToolRunner,
    output_path: str | Path | None = None,
    backup_dir: str | Path | None = None,
) -> BackupArtifact:
    """Run the export tool for a plan and write the artifact manifest.

    Args:
        plan: Validated export plan from ``plan_backup()``.
        context: Server connection.  Single-database plans connect to
            ``plan.database``; cluster-level plans to the maintenance database.
        runner: Tool runner.
        output_path: Final artifact path.  When ``None``, a timestamped path
            under ``backup_dir`` is generated.
        backup_dir: Directory for generated paths.

    Returns:
        The immutable ``BackupArtifact`` that was written.

    Raises:
        ConfigurationError: If ``output_path`` already exists.
        ConnectivityError, AuthorizationError, FatalEngineError: If the tool
            fails.  Captured stderr is attached as ``diagnostics``.
    """
    if plan.database:
        target = context.for_database(plan.database)
    else:
        target = context.maintenance()

    final = Path(output_path) if output_path is not None else default_output_path(plan, backup_dir)
    if final.exists():
        raise ConfigurationError(
            f"Artifact already exists: {final} (artifacts are never overwritten)"
        )

    final.parent.mkdir(parents=True, exist_ok=True)
    staging = final.with_name(final.name + STAGING_SUFFIX)
    _discard(staging)

    argv = plan.build_argv(str(staging), target.libpq_uri())
    logger.info(
        "Backing up %s (%s, %s) to %s",
        plan.source_identity, plan.mode.value, plan.format.value, final,
    )

    try:
        result = await runner.run(argv, env=target.tool_env())
    except OSError as e:
        _discard(staging)
        raise FatalEngineError(f"Could not start {argv[0]}: {e}") from e
    except BaseException:
        # Includes cancellation: the interrupted output is never kept
        _discard(staging)
        raise

    if not result.ok:
        _discard(staging)
        logger.error("%s failed with status %s", result.tool, result.returncode)
        raise classify_tool_failure(result.tool, result.returncode, result.stderr)

    if not staging.exists():
        raise FatalEngineError(
            f"{result.tool} reported success but wrote no output at {staging}",
            diagnostics=result.stderr,
        )

    staging.rename(final)

    artifact = BackupArtifact(
        scope=plan.scope,
        format=plan.format,
        mode=plan.mode,
        source_identity=plan.source_identity,
        path=str(final),
        include_create=plan.include_create,
    )
    write_manifest(artifact)
    logger.info("Backup written: %s", final)
    return artifact


async def run_globals_backup(
    context: ConnectionContext,
    runner: ToolRunner,
    inspector: CatalogInspector | None = None,
    output_path: str | Path | None = None,
    backup_dir: str | Path | None = None,
) -> GlobalsSnapshot:
    """Export roles and tablespaces (``pg_dumpall --globals-only``).

    When an ``inspector`` is supplied, superuser status is checked before
    the export runs and the role/tablespace names are recorded on the
    snapshot.

    Raises:
        AuthorizationError: If the connected role is not a superuser.
    """
    roles: list[str] = []
    tablespaces: list[str] = []

    if inspector is not None:
        if not await inspector.is_superuser():
            raise AuthorizationError(
                "Globals export requires a superuser "
                f"(connected as {context.url.username or 'default role'})"
            )
        roles = [r.name for r in await inspector.list_roles()]
        tablespaces = [t.name for t in await inspector.list_tablespaces()]

    plan = plan_backup(BackupScope.GLOBALS, BackupFormat.PLAIN)
    artifact = await run_backup(
        plan, context, runner, output_path=output_path, backup_dir=backup_dir
    )
    return GlobalsSnapshot(artifact=artifact, roles=roles, tablespaces=tablespaces)
