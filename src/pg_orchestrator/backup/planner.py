"""Backup planner: pick the export tool for a scope, format and consistency.

Pure logic -- no I/O, no database connections.  The decision is a dispatch
table keyed by ``(scope, consistency)``; each entry validates the format
and options for its variant and returns an ``ExportPlan``.

Usage:
    from pg_orchestrator.backup.planner import plan_backup
    from pg_orchestrator.backup.models import BackupFormat, BackupScope

    plan = plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory")
    plan.mode        # ExportMode.LOGICAL_SINGLE

    plan_backup(BackupScope.ALL_DATABASES, BackupFormat.TAR)
    # ConfigurationError: all_databases backups support plain format only
"""

from collections.abc import Callable

from pg_orchestrator.backup.models import (
    BackupFormat,
    BackupScope,
    Consistency,
    ExportMode,
    ExportPlan,
)
from pg_orchestrator.errors import ConfigurationError

_PlanHandler = Callable[[BackupScope, BackupFormat, str | None, bool, int], ExportPlan]


def _require_plain(scope: BackupScope, fmt: BackupFormat) -> None:
    if fmt is not BackupFormat.PLAIN:
        raise ConfigurationError(
            f"{scope.value} backups support plain format only "
            f"(requested {fmt.value})"
        )


def _require_single_job(scope: BackupScope, fmt: BackupFormat, jobs: int) -> None:
    if jobs > 1:
        raise ConfigurationError(
            f"Parallel export (jobs={jobs}) requires a single database in "
            f"directory format, not {scope.value}/{fmt.value}"
        )


def _plan_single_database(
    scope: BackupScope,
    fmt: BackupFormat,
    database: str | None,
    include_create: bool,
    jobs: int,
) -> ExportPlan:
    if not database:
        raise ConfigurationError("A database name is required for database scope")
    if jobs > 1 and fmt is not BackupFormat.DIRECTORY:
        _require_single_job(scope, fmt, jobs)
    return ExportPlan(
        mode=ExportMode.LOGICAL_SINGLE,
        scope=scope,
        format=fmt,
        database=database,
        # Archive formats always carry creation metadata for pg_restore --create
        include_create=include_create and fmt is BackupFormat.PLAIN,
        jobs=jobs,
    )


def _plan_all_databases(
    scope: BackupScope,
    fmt: BackupFormat,
    database: str | None,
    include_create: bool,
    jobs: int,
) -> ExportPlan:
    _require_plain(scope, fmt)
    _require_single_job(scope, fmt, jobs)
    # pg_dumpall always emits CREATE DATABASE and bundles globals
    return ExportPlan(
        mode=ExportMode.LOGICAL_ALL,
        scope=scope,
        format=fmt,
        include_create=True,
    )


def _plan_globals(
    scope: BackupScope,
    fmt: BackupFormat,
    database: str | None,
    include_create: bool,
    jobs: int,
) -> ExportPlan:
    _require_plain(scope, fmt)
    _require_single_job(scope, fmt, jobs)
    return ExportPlan(mode=ExportMode.GLOBALS_ONLY, scope=scope, format=fmt)


def _plan_base_backup(
    scope: BackupScope,
    fmt: BackupFormat,
    database: str | None,
    include_create: bool,
    jobs: int,
) -> ExportPlan:
    if fmt not in (BackupFormat.PLAIN, BackupFormat.TAR):
        raise ConfigurationError(
            f"Physical base backups support plain or tar format only "
            f"(requested {fmt.value})"
        )
    _require_single_job(scope, fmt, jobs)
    return ExportPlan(mode=ExportMode.PHYSICAL_BASE, scope=scope, format=fmt)


_DISPATCH: dict[tuple[BackupScope, Consistency], _PlanHandler] = {
    (BackupScope.DATABASE, Consistency.LOGICAL): _plan_single_database,
    (BackupScope.ALL_DATABASES, Consistency.LOGICAL): _plan_all_databases,
    (BackupScope.GLOBALS, Consistency.LOGICAL): _plan_globals,
    (BackupScope.CLUSTER, Consistency.LOGICAL): _plan_all_databases,
    (BackupScope.CLUSTER, Consistency.PHYSICAL): _plan_base_backup,
}

_DEFAULT_CONSISTENCY = {
    BackupScope.DATABASE: Consistency.LOGICAL,
    BackupScope.ALL_DATABASES: Consistency.LOGICAL,
    BackupScope.GLOBALS: Consistency.LOGICAL,
    BackupScope.CLUSTER: Consistency.PHYSICAL,
}


def plan_backup(
    scope: BackupScope,
    fmt: BackupFormat,
    database: str | None = None,
    include_create: bool = False,
    consistency: Consistency | None = None,
    jobs: int = 1,
) -> ExportPlan:
    """Select the export mode for a requested backup.

    Decision table:

    - ``database``: ``pg_dump``, any format.  ``include_create`` adds
      ``--create`` to plain dumps so the replay recreates the database.
    - ``all_databases``: ``pg_dumpall``, plain only.  Any other format is
      rejected -- never silently downgraded.
    - ``globals``: ``pg_dumpall --globals-only``, plain only.
    - ``cluster``: ``pg_basebackup`` (physical, default; plain or tar), or
      ``pg_dumpall`` when logical consistency is requested.

    Physical consistency is only available for the ``cluster`` scope.

    Args:
        scope: What to back up.
        fmt: Requested output format.
        database: Database name (required for ``database`` scope).
        include_create: Emit ``CREATE DATABASE`` in plain single-database dumps.
        consistency: Logical or physical; defaults per scope.
        jobs: Parallel dump workers (directory format only).

    Returns:
        ``ExportPlan`` ready to run.

    Raises:
        ConfigurationError: For any unsupported combination.
    """
    if jobs < 1:
        raise ConfigurationError(f"jobs must be >= 1 (got {jobs})")

    if consistency is None:
        consistency = _DEFAULT_CONSISTENCY[scope]

    handler = _DISPATCH.get((scope, consistency))
    if handler is None:
        raise ConfigurationError(
            f"{consistency.value} backups are not available for {scope.value} scope"
        )

    return handler(scope, fmt, database, include_create, jobs)
