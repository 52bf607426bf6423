"""Restore executor: validate, clean, apply, and report.

Dispatches on the artifact's recorded format:

- **plain** scripts are replayed with ``psql`` (optionally stopping at the
  first failing statement);
- **archive** formats (custom, tar, directory) go through ``pg_restore``,
  which supports selective restore, parallel jobs and ``--create``.

Every check that can reject a request runs in ``VALIDATING``, before any
command touches the destination.  Restore is not idempotent: running it
again over objects that already exist fails (or duplicates rows) unless
``clean_first`` is set, and that failure is reported, never hidden.

Usage:
    from pg_orchestrator.restore.executor import RestoreExecutor
    from pg_orchestrator.restore.models import RestoreMode, RestoreRequest

    executor = RestoreExecutor(context, runner, inspector=inspector)
    result = await executor.run(
        RestoreRequest(
            artifact=artifact,
            destination="inventory",
            mode=RestoreMode.CREATE_AND_RESTORE,
        )
    )
    if result.failed:
        for failure in result.failed_objects:
            print(failure.kind, failure.name, failure.message)
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pg_orchestrator.backup.manifest import sniff_format
from pg_orchestrator.backup.models import BackupArtifact, BackupFormat, BackupScope
from pg_orchestrator.catalog.inspector import CatalogInspector
from pg_orchestrator.context import ConnectionContext
from pg_orchestrator.engine.base import ToolResult, ToolRunner
from pg_orchestrator.errors import (
    ConfigurationError,
    FatalEngineError,
    FormatMismatchError,
    OrchestratorError,
    PartialFailureError,
    classify_tool_failure,
)
from pg_orchestrator.restore.diagnostics import (
    failures_from_statements,
    parse_psql_errors,
    parse_restore_failures,
    parse_toc_listing,
)
from pg_orchestrator.restore.models import (
    ArchiveEntry,
    RestoreMode,
    RestorePath,
    RestoreRequest,
    RestoreResult,
    RestoreState,
)

logger = logging.getLogger(__name__)


@dataclass
class _Step:
    """One tool invocation and how to judge its outcome."""

    phase: RestoreState
    argv: list[str]
    env: dict[str, str]
    check: Callable[[ToolResult, RestoreResult], None]


async def _run_tool(
    runner: ToolRunner, argv: list[str], env: dict[str, str] | None = None
) -> ToolResult:
    """Run one tool; a binary that cannot be started is a fatal engine error."""
    try:
        return await runner.run(argv, env=env)
    except OSError as e:
        raise FatalEngineError(f"Could not start {argv[0]}: {e}") from e


# ------------------------------------------------------------------
# Outcome checks
# ------------------------------------------------------------------


def _check_tool(tool_result: ToolResult, result: RestoreResult) -> None:
    """createdb / dropdb: any non-zero exit is a failure."""
    if not tool_result.ok:
        raise classify_tool_failure(
            tool_result.tool, tool_result.returncode, tool_result.stderr
        )


def _check_psql(tool_result: ToolResult, result: RestoreResult) -> None:
    """psql replay: any reported statement error fails the restore.

    psql exits 0 in continue-on-error mode even when statements fail, so
    the diagnostic stream is authoritative.
    """
    errors = parse_psql_errors(tool_result.stderr)
    if errors:
        result.statement_errors.extend(errors)
        failures = failures_from_statements(errors)
        result.failed_objects.extend(failures)
        stopped = result.request.effective_stop_on_error
        detail = (
            f"stopped at line {errors[0].line}"
            if stopped
            else f"{len(errors)} statement(s) failed"
        )
        raise PartialFailureError(
            f"Plain-text restore into '{result.request.destination}' failed: {detail}",
            failed_objects=failures,
            diagnostics=tool_result.stderr,
        )
    if not tool_result.ok:
        raise classify_tool_failure(
            tool_result.tool, tool_result.returncode, tool_result.stderr
        )


def _check_pg_restore(tool_result: ToolResult, result: RestoreResult) -> None:
    """pg_restore: every failed TOC entry is listed; none is dropped."""
    failures = parse_restore_failures(tool_result.stderr)
    if failures:
        result.failed_objects.extend(failures)
        names = ", ".join(f.name for f in failures)
        raise PartialFailureError(
            f"Archive restore into '{result.request.destination}' failed for "
            f"{len(failures)} object(s): {names}",
            failed_objects=failures,
            diagnostics=tool_result.stderr,
        )
    if not tool_result.ok:
        raise classify_tool_failure(
            tool_result.tool, tool_result.returncode, tool_result.stderr
        )


# ------------------------------------------------------------------
# Executor
# ------------------------------------------------------------------


class RestoreExecutor:
    """Runs ``RestoreRequest`` objects against one server.

    Args:
        context: Server connection.  The database part is replaced per
            command (destination or maintenance database).
        runner: Tool runner used for every external command.
        inspector: Optional connected ``CatalogInspector``.  When given,
            destination existence is checked during validation.
    """

    def __init__(
        self,
        context: ConnectionContext,
        runner: ToolRunner,
        inspector: CatalogInspector | None = None,
    ) -> None:
        self._context = context
        self._runner = runner
        self._inspector = inspector

    async def run(self, request: RestoreRequest, dry_run: bool = False) -> RestoreResult:
        """Run one restore to a terminal state.

        Expected failures never raise: the returned result is ``FAILED``
        and carries the error (``result.raise_for_state()`` re-raises it).
        Cancellation terminates the running tool, records ``FAILED`` and
        propagates.

        Args:
            request: What to restore and where.
            dry_run: Validate and plan the commands without running them.

        Returns:
            ``RestoreResult`` -- ``COMMITTED`` or ``FAILED``, or
            ``VALIDATING`` for a successful dry run.
        """
        result = RestoreResult(request=request, dry_run=dry_run)
        logger.info(
            "Restore %s -> %s (%s%s)",
            request.artifact.path,
            request.destination,
            request.mode.value,
            ", clean first" if request.clean_first else "",
        )

        try:
            result.advance(RestoreState.VALIDATING)
            await self._validate(request)
            steps = self._plan_steps(request)
            result.commands = [step.argv for step in steps]

            if dry_run:
                return result

            if request.clean_first:
                result.advance(RestoreState.CLEANING)

            for step in steps:
                if step.phase is RestoreState.APPLYING and result.state is not RestoreState.APPLYING:
                    result.advance(RestoreState.APPLYING)
                tool_result = await _run_tool(self._runner, step.argv, step.env)
                result.diagnostics += tool_result.stderr
                step.check(tool_result, result)

            result.advance(RestoreState.COMMITTED)
            logger.info("Restore into %s committed", request.destination)
        except OrchestratorError as e:
            logger.error("Restore into %s failed: %s", request.destination, e)
            result.fail(e)
        except asyncio.CancelledError:
            result.fail(
                FatalEngineError(
                    "Restore cancelled; the destination must be re-validated "
                    "before any retry",
                    diagnostics=result.diagnostics,
                )
            )
            raise

        return result

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def _validate(self, request: RestoreRequest) -> None:
        """Reject caller mistakes before anything destructive runs.

        Raises:
            FormatMismatchError: Artifact cannot go through the chosen path.
            ConfigurationError: Invalid option combination or destination state.
        """
        artifact = request.artifact
        implied = request.restore_path

        if artifact.is_physical:
            raise FormatMismatchError(
                "Physical base backups are restored by replacing the data "
                "directory, not through psql or pg_restore"
            )

        if request.path is not None and request.path is not implied:
            raise FormatMismatchError(
                f"{artifact.format.value} artifacts use the {implied.value} "
                f"restore path, not {request.path.value}"
            )

        detected = sniff_format(artifact.path)
        if detected is None:
            if Path(artifact.path).is_dir():
                raise FormatMismatchError(
                    f"Directory archive has no toc.dat (corrupt or not a pg_dump "
                    f"directory): {artifact.path}"
                )
            raise ConfigurationError(f"Artifact not found: {artifact.path}")
        if detected is not artifact.format:
            raise FormatMismatchError(
                f"Artifact recorded as {artifact.format.value} but its contents "
                f"are {detected.value}: {artifact.path}"
            )

        self._validate_options(request)

        if self._inspector is not None:
            await self._validate_destination(request)

    def _validate_options(self, request: RestoreRequest) -> None:
        artifact = request.artifact
        archive = request.restore_path is RestorePath.ARCHIVE

        if request.jobs > 1:
            if not archive:
                raise ConfigurationError("Parallel restore (jobs > 1) needs an archive artifact")
            if artifact.format is BackupFormat.TAR:
                raise ConfigurationError(
                    "Parallel restore is not supported for tar archives "
                    "(use custom or directory format)"
                )
            if request.single_transaction:
                raise ConfigurationError("jobs > 1 cannot be combined with single_transaction")

        if request.objects and not archive:
            raise ConfigurationError("Selective restore needs an archive artifact")

        if request.single_transaction and request.stop_on_error is False:
            raise ConfigurationError("single_transaction requires stop_on_error")

        if artifact.is_cluster_level:
            if request.mode is RestoreMode.CREATE_NEW:
                raise ConfigurationError(
                    f"{artifact.scope.value} artifacts create their own objects; "
                    "create_new is not applicable"
                )
            if request.clean_first:
                raise ConfigurationError(
                    f"clean_first is not supported for {artifact.scope.value} artifacts"
                )
            if (
                artifact.scope is BackupScope.GLOBALS
                and request.mode is RestoreMode.CREATE_AND_RESTORE
            ):
                raise ConfigurationError("Globals are restored into_existing (cluster level)")
            return

        if (
            request.mode is RestoreMode.CREATE_AND_RESTORE
            and request.destination != artifact.source_identity
        ):
            raise ConfigurationError(
                f"create_and_restore recreates '{artifact.source_identity}'; "
                f"use create_new to restore under the name '{request.destination}'"
            )

        if (
            request.mode is RestoreMode.CREATE_NEW
            and not archive
            and artifact.include_create
        ):
            raise ConfigurationError(
                "Plain artifact was dumped with CREATE DATABASE; "
                "use create_and_restore"
            )

    async def _validate_destination(self, request: RestoreRequest) -> None:
        exists = await self._inspector.database_exists(request.destination)

        if request.artifact.is_cluster_level or request.mode is RestoreMode.INTO_EXISTING:
            if not exists:
                raise ConfigurationError(
                    f"Destination database '{request.destination}' does not exist"
                )
            return

        if exists and not request.clean_first:
            raise ConfigurationError(
                f"Destination database '{request.destination}' already exists; "
                "restore into_existing or set clean_first"
            )

    # ------------------------------------------------------------------
    # Command planning
    # ------------------------------------------------------------------

    def _plan_steps(self, request: RestoreRequest) -> list[_Step]:
        """Build the ordered tool invocations for a validated request."""
        steps: list[_Step] = []
        artifact = request.artifact
        archive = request.restore_path is RestorePath.ARCHIVE
        maintenance = self._context.maintenance()
        destination = self._context.for_database(request.destination)

        if artifact.is_cluster_level:
            steps.append(self._psql_step(request, destination))
            return steps

        creates = request.mode in (RestoreMode.CREATE_NEW, RestoreMode.CREATE_AND_RESTORE)
        recreate_existing = (
            request.mode is RestoreMode.INTO_EXISTING and request.clean_first and not archive
        )

        if request.clean_first and (creates or recreate_existing):
            steps.append(self._dropdb_step(request.destination, maintenance))

        # Archive restores recreate from the archive's own metadata
        self_creating = request.mode is RestoreMode.CREATE_AND_RESTORE and (
            archive or artifact.include_create
        )

        if recreate_existing or (creates and not self_creating):
            steps.append(self._createdb_step(request.destination, maintenance))

        if archive:
            target = maintenance if self_creating else destination
            steps.append(self._pg_restore_step(request, target, create=self_creating))
        else:
            target = maintenance if self_creating else destination
            steps.append(self._psql_step(request, target))

        return steps

    def _dropdb_step(self, database: str, maintenance: ConnectionContext) -> _Step:
        return _Step(
            phase=RestoreState.CLEANING,
            argv=[
                "dropdb",
                "--no-password",
                "--if-exists",
                f"--maintenance-db={maintenance.libpq_uri()}",
                database,
            ],
            env=maintenance.tool_env(),
            check=_check_tool,
        )

    def _createdb_step(self, database: str, maintenance: ConnectionContext) -> _Step:
        return _Step(
            phase=RestoreState.APPLYING,
            argv=[
                "createdb",
                "--no-password",
                f"--maintenance-db={maintenance.libpq_uri()}",
                database,
            ],
            env=maintenance.tool_env(),
            check=_check_tool,
        )

    def _psql_step(self, request: RestoreRequest, target: ConnectionContext) -> _Step:
        argv = ["psql", "--no-password", "--no-psqlrc"]
        if request.effective_stop_on_error:
            argv += ["--set", "ON_ERROR_STOP=1"]
        if request.single_transaction:
            argv.append("--single-transaction")
        argv += [f"--dbname={target.libpq_uri()}", f"--file={request.artifact.path}"]
        return _Step(
            phase=RestoreState.APPLYING,
            argv=argv,
            env=target.tool_env(),
            check=_check_psql,
        )

    def _pg_restore_step(
        self,
        request: RestoreRequest,
        target: ConnectionContext,
        create: bool,
    ) -> _Step:
        argv = ["pg_restore", "--no-password", f"--dbname={target.libpq_uri()}"]
        if create:
            argv.append("--create")
        if request.clean_first and request.mode is RestoreMode.INTO_EXISTING:
            # Drops only the objects contained in the archive
            argv += ["--clean", "--if-exists"]
        if request.jobs > 1:
            argv.append(f"--jobs={request.jobs}")
        if request.single_transaction:
            argv.append("--single-transaction")
        elif request.effective_stop_on_error:
            argv.append("--exit-on-error")
        argv += [selector.to_flag() for selector in request.objects]
        argv.append(request.artifact.path)
        return _Step(
            phase=RestoreState.APPLYING,
            argv=argv,
            env=target.tool_env(),
            check=_check_pg_restore,
        )


async def list_archive(
    artifact: BackupArtifact,
    runner: ToolRunner,
) -> list[ArchiveEntry]:
    """List an archive's table of contents (``pg_restore --list``).

    Raises:
        FormatMismatchError: For plain scripts, which have no table of contents.
        FatalEngineError: If pg_restore cannot read the archive.
    """
    if not artifact.is_archive:
        raise FormatMismatchError(
            f"{artifact.format.value} artifacts have no table of contents"
        )
    if not Path(artifact.path).exists():
        raise ConfigurationError(f"Artifact not found: {artifact.path}")

    tool_result = await _run_tool(runner, ["pg_restore", "--list", artifact.path])
    if not tool_result.ok:
        raise classify_tool_failure(
            tool_result.tool, tool_result.returncode, tool_result.stderr
        )
    return parse_toc_listing(tool_result.stdout)
