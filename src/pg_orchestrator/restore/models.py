"""Restore request, state machine and result models.

A restore runs through::

    PENDING -> VALIDATING -> (CLEANING) -> APPLYING -> COMMITTED | FAILED

``COMMITTED`` and ``FAILED`` are terminal.  A failed restore is never
retried automatically -- the caller re-invokes it, usually with
``clean_first`` set.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from pg_orchestrator.backup.models import BackupArtifact
from pg_orchestrator.errors import OrchestratorError


class RestoreMode(str, Enum):
    """How the destination database is prepared."""

    CREATE_NEW = "create_new"                   # createdb <destination>, then restore
    INTO_EXISTING = "into_existing"             # additive restore into an existing database
    CREATE_AND_RESTORE = "create_and_restore"   # use the artifact's own creation metadata


class RestorePath(str, Enum):
    """Restore mechanism: statement replay or archive-aware restore."""

    PLAIN = "plain"       # psql
    ARCHIVE = "archive"   # pg_restore


class RestoreState(str, Enum):
    PENDING = "pending"
    VALIDATING = "validating"
    CLEANING = "cleaning"
    APPLYING = "applying"
    COMMITTED = "committed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RestoreState.COMMITTED, RestoreState.FAILED)


_TRANSITIONS: dict[RestoreState, set[RestoreState]] = {
    RestoreState.PENDING: {RestoreState.VALIDATING, RestoreState.FAILED},
    RestoreState.VALIDATING: {
        RestoreState.CLEANING,
        RestoreState.APPLYING,
        RestoreState.FAILED,
    },
    RestoreState.CLEANING: {RestoreState.APPLYING, RestoreState.FAILED},
    RestoreState.APPLYING: {RestoreState.COMMITTED, RestoreState.FAILED},
    RestoreState.COMMITTED: set(),
    RestoreState.FAILED: set(),
}

# pg_restore object selection flags
_SELECTOR_FLAGS = {
    "schema": "--schema",
    "table": "--table",
    "index": "--index",
    "function": "--function",
    "trigger": "--trigger",
}


class ObjectSelector(BaseModel):
    """One object to include in a selective archive restore.

    Example:
        ObjectSelector(kind="table", name="orders").to_flag()
        # '--table=orders'
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["schema", "table", "index", "function", "trigger"]
    name: str

    def to_flag(self) -> str:
        return f"{_SELECTOR_FLAGS[self.kind]}={self.name}"


class RestoreRequest(BaseModel):
    """What to restore, where, and how.

    ``INTO_EXISTING`` without ``clean_first`` never deletes anything in the
    destination: objects already present fail to restore and are reported.
    """

    model_config = ConfigDict(frozen=True)

    artifact: BackupArtifact
    destination: str
    mode: RestoreMode = RestoreMode.INTO_EXISTING
    clean_first: bool = False
    stop_on_error: bool | None = None       # None -> default for the path
    jobs: int = Field(default=1, ge=1)
    objects: list[ObjectSelector] = Field(default_factory=list)
    single_transaction: bool = False
    path: RestorePath | None = None         # None -> chosen from artifact.format

    @property
    def restore_path(self) -> RestorePath:
        """Path implied by the artifact's recorded format."""
        return RestorePath.ARCHIVE if self.artifact.is_archive else RestorePath.PLAIN

    @property
    def effective_stop_on_error(self) -> bool:
        """Stop on first error unless told otherwise.

        Defaults: globals and all-database scripts stop (a partial globals
        restore leaves the cluster's authorization state inconsistent);
        single-transaction restores stop; everything else continues, as
        psql and pg_restore do.
        """
        if self.stop_on_error is not None:
            return self.stop_on_error
        if self.single_transaction:
            return True
        return self.artifact.is_cluster_level


class ObjectFailure(BaseModel):
    """An object (or statement) that failed to restore."""

    kind: str = ""
    name: str
    message: str = ""


class StatementError(BaseModel):
    """An ``ERROR:`` reported by psql while replaying a plain script."""

    line: int | None = None
    message: str


class ArchiveEntry(BaseModel):
    """One table-of-contents entry of an archive (``pg_restore --list``)."""

    dump_id: int
    kind: str
    namespace: str | None = None
    name: str
    owner: str = ""

    @property
    def qualified_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}.{self.name}"
        return self.name


@dataclass
class RestoreResult:
    """Outcome of one restore run.

    Attributes:
        request: The request that was run.
        state: Current (terminal after ``run()`` unless ``dry_run``) state.
        history: Every state visited, in order.
        commands: Tool command lines, in execution order.
        failed_objects: Every object that failed (never silently dropped).
        statement_errors: psql statement errors (plain path).
        diagnostics: Captured stderr of every tool run.
        error: The error that moved the restore to ``FAILED``.
        dry_run: True when commands were planned but not executed.
    """

    request: RestoreRequest
    state: RestoreState = RestoreState.PENDING
    history: list[RestoreState] = field(default_factory=lambda: [RestoreState.PENDING])
    commands: list[list[str]] = field(default_factory=list)
    failed_objects: list[ObjectFailure] = field(default_factory=list)
    statement_errors: list[StatementError] = field(default_factory=list)
    diagnostics: str = ""
    error: OrchestratorError | None = None
    dry_run: bool = False

    @property
    def committed(self) -> bool:
        return self.state is RestoreState.COMMITTED

    @property
    def failed(self) -> bool:
        return self.state is RestoreState.FAILED

    def advance(self, state: RestoreState) -> None:
        """Move to ``state``.

        Raises:
            RuntimeError: On a transition the state machine does not allow.
        """
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Invalid restore transition {self.state.value} -> {state.value}"
            )
        self.state = state
        self.history.append(state)

    def fail(self, error: OrchestratorError) -> None:
        """Record ``error`` and move to ``FAILED``."""
        self.error = error
        if self.state is not RestoreState.FAILED:
            self.advance(RestoreState.FAILED)

    def raise_for_state(self) -> None:
        """Raise the recorded error if the restore failed."""
        if self.state is RestoreState.FAILED and self.error is not None:
            raise self.error
