"""Backup models: scopes, formats, export plans and artifacts.

The planner turns a requested ``BackupScope`` + ``BackupFormat`` into an
``ExportPlan``; running the plan produces exactly one ``BackupArtifact``.

Usage:
    from pg_orchestrator.backup.models import BackupArtifact, BackupFormat, BackupScope

    artifact = BackupArtifact(
        scope=BackupScope.DATABASE,
        format=BackupFormat.CUSTOM,
        mode=ExportMode.LOGICAL_SINGLE,
        source_identity="inventory",
        path="backups/inventory-2026-01-15-0930.dump",
    )
    artifact.is_archive   # True
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

MANIFEST_VERSION = "1.0"
MANIFEST_SUFFIX = ".manifest.json"


class BackupScope(str, Enum):
    """What a backup covers."""

    DATABASE = "database"
    ALL_DATABASES = "all_databases"
    GLOBALS = "globals"
    CLUSTER = "cluster"


class BackupFormat(str, Enum):
    """Output format of the export tool."""

    PLAIN = "plain"
    CUSTOM = "custom"
    TAR = "tar"
    DIRECTORY = "directory"

    @property
    def is_archive(self) -> bool:
        return self is not BackupFormat.PLAIN


class Consistency(str, Enum):
    """Logical (statement) export or physical (file level) copy."""

    LOGICAL = "logical"
    PHYSICAL = "physical"


class ExportMode(str, Enum):
    """External export tool selected by the planner."""

    LOGICAL_SINGLE = "logical_single"   # pg_dump
    LOGICAL_ALL = "logical_all"         # pg_dumpall
    GLOBALS_ONLY = "globals_only"       # pg_dumpall --globals-only
    PHYSICAL_BASE = "physical_base"     # pg_basebackup

    @property
    def tool(self) -> str:
        return _MODE_TOOLS[self]


_MODE_TOOLS = {
    ExportMode.LOGICAL_SINGLE: "pg_dump",
    ExportMode.LOGICAL_ALL: "pg_dumpall",
    ExportMode.GLOBALS_ONLY: "pg_dumpall",
    ExportMode.PHYSICAL_BASE: "pg_basebackup",
}

# pg_dump -F / pg_basebackup -F letters
_FORMAT_FLAGS = {
    BackupFormat.PLAIN: "p",
    BackupFormat.CUSTOM: "c",
    BackupFormat.TAR: "t",
    BackupFormat.DIRECTORY: "d",
}


class ExportPlan(BaseModel):
    """A validated export decision.  Build with ``plan_backup()``."""

    model_config = ConfigDict(frozen=True)

    mode: ExportMode
    scope: BackupScope
    format: BackupFormat
    database: str | None = None
    include_create: bool = False
    jobs: int = 1

    @property
    def source_identity(self) -> str:
        """Database name for single-database plans, ``"all"`` otherwise."""
        return self.database if self.database else "all"

    @property
    def writes_directory(self) -> bool:
        """True when the tool's output is a directory rather than a file."""
        if self.mode is ExportMode.PHYSICAL_BASE:
            return True
        return self.format is BackupFormat.DIRECTORY

    def build_argv(self, output_path: str, connection_uri: str) -> list[str]:
        """Render the export command line.

        Args:
            output_path: File or directory the tool writes to.
            connection_uri: libpq URI without password (see
                ``ConnectionContext.libpq_uri``).

        Returns:
            argv list, tool name first.
        """
        argv = [self.mode.tool, "--no-password"]

        if self.mode is ExportMode.LOGICAL_SINGLE:
            argv += [f"--format={_FORMAT_FLAGS[self.format]}", f"--file={output_path}"]
            if self.include_create:
                argv.append("--create")
            if self.jobs > 1:
                argv.append(f"--jobs={self.jobs}")
            argv.append(f"--dbname={connection_uri}")
        elif self.mode is ExportMode.LOGICAL_ALL:
            argv += [f"--file={output_path}", f"--dbname={connection_uri}"]
        elif self.mode is ExportMode.GLOBALS_ONLY:
            argv += ["--globals-only", f"--file={output_path}", f"--dbname={connection_uri}"]
        else:
            # WAL streamed alongside the copy so the base backup is self-contained
            argv += [
                f"--pgdata={output_path}",
                f"--format={_FORMAT_FLAGS[self.format]}",
                "--wal-method=stream",
                "--checkpoint=fast",
                f"--dbname={connection_uri}",
            ]

        return argv


class BackupArtifact(BaseModel):
    """An immutable record of one written backup.

    Persisted as a JSON manifest beside the artifact.  Archive formats
    (``custom``, ``tar``, ``directory``) are restored through the
    archive-aware path; ``plain`` through statement replay.
    """

    model_config = ConfigDict(frozen=True)

    scope: BackupScope
    format: BackupFormat
    mode: ExportMode
    source_identity: str                # database name or "all"
    path: str
    include_create: bool = False        # plain dumps made with --create
    created_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    version: str = MANIFEST_VERSION

    @property
    def is_archive(self) -> bool:
        return self.format.is_archive

    @property
    def is_physical(self) -> bool:
        return self.mode is ExportMode.PHYSICAL_BASE

    @property
    def is_cluster_level(self) -> bool:
        """Globals and all-database dumps target the cluster, not one database."""
        return self.mode in (ExportMode.LOGICAL_ALL, ExportMode.GLOBALS_ONLY)

    @property
    def manifest_path(self) -> str:
        return self.path.rstrip("/") + MANIFEST_SUFFIX


class GlobalsSnapshot(BaseModel):
    """Cluster-wide roles and tablespaces captured by a globals-only export.

    Restore this before any database dump that references its roles or
    tablespaces.
    """

    model_config = ConfigDict(frozen=True)

    artifact: BackupArtifact
    roles: list[str] = Field(default_factory=list)
    tablespaces: list[str] = Field(default_factory=list)
