"""Tests for the backup planner and export command rendering.

Verifies the (scope, format, consistency) decision table, rejection of
unsupported combinations (never a silent downgrade), and the argv each
plan renders.
"""

import pytest

from pg_orchestrator.backup.models import (
    BackupFormat,
    BackupScope,
    Consistency,
    ExportMode,
)
from pg_orchestrator.backup.planner import plan_backup
from pg_orchestrator.errors import ConfigurationError


# ============================================================================
# Test: single database
# ============================================================================


class TestSingleDatabase:
    """Verify database scope maps to pg_dump in every format."""

    @pytest.mark.parametrize("fmt", list(BackupFormat))
    def test_every_format_uses_pg_dump(self, fmt: BackupFormat) -> None:
        plan = plan_backup(BackupScope.DATABASE, fmt, database="inventory")
        assert plan.mode is ExportMode.LOGICAL_SINGLE
        assert plan.mode.tool == "pg_dump"
        assert plan.format is fmt
        assert plan.source_identity == "inventory"

    def test_requires_database_name(self) -> None:
        with pytest.raises(ConfigurationError, match="database name"):
            plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM)

    def test_include_create_kept_for_plain(self) -> None:
        plan = plan_backup(
            BackupScope.DATABASE, BackupFormat.PLAIN, database="inventory", include_create=True
        )
        assert plan.include_create is True

    def test_include_create_dropped_for_archives(self) -> None:
        """Archives carry creation metadata regardless; --create is not baked in."""
        plan = plan_backup(
            BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory", include_create=True
        )
        assert plan.include_create is False

    def test_parallel_jobs_directory_only(self) -> None:
        plan = plan_backup(
            BackupScope.DATABASE, BackupFormat.DIRECTORY, database="inventory", jobs=4
        )
        assert plan.jobs == 4

    @pytest.mark.parametrize("fmt", [BackupFormat.PLAIN, BackupFormat.CUSTOM, BackupFormat.TAR])
    def test_parallel_jobs_rejected_for_other_formats(self, fmt: BackupFormat) -> None:
        with pytest.raises(ConfigurationError, match="Parallel export"):
            plan_backup(BackupScope.DATABASE, fmt, database="inventory", jobs=2)

    def test_jobs_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError, match="jobs"):
            plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory", jobs=0)

    def test_physical_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="physical"):
            plan_backup(
                BackupScope.DATABASE,
                BackupFormat.PLAIN,
                database="inventory",
                consistency=Consistency.PHYSICAL,
            )


# ============================================================================
# Test: cluster-level scopes
# ============================================================================


class TestClusterScopes:
    """Verify all-databases, globals and cluster plans."""

    def test_all_databases_plain(self) -> None:
        plan = plan_backup(BackupScope.ALL_DATABASES, BackupFormat.PLAIN)
        assert plan.mode is ExportMode.LOGICAL_ALL
        assert plan.mode.tool == "pg_dumpall"
        assert plan.include_create is True
        assert plan.source_identity == "all"

    @pytest.mark.parametrize(
        "fmt", [BackupFormat.CUSTOM, BackupFormat.TAR, BackupFormat.DIRECTORY]
    )
    def test_all_databases_rejects_archive_formats(self, fmt: BackupFormat) -> None:
        """Never silently downgraded to plain."""
        with pytest.raises(ConfigurationError, match="plain format only"):
            plan_backup(BackupScope.ALL_DATABASES, fmt)

    def test_globals_plain(self) -> None:
        plan = plan_backup(BackupScope.GLOBALS, BackupFormat.PLAIN)
        assert plan.mode is ExportMode.GLOBALS_ONLY

    def test_globals_rejects_custom(self) -> None:
        with pytest.raises(ConfigurationError):
            plan_backup(BackupScope.GLOBALS, BackupFormat.CUSTOM)

    def test_cluster_defaults_to_physical(self) -> None:
        plan = plan_backup(BackupScope.CLUSTER, BackupFormat.TAR)
        assert plan.mode is ExportMode.PHYSICAL_BASE
        assert plan.mode.tool == "pg_basebackup"
        assert plan.writes_directory is True

    def test_cluster_physical_rejects_custom(self) -> None:
        with pytest.raises(ConfigurationError, match="plain or tar"):
            plan_backup(BackupScope.CLUSTER, BackupFormat.CUSTOM)

    def test_cluster_logical_uses_pg_dumpall(self) -> None:
        plan = plan_backup(
            BackupScope.CLUSTER, BackupFormat.PLAIN, consistency=Consistency.LOGICAL
        )
        assert plan.mode is ExportMode.LOGICAL_ALL

    def test_cluster_logical_rejects_tar(self) -> None:
        with pytest.raises(ConfigurationError):
            plan_backup(BackupScope.CLUSTER, BackupFormat.TAR, consistency=Consistency.LOGICAL)

    def test_jobs_rejected_for_cluster_level(self) -> None:
        with pytest.raises(ConfigurationError, match="Parallel export"):
            plan_backup(BackupScope.ALL_DATABASES, BackupFormat.PLAIN, jobs=2)


# ============================================================================
# Test: build_argv()
# ============================================================================


class TestBuildArgv:
    """Verify rendered command lines."""

    URI = "postgresql://admin@db:5432/inventory"

    def test_pg_dump_custom(self) -> None:
        plan = plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory")
        argv = plan.build_argv("/b/inventory.dump", self.URI)
        assert argv == [
            "pg_dump",
            "--no-password",
            "--format=c",
            "--file=/b/inventory.dump",
            f"--dbname={self.URI}",
        ]

    def test_pg_dump_plain_with_create(self) -> None:
        plan = plan_backup(
            BackupScope.DATABASE, BackupFormat.PLAIN, database="inventory", include_create=True
        )
        argv = plan.build_argv("/b/inventory.sql", self.URI)
        assert "--format=p" in argv
        assert "--create" in argv

    def test_pg_dump_directory_jobs(self) -> None:
        plan = plan_backup(
            BackupScope.DATABASE, BackupFormat.DIRECTORY, database="inventory", jobs=3
        )
        argv = plan.build_argv("/b/inventory", self.URI)
        assert "--format=d" in argv
        assert "--jobs=3" in argv

    def test_globals_only(self) -> None:
        plan = plan_backup(BackupScope.GLOBALS, BackupFormat.PLAIN)
        argv = plan.build_argv("/b/globals.sql", self.URI)
        assert argv[0] == "pg_dumpall"
        assert "--globals-only" in argv

    def test_pg_dumpall_has_no_format_flag(self) -> None:
        plan = plan_backup(BackupScope.ALL_DATABASES, BackupFormat.PLAIN)
        argv = plan.build_argv("/b/all.sql", self.URI)
        assert argv[0] == "pg_dumpall"
        assert not any(a.startswith("--format") for a in argv)
        assert "--globals-only" not in argv

    def test_basebackup_streams_wal(self) -> None:
        plan = plan_backup(BackupScope.CLUSTER, BackupFormat.TAR)
        argv = plan.build_argv("/b/base", self.URI)
        assert argv[0] == "pg_basebackup"
        assert "--pgdata=/b/base" in argv
        assert "--format=t" in argv
        assert "--wal-method=stream" in argv

    def test_password_never_on_command_line(self) -> None:
        plan = plan_backup(BackupScope.DATABASE, BackupFormat.CUSTOM, database="inventory")
        argv = plan.build_argv("/b/x.dump", self.URI)
        assert "--no-password" in argv
        assert not any("secret" in a for a in argv)
