"""Backup planning, export and artifact manifests.

The planner turns (scope, format, consistency) into an ``ExportPlan``; the
runner executes it with pg_dump, pg_dumpall or pg_basebackup and records an
immutable ``BackupArtifact`` beside the output.

Usage:
    from pg_orchestrator.backup import BackupFormat, BackupScope, plan_backup
    from pg_orchestrator.backup import run_backup, run_globals_backup, validate_artifact
"""

from pg_orchestrator.backup.manifest import (
    load_artifact,
    sniff_format,
    validate_artifact,
    write_manifest,
)
from pg_orchestrator.backup.models import (
    BackupArtifact,
    BackupFormat,
    BackupScope,
    Consistency,
    ExportMode,
    ExportPlan,
    GlobalsSnapshot,
)
from pg_orchestrator.backup.planner import plan_backup
from pg_orchestrator.backup.runner import run_backup, run_globals_backup

__all__ = [
    "BackupScope",
    "BackupFormat",
    "Consistency",
    "ExportMode",
    "ExportPlan",
    "BackupArtifact",
    "GlobalsSnapshot",
    "plan_backup",
    "run_backup",
    "run_globals_backup",
    "write_manifest",
    "validate_artifact",
    "load_artifact",
    "sniff_format",
]
