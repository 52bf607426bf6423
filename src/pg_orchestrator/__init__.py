"""pg-orchestrator: PostgreSQL backup and restore orchestration.

Plans and runs logical and physical exports through the server's own
client tools, records each artifact with a manifest, and restores logical
artifacts through a validated state machine that reports every object
that failed.

Usage:
    from pg_orchestrator import get_context, get_runner, CatalogInspector
    from pg_orchestrator import plan_backup, run_backup, BackupScope, BackupFormat
    from pg_orchestrator import RestoreExecutor, RestoreRequest, RestoreMode
"""

__version__ = "0.1.0"

# Backup
from pg_orchestrator.backup.manifest import load_artifact, validate_artifact
from pg_orchestrator.backup.models import (
    BackupArtifact,
    BackupFormat,
    BackupScope,
    Consistency,
    ExportPlan,
    GlobalsSnapshot,
)
from pg_orchestrator.backup.planner import plan_backup
from pg_orchestrator.backup.runner import run_backup, run_globals_backup

# Catalog
from pg_orchestrator.catalog.inspector import CatalogInspector
from pg_orchestrator.catalog.models import CatalogSnapshot

# Config
from pg_orchestrator.config.loader import load_config
from pg_orchestrator.config.models import DatabaseProfile, OrchestratorConfig

# Context / engine
from pg_orchestrator.context import ConnectionContext
from pg_orchestrator.engine.base import ToolResult, ToolRunner
from pg_orchestrator.engine.process import SubprocessToolRunner

# Errors
from pg_orchestrator.errors import (
    AuthorizationError,
    ConfigurationError,
    ConnectivityError,
    FatalEngineError,
    FormatMismatchError,
    OrchestratorError,
    PartialFailureError,
    ProfileNotFoundError,
)

# Factory
from pg_orchestrator.factory import (
    connect_and_inspect,
    get_context,
    get_runner,
    resolve_url,
)

# Restore
from pg_orchestrator.restore.executor import RestoreExecutor, list_archive
from pg_orchestrator.restore.models import (
    ObjectSelector,
    RestoreMode,
    RestoreRequest,
    RestoreResult,
    RestoreState,
)

__all__ = [
    # Backup
    "BackupScope",
    "BackupFormat",
    "Consistency",
    "ExportPlan",
    "BackupArtifact",
    "GlobalsSnapshot",
    "plan_backup",
    "run_backup",
    "run_globals_backup",
    "validate_artifact",
    "load_artifact",
    # Catalog
    "CatalogInspector",
    "CatalogSnapshot",
    # Config
    "load_config",
    "DatabaseProfile",
    "OrchestratorConfig",
    # Context / engine
    "ConnectionContext",
    "ToolRunner",
    "ToolResult",
    "SubprocessToolRunner",
    # Errors
    "OrchestratorError",
    "ProfileNotFoundError",
    "ConnectivityError",
    "AuthorizationError",
    "ConfigurationError",
    "FormatMismatchError",
    "PartialFailureError",
    "FatalEngineError",
    # Factory
    "get_context",
    "get_runner",
    "connect_and_inspect",
    "resolve_url",
    # Restore
    "RestoreExecutor",
    "RestoreRequest",
    "RestoreResult",
    "RestoreMode",
    "RestoreState",
    "ObjectSelector",
    "list_archive",
]
