"""Restore execution for logical backup artifacts.

Usage:
    from pg_orchestrator.restore import RestoreExecutor, RestoreMode, RestoreRequest
    from pg_orchestrator.restore import list_archive
"""

from pg_orchestrator.restore.executor import RestoreExecutor, list_archive
from pg_orchestrator.restore.models import (
    ArchiveEntry,
    ObjectFailure,
    ObjectSelector,
    RestoreMode,
    RestorePath,
    RestoreRequest,
    RestoreResult,
    RestoreState,
    StatementError,
)

__all__ = [
    "RestoreExecutor",
    "list_archive",
    "RestoreMode",
    "RestorePath",
    "RestoreState",
    "RestoreRequest",
    "RestoreResult",
    "ObjectSelector",
    "ObjectFailure",
    "StatementError",
    "ArchiveEntry",
]
