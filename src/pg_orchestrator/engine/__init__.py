"""External tool runners.

Provides the ``ToolRunner`` Protocol and the asyncio subprocess runner
used to invoke pg_dump, pg_dumpall, pg_basebackup, psql, pg_restore,
createdb and dropdb.

Usage:
    from pg_orchestrator.engine import SubprocessToolRunner, ToolResult, ToolRunner
"""

from pg_orchestrator.engine.base import ToolResult, ToolRunner
from pg_orchestrator.engine.process import SubprocessToolRunner

__all__ = [
    "ToolRunner",
    "ToolResult",
    "SubprocessToolRunner",
]
