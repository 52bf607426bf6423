"""Async subprocess implementation of the ``ToolRunner`` protocol.

Usage:
    from pg_orchestrator.engine.process import SubprocessToolRunner

    runner = SubprocessToolRunner(bin_dir="/usr/lib/postgresql/16/bin")
    result = await runner.run(["pg_restore", "--list", "inventory.dump"])
"""

import asyncio
import logging
from pathlib import Path

from pg_orchestrator.engine.base import ToolResult
from pg_orchestrator.errors import FatalEngineError

logger = logging.getLogger(__name__)


class SubprocessToolRunner:
    """Runs PostgreSQL client tools with ``asyncio.create_subprocess_exec``.

    Args:
        bin_dir: Optional directory holding the client binaries.  When
            ``None``, tool names are resolved from ``PATH``.
    """

    def __init__(self, bin_dir: str | None = None) -> None:
        self._bin_dir = Path(bin_dir) if bin_dir else None

    def resolve(self, tool: str) -> str:
        """Return the executable path for a tool name."""
        if self._bin_dir is None:
            return tool
        return str(self._bin_dir / tool)

    async def run(
        self,
        argv: list[str],
        env: dict[str, str] | None = None,
    ) -> ToolResult:
        """Run a tool and capture stdout/stderr.

        On cancellation the process is killed and reaped before the
        ``CancelledError`` propagates.  No partial state is reconciled.
        """
        executable = self.resolve(argv[0])
        logger.debug("Running %s", " ".join(argv))

        try:
            process = await asyncio.create_subprocess_exec(
                executable,
                *argv[1:],
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise FatalEngineError(f"Could not start {argv[0]} ({executable}): {e}") from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            logger.warning("Cancelled: terminating %s (pid %s)", argv[0], process.pid)
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        result = ToolResult(
            argv=list(argv),
            returncode=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if not result.ok:
            logger.debug("%s exited with %s", argv[0], result.returncode)
        return result
