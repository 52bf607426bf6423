"""External tool runner protocol definition.

Defines the ``ToolRunner`` Protocol every runner implements and the
``ToolResult`` it returns.  All methods are ``async def``.

Usage:
    from pg_orchestrator.engine.base import ToolRunner

    async def dump(runner: ToolRunner) -> None:
        result = await runner.run(["pg_dump", "--format=c", "--file=out.dump"])
        if not result.ok:
            print(result.stderr)
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one external tool invocation.

    ``returncode`` is negative when the process was killed by a signal.
    """

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def tool(self) -> str:
        return self.argv[0] if self.argv else ""


class ToolRunner(Protocol):
    """Interface for invoking PostgreSQL client tools.

    Implementations must never raise on a non-zero exit -- the caller
    decides what a failure means.  Cancelling the awaiting task must
    terminate the underlying process.
    """

    async def run(
        self,
        argv: list[str],
        env: dict[str, str] | None = None,
    ) -> ToolResult:
        """Run a tool to completion.

        Args:
            argv: Command line, tool name first.
            env: Full process environment (``None`` inherits the current one).

        Returns:
            ``ToolResult`` with exit code and captured output streams.

        Raises:
            FatalEngineError: If the tool binary cannot be started.
            asyncio.CancelledError: If the caller cancelled the run.
        """
        ...
