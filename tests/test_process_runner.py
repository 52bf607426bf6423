"""Tests for SubprocessToolRunner launch failures."""

from pathlib import Path

import pytest

from pg_orchestrator.engine.process import SubprocessToolRunner
from pg_orchestrator.errors import FatalEngineError


class TestSubprocessToolRunner:
    """Verify tool resolution and launch errors."""

    def test_resolve_from_bin_dir(self, tmp_path: Path) -> None:
        runner = SubprocessToolRunner(bin_dir=str(tmp_path))
        assert runner.resolve("pg_dump") == str(tmp_path / "pg_dump")

    def test_resolve_from_path(self) -> None:
        assert SubprocessToolRunner().resolve("pg_dump") == "pg_dump"

    async def test_missing_binary_is_fatal(self, tmp_path: Path) -> None:
        runner = SubprocessToolRunner(bin_dir=str(tmp_path / "no-such-bin"))

        with pytest.raises(FatalEngineError, match="Could not start pg_restore"):
            await runner.run(["pg_restore", "--list", "inventory.dump"])
