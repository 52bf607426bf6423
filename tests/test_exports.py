"""Tests for package exports and public API.

Verifies that every ``__init__.py`` defines ``__all__`` and that each
listed name is importable.
"""

import importlib

import pytest

PACKAGES = [
    "pg_orchestrator",
    "pg_orchestrator.backup",
    "pg_orchestrator.catalog",
    "pg_orchestrator.config",
    "pg_orchestrator.engine",
    "pg_orchestrator.restore",
]


class TestExports:
    """Tests for ``__all__`` in each package."""

    def test_version_defined(self) -> None:
        import pg_orchestrator

        assert pg_orchestrator.__version__ == "0.1.0"

    @pytest.mark.parametrize("package", PACKAGES)
    def test_all_names_are_importable(self, package: str) -> None:
        module = importlib.import_module(package)
        assert isinstance(module.__all__, list)
        for name in module.__all__:
            assert hasattr(module, name), f"'{name}' is in {package}.__all__ but missing"

    def test_top_level_convenience_imports(self) -> None:
        from pg_orchestrator import (
            BackupScope,
            RestoreExecutor,
            SubprocessToolRunner,
            plan_backup,
        )

        assert callable(plan_backup)
        assert isinstance(RestoreExecutor, type)
        assert isinstance(SubprocessToolRunner, type)
        assert BackupScope("globals") is BackupScope.GLOBALS

    def test_cli_entry_point(self) -> None:
        from pg_orchestrator.cli import main

        assert callable(main)
