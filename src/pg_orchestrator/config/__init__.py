"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from pg_orchestrator.config import load_config, DatabaseProfile, OrchestratorConfig
"""

from pg_orchestrator.config.loader import load_config
from pg_orchestrator.config.models import (
    BackupSettings,
    DatabaseProfile,
    OrchestratorConfig,
    ToolSettings,
)

__all__ = [
    "load_config",
    "OrchestratorConfig",
    "DatabaseProfile",
    "ToolSettings",
    "BackupSettings",
]
