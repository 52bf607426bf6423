"""Configuration loader for pg-orchestrator.toml."""

import tomllib
from pathlib import Path

from pg_orchestrator.config.models import (
    BackupSettings,
    DatabaseProfile,
    OrchestratorConfig,
    ToolSettings,
)

CONFIG_FILENAME = "pg-orchestrator.toml"


def load_config(config_path: Path | None = None) -> OrchestratorConfig:
    """Load orchestrator configuration from TOML file.

    Args:
        config_path: Path to the config file
            (default: ``Path.cwd() / "pg-orchestrator.toml"``)

    Returns:
        OrchestratorConfig with all profiles, tool and backup settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If a section has invalid values
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"Orchestrator config not found: {config_path}\n"
            f"Create {CONFIG_FILENAME} with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    return OrchestratorConfig(
        profiles=profiles,
        tools=ToolSettings(**data.get("tools", {})),
        backup=BackupSettings(**data.get("backup", {})),
    )
