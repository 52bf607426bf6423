"""Pydantic models for orchestrator configuration."""

from pydantic import BaseModel, Field

from pg_orchestrator.backup.models import BackupFormat


class DatabaseProfile(BaseModel):
    """Database connection profile from pg-orchestrator.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class ToolSettings(BaseModel):
    """Location of the PostgreSQL client binaries."""

    bin_dir: str | None = None  # None -> resolve from PATH


class BackupSettings(BaseModel):
    """Defaults applied to backup and restore commands."""

    directory: str = "backups"
    default_format: BackupFormat = BackupFormat.CUSTOM
    jobs: int = Field(default=1, ge=1)
    maintenance_db: str = "postgres"


class OrchestratorConfig(BaseModel):
    """Complete configuration from pg-orchestrator.toml."""

    profiles: dict[str, DatabaseProfile]
    tools: ToolSettings = Field(default_factory=ToolSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
