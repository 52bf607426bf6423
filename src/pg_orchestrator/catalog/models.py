"""Pydantic models for catalog inspection results."""

from pydantic import BaseModel, Field


# ============================================================================
# Catalog Objects
# ============================================================================


class DatabaseInfo(BaseModel):
    """A non-template database in the cluster."""

    name: str
    owner: str = ""
    encoding: str = ""


class RoleInfo(BaseModel):
    """A cluster-wide role (from pg_authid)."""

    name: str
    is_superuser: bool = False
    can_login: bool = False


class TablespaceInfo(BaseModel):
    """A tablespace definition.  ``location`` is empty for built-in tablespaces."""

    name: str
    owner: str = ""
    location: str = ""


class CatalogSnapshot(BaseModel):
    """Everything the planner needs to decide what to back up."""

    server_version: str = ""
    is_superuser: bool = False
    databases: list[DatabaseInfo] = Field(default_factory=list)
    roles: list[RoleInfo] = Field(default_factory=list)
    tablespaces: list[TablespaceInfo] = Field(default_factory=list)
    operator_classes: dict[str, list[str]] = Field(default_factory=dict)
    globals_included: bool = True

    @property
    def database_names(self) -> list[str]:
        return [d.name for d in self.databases]

    @property
    def role_names(self) -> list[str]:
        return [r.name for r in self.roles]

    @property
    def tablespace_names(self) -> list[str]:
        return [t.name for t in self.tablespaces]


# ============================================================================
# Inspection Result
# ============================================================================


class InspectionResult(BaseModel):
    """Result of connect_and_inspect()."""

    success: bool
    profile_name: str | None = None
    snapshot: CatalogSnapshot | None = None
    error: str | None = None
    error_type: str | None = None
