"""Catalog inspection: databases, globals and operator classes.

Usage:
    from pg_orchestrator.catalog import CatalogInspector, CatalogSnapshot
"""

from pg_orchestrator.catalog.inspector import CatalogInspector
from pg_orchestrator.catalog.models import (
    CatalogSnapshot,
    DatabaseInfo,
    InspectionResult,
    RoleInfo,
    TablespaceInfo,
)

__all__ = [
    "CatalogInspector",
    "CatalogSnapshot",
    "DatabaseInfo",
    "RoleInfo",
    "TablespaceInfo",
    "InspectionResult",
]
