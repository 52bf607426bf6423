"""PostgreSQL catalog inspection via pg_catalog.

This module queries the live server for what a backup needs to know:
- Databases (name, owner, encoding), excluding templates
- Roles (pg_authid -- readable by superusers only)
- Tablespaces (name, owner, on-disk location)
- Index access methods and their operator classes

Uses psycopg (v3) async connections.  Read-only: no statement mutates the
server.  A failure to connect or a missing privilege raises; an empty
catalog is returned as empty lists.
"""

import logging

import psycopg
from psycopg import AsyncConnection

from pg_orchestrator.catalog.models import (
    CatalogSnapshot,
    DatabaseInfo,
    RoleInfo,
    TablespaceInfo,
)
from pg_orchestrator.context import ConnectionContext
from pg_orchestrator.errors import (
    AuthorizationError,
    ConnectivityError,
    is_authorization_failure,
)

logger = logging.getLogger(__name__)


class CatalogInspector:
    """Inspects cluster-level catalogs of a PostgreSQL server.

    Usage:
        async with CatalogInspector(context) as inspector:
            names = [d.name for d in await inspector.list_databases()]
            snapshot = await inspector.snapshot()
    """

    def __init__(self, context: ConnectionContext, connect_timeout: int = 10):
        """Initialize with an explicit connection context.

        Args:
            context: Server and database to connect to.
            connect_timeout: Seconds before a connection attempt fails.
        """
        self._context = context
        self._connect_timeout = connect_timeout
        self._conn: AsyncConnection | None = None

    async def __aenter__(self) -> "CatalogInspector":
        """Open the connection (autocommit, read-only queries only)."""
        try:
            self._conn = await psycopg.AsyncConnection.connect(
                self._context.conninfo(),
                connect_timeout=self._connect_timeout,
                autocommit=True,
            )
        except psycopg.OperationalError as e:
            if is_authorization_failure(str(e)):
                raise AuthorizationError(
                    f"Authentication failed for {self._context.describe()}",
                    diagnostics=str(e),
                ) from e
            raise ConnectivityError(
                f"Cannot connect to {self._context.describe()}",
                diagnostics=str(e),
            ) from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close the connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def _fetch(self, query: str, params: tuple = ()) -> list[tuple]:
        """Run a read-only query and map driver errors to orchestrator errors."""
        if not self._conn:
            raise RuntimeError("Inspector not connected. Use async with statement.")

        try:
            async with self._conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.errors.InsufficientPrivilege as e:
            raise AuthorizationError(
                f"Insufficient privilege to read catalog: {e}",
                diagnostics=str(e),
            ) from e
        except psycopg.OperationalError as e:
            raise ConnectivityError(
                f"Lost connection while reading catalog: {e}",
                diagnostics=str(e),
            ) from e

    async def server_version(self) -> str:
        rows = await self._fetch("SHOW server_version")
        return rows[0][0] if rows else ""

    async def is_superuser(self) -> bool:
        """Whether the connected role can export globals and read pg_authid."""
        rows = await self._fetch(
            "SELECT rolsuper FROM pg_roles WHERE rolname = current_user"
        )
        return bool(rows and rows[0][0])

    async def list_databases(self) -> list[DatabaseInfo]:
        """List non-template databases, ordered by name."""
        rows = await self._fetch(
            """
            SELECT d.datname,
                   pg_get_userbyid(d.datdba),
                   pg_encoding_to_char(d.encoding)
            FROM pg_database d
            WHERE NOT d.datistemplate
            ORDER BY d.datname
            """
        )
        return [DatabaseInfo(name=r[0], owner=r[1], encoding=r[2]) for r in rows]

    async def database_exists(self, name: str) -> bool:
        rows = await self._fetch(
            "SELECT 1 FROM pg_database WHERE datname = %s", (name,)
        )
        return bool(rows)

    async def list_roles(self) -> list[RoleInfo]:
        """List roles from pg_authid.

        Raises:
            AuthorizationError: When the connected role is not a superuser.
                A non-superuser cannot enumerate all roles the way a globals
                export does -- that is never reported as an empty list.
        """
        rows = await self._fetch(
            """
            SELECT rolname, rolsuper, rolcanlogin
            FROM pg_authid
            WHERE rolname !~ '^pg_'
            ORDER BY rolname
            """
        )
        return [
            RoleInfo(name=r[0], is_superuser=r[1], can_login=r[2]) for r in rows
        ]

    async def list_tablespaces(self) -> list[TablespaceInfo]:
        rows = await self._fetch(
            """
            SELECT spcname,
                   pg_get_userbyid(spcowner),
                   pg_tablespace_location(oid)
            FROM pg_tablespace
            ORDER BY spcname
            """
        )
        return [
            TablespaceInfo(name=r[0], owner=r[1], location=r[2] or "") for r in rows
        ]

    async def list_operator_classes(self) -> dict[str, list[str]]:
        """Map each index access method to the operator classes it supports.

        Example:
            {"btree": ["int4_ops", "text_ops", ...], "gin": ["jsonb_ops", ...]}
        """
        rows = await self._fetch(
            """
            SELECT am.amname, opc.opcname
            FROM pg_opclass opc
            JOIN pg_am am ON am.oid = opc.opcmethod
            ORDER BY am.amname, opc.opcname
            """
        )
        result: dict[str, list[str]] = {}
        for method, opclass in rows:
            result.setdefault(method, []).append(opclass)
        return result

    async def snapshot(self, include_globals: bool = True) -> CatalogSnapshot:
        """Collect databases, globals and operator classes in one call.

        Args:
            include_globals: Read roles and tablespaces as well.  Pass
                ``False`` when connecting as a non-superuser.

        Raises:
            AuthorizationError: If ``include_globals`` and the role is not
                a superuser.
        """
        snapshot = CatalogSnapshot(
            server_version=await self.server_version(),
            is_superuser=await self.is_superuser(),
            databases=await self.list_databases(),
            operator_classes=await self.list_operator_classes(),
            globals_included=include_globals,
        )

        if include_globals:
            snapshot.roles = await self.list_roles()
            snapshot.tablespaces = await self.list_tablespaces()

        logger.debug(
            "Catalog snapshot: %d databases, %d roles, %d tablespaces",
            len(snapshot.databases),
            len(snapshot.roles),
            len(snapshot.tablespaces),
        )
        return snapshot
