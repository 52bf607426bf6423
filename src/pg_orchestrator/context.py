"""Explicit connection context passed to every component call.

Replaces the implicit "current database" of interactive CLI sessions: each
inspector, backup and restore call receives a ``ConnectionContext`` naming
the server and database it acts on.

Usage:
    from pg_orchestrator.context import ConnectionContext

    ctx = ConnectionContext.from_url("postgresql://admin:secret@db:5432/postgres")
    ctx.for_database("inventory").libpq_uri()
    # 'postgresql://admin@db:5432/inventory'
    ctx.tool_env()["PGPASSWORD"]
    # 'secret'
"""

import os
from dataclasses import dataclass

from sqlalchemy.engine import URL, make_url


@dataclass(frozen=True)
class ConnectionContext:
    """Server URL, target database and maintenance database for one call.

    Attributes:
        url: Parsed connection URL (password included).
        profile_name: Profile the context was built from, if any.
        maintenance_db: Database used for cluster-level commands
            (``CREATE DATABASE``, globals restore).
    """

    url: URL
    profile_name: str | None = None
    maintenance_db: str = "postgres"

    @classmethod
    def from_url(
        cls,
        database_url: str,
        profile_name: str | None = None,
        maintenance_db: str = "postgres",
    ) -> "ConnectionContext":
        """Build a context from a ``postgres://``/``postgresql[+driver]://`` URL."""
        url = database_url
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        parsed = make_url(url).set(drivername="postgresql")
        return cls(url=parsed, profile_name=profile_name, maintenance_db=maintenance_db)

    @property
    def database(self) -> str:
        return self.url.database or self.maintenance_db

    def for_database(self, database: str) -> "ConnectionContext":
        """Return a copy of this context pointed at another database."""
        return ConnectionContext(
            url=self.url.set(database=database),
            profile_name=self.profile_name,
            maintenance_db=self.maintenance_db,
        )

    def maintenance(self) -> "ConnectionContext":
        """Return a copy pointed at the maintenance database."""
        return self.for_database(self.maintenance_db)

    def libpq_uri(self) -> str:
        """Connection URI for command-line tools, without the password.

        ``URL.set(password=None)`` leaves the password in place, so the URL
        is rebuilt without it.
        """
        u = self.url
        bare = URL.create(
            u.drivername,
            username=u.username,
            host=u.host,
            port=u.port,
            database=u.database,
            query=u.query,
        )
        return bare.render_as_string(hide_password=False)

    def conninfo(self) -> str:
        """Connection URI for psycopg, password included."""
        return self.url.render_as_string(hide_password=False)

    def tool_env(self) -> dict[str, str]:
        """Environment for external tools; the password travels in PGPASSWORD."""
        env = dict(os.environ)
        if self.url.password:
            env["PGPASSWORD"] = str(self.url.password)
        return env

    def describe(self) -> str:
        """Password-free label for logs and console output."""
        return self.url.render_as_string(hide_password=True)
