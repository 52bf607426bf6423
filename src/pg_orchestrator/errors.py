"""Error taxonomy for backup and restore operations.

Every failure raised by the orchestrator derives from ``OrchestratorError``
and carries the diagnostic stream captured from the external tool (when
there is one).  None of these errors is retried automatically.

Usage:
    from pg_orchestrator.errors import ConfigurationError, PartialFailureError

    try:
        plan = plan_backup(BackupScope.ALL_DATABASES, BackupFormat.CUSTOM)
    except ConfigurationError as e:
        print(e)
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pg_orchestrator.restore.models import ObjectFailure


class OrchestratorError(Exception):
    """Base class for all orchestrator failures."""

    def __init__(self, message: str, diagnostics: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.diagnostics = diagnostics


class ProfileNotFoundError(OrchestratorError):
    """Raised when no database profile is configured or the name is unknown."""


class ConnectivityError(OrchestratorError):
    """Raised when the catalog or an external tool cannot reach the server."""


class AuthorizationError(OrchestratorError):
    """Raised when the connected role lacks the privilege an operation needs."""


class ConfigurationError(OrchestratorError):
    """Raised for invalid option combinations. Caught before any destructive step."""


class FormatMismatchError(OrchestratorError):
    """Raised when an artifact's format does not match the chosen restore path."""


class FatalEngineError(OrchestratorError):
    """Raised when an external tool crashed or failed unrecoverably."""


class PartialFailureError(OrchestratorError):
    """Raised when some objects were restored and others were not.

    ``failed_objects`` lists every object that failed; nothing is dropped.
    """

    def __init__(
        self,
        message: str,
        failed_objects: list[ObjectFailure],
        diagnostics: str = "",
    ) -> None:
        super().__init__(message, diagnostics)
        self.failed_objects = failed_objects

    @property
    def object_names(self) -> list[str]:
        return [f.name for f in self.failed_objects]


# ------------------------------------------------------------------
# Diagnostic classification
# ------------------------------------------------------------------

_CONNECTIVITY_PATTERNS = re.compile(
    r"could not connect to server"
    r"|connection to server .* failed"
    r"|connection refused"
    r"|could not translate host name"
    r"|no route to host"
    r"|timeout expired"
    r"|server closed the connection unexpectedly",
    re.IGNORECASE,
)

_AUTHORIZATION_PATTERNS = re.compile(
    r"permission denied"
    r"|must be superuser"
    r"|must be owner of"
    r"|password authentication failed"
    r"|no pg_hba\.conf entry"
    r"|role .* is not permitted to log in",
    re.IGNORECASE,
)


def classify_tool_failure(
    tool: str,
    returncode: int,
    stderr: str,
) -> OrchestratorError:
    """Map a failed tool invocation to the matching error type.

    Args:
        tool: Name of the external tool (for the message).
        returncode: Process exit code.  Negative values mean the process
            was killed by a signal.
        stderr: Captured diagnostic stream.

    Returns:
        ``ConnectivityError``, ``AuthorizationError`` or ``FatalEngineError``.
    """
    if returncode < 0:
        return FatalEngineError(
            f"{tool} terminated by signal {-returncode}", diagnostics=stderr
        )
    if _CONNECTIVITY_PATTERNS.search(stderr):
        return ConnectivityError(
            f"{tool} could not reach the database server", diagnostics=stderr
        )
    if _AUTHORIZATION_PATTERNS.search(stderr):
        return AuthorizationError(
            f"{tool} failed: insufficient privilege", diagnostics=stderr
        )
    return FatalEngineError(
        f"{tool} exited with status {returncode}", diagnostics=stderr
    )


def is_authorization_failure(text: str) -> bool:
    """True when a diagnostic message reports a missing privilege or bad credentials."""
    return _AUTHORIZATION_PATTERNS.search(text) is not None
