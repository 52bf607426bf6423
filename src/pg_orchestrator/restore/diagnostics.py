"""Parse psql and pg_restore output into per-statement and per-object failures.

Pure logic -- text in, models out.

psql (plain replay) reports errors as::

    psql:/backups/globals.sql:14: ERROR:  role "app" already exists

pg_restore (archive restore) names the TOC entry before each error::

    pg_restore: from TOC entry 215; 1259 16386 TABLE users postgres
    pg_restore: error: could not execute query: ERROR:  relation "users" already exists

and ``pg_restore --list`` prints one entry per line::

    215; 1259 16386 TABLE public users postgres
"""

import re

from pg_orchestrator.restore.models import ArchiveEntry, ObjectFailure, StatementError

_PSQL_ERROR = re.compile(
    r"^psql:(?P<file>.+?):(?P<line>\d+): ERROR:\s+(?P<message>.+)$",
    re.MULTILINE,
)

_TOC_ENTRY = re.compile(
    r"TOC entry (?P<dump_id>\d+); (?P<tableoid>\d+) (?P<oid>\d+) (?P<rest>.+)$"
)

_LIST_ENTRY = re.compile(
    r"^(?P<dump_id>\d+); (?P<tableoid>\d+) (?P<oid>\d+) (?P<rest>.+)$"
)

_ERROR_MESSAGE = re.compile(r"ERROR:\s+(?P<message>.+)$")

# First quoted identifier in a server message: kind "name" ...
_QUOTED_OBJECT = re.compile(r'^(?P<kind>[a-z ]+?) "(?P<name>[^"]+)"')

# TOC entry descriptions, longest first so multi-word kinds win
_ENTRY_KINDS = sorted(
    [
        "ACL",
        "AGGREGATE",
        "BLOB",
        "BLOBS",
        "CAST",
        "CHECK CONSTRAINT",
        "COLLATION",
        "COMMENT",
        "CONSTRAINT",
        "CONVERSION",
        "DATABASE",
        "DATABASE PROPERTIES",
        "DEFAULT",
        "DEFAULT ACL",
        "DOMAIN",
        "ENCODING",
        "EVENT TRIGGER",
        "EXTENSION",
        "FK CONSTRAINT",
        "FOREIGN DATA WRAPPER",
        "FOREIGN TABLE",
        "FUNCTION",
        "INDEX",
        "INDEX ATTACH",
        "LARGE OBJECT",
        "MATERIALIZED VIEW",
        "MATERIALIZED VIEW DATA",
        "OPERATOR",
        "OPERATOR CLASS",
        "OPERATOR FAMILY",
        "POLICY",
        "PROCEDURAL LANGUAGE",
        "PROCEDURE",
        "PUBLICATION",
        "PUBLICATION TABLE",
        "RULE",
        "SCHEMA",
        "SEARCHPATH",
        "SEQUENCE",
        "SEQUENCE OWNED BY",
        "SEQUENCE SET",
        "SERVER",
        "STATISTICS",
        "STDSTRINGS",
        "SUBSCRIPTION",
        "TABLE",
        "TABLE ATTACH",
        "TABLE DATA",
        "TEXT SEARCH CONFIGURATION",
        "TEXT SEARCH DICTIONARY",
        "TRANSFORM",
        "TRIGGER",
        "TYPE",
        "USER MAPPING",
        "VIEW",
    ],
    key=len,
    reverse=True,
)


def _split_kind(rest: str) -> tuple[str, str]:
    """Split ``"TABLE DATA public users postgres"`` into kind and remainder."""
    for kind in _ENTRY_KINDS:
        if rest == kind:
            return kind, ""
        if rest.startswith(kind + " "):
            return kind, rest[len(kind) + 1:]
    head, _, tail = rest.partition(" ")
    return head, tail


def object_from_message(message: str) -> tuple[str, str] | None:
    """Extract ``(kind, name)`` from a server error message.

    Example:
        >>> object_from_message('role "app" already exists')
        ('role', 'app')
    """
    match = _QUOTED_OBJECT.match(message)
    if match is None:
        return None
    return match.group("kind"), match.group("name")


def parse_psql_errors(stderr: str) -> list[StatementError]:
    """Collect every ``psql:<file>:<line>: ERROR:`` line, in order."""
    return [
        StatementError(line=int(m.group("line")), message=m.group("message").strip())
        for m in _PSQL_ERROR.finditer(stderr)
    ]


def failures_from_statements(errors: list[StatementError]) -> list[ObjectFailure]:
    """Turn psql statement errors into object failures.

    The object is taken from the message when it names one; otherwise the
    statement's line number identifies it.
    """
    failures: list[ObjectFailure] = []
    for err in errors:
        found = object_from_message(err.message)
        if found is not None:
            kind, name = found
        else:
            kind, name = "statement", f"line {err.line}"
        failures.append(ObjectFailure(kind=kind, name=name, message=err.message))
    return failures


def parse_restore_failures(stderr: str) -> list[ObjectFailure]:
    """Collect one ``ObjectFailure`` per ``ERROR:`` in pg_restore output.

    Each error is attributed to the most recent ``TOC entry`` line.  Errors
    raised before any TOC entry fall back to the object named in the
    message.
    """
    failures: list[ObjectFailure] = []
    current: tuple[str, str] | None = None

    for line in stderr.splitlines():
        entry = _TOC_ENTRY.search(line)
        if entry is not None:
            kind, remainder = _split_kind(entry.group("rest").strip())
            tokens = remainder.split()
            # "<tag ...> <owner>": the owner is always the last token
            name = " ".join(tokens[:-1]) if len(tokens) > 1 else remainder
            current = (kind, name)
            continue

        error = _ERROR_MESSAGE.search(line)
        if error is None:
            continue

        message = error.group("message").strip()
        if current is not None:
            kind, name = current
        else:
            found = object_from_message(message)
            kind, name = found if found is not None else ("", message)
        failures.append(ObjectFailure(kind=kind, name=name, message=message))

    return failures


def parse_toc_listing(stdout: str) -> list[ArchiveEntry]:
    """Parse ``pg_restore --list`` output.  Comment lines (``;``) are skipped."""
    entries: list[ArchiveEntry] = []

    for line in stdout.splitlines():
        line = line.strip()
        if not line or line.startswith(";"):
            continue
        match = _LIST_ENTRY.match(line)
        if match is None:
            continue

        kind, remainder = _split_kind(match.group("rest").strip())
        tokens = remainder.split()
        if len(tokens) < 3:
            # Entries without namespace/owner, e.g. "ENCODING - ENCODING"
            namespace = None
            name = tokens[-1] if tokens else kind
            owner = ""
        else:
            namespace = None if tokens[0] == "-" else tokens[0]
            name = " ".join(tokens[1:-1])
            owner = tokens[-1]

        entries.append(
            ArchiveEntry(
                dump_id=int(match.group("dump_id")),
                kind=kind,
                namespace=namespace,
                name=name,
                owner=owner,
            )
        )

    return entries
