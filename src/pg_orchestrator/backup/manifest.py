"""Artifact manifests: write, load and validate.

Each artifact has a JSON manifest beside it (``<artifact>.manifest.json``)
recording its scope, format and export mode.  The restore executor relies
on the recorded format to pick its path, so a manifest is required for
every restore.

This module is **sync** -- it only touches local files.
"""

import json
from pathlib import Path

from pydantic import ValidationError

from pg_orchestrator.backup.models import (
    MANIFEST_SUFFIX,
    MANIFEST_VERSION,
    BackupArtifact,
    BackupFormat,
    ExportMode,
)
from pg_orchestrator.errors import ConfigurationError


def manifest_path_for(path: str | Path) -> Path:
    """Return the manifest path for an artifact (or the path itself if it is one)."""
    text = str(path).rstrip("/")
    if text.endswith(MANIFEST_SUFFIX):
        return Path(text)
    return Path(text + MANIFEST_SUFFIX)


def write_manifest(artifact: BackupArtifact) -> Path:
    """Write the artifact's manifest and return its path."""
    path = Path(artifact.manifest_path)
    with open(path, "w") as f:
        json.dump(artifact.model_dump(mode="json"), f, indent=2)
    return path


def validate_artifact(path: str | Path) -> dict:
    """Validate an artifact manifest and the artifact it describes.

    Checks that the manifest is well-formed JSON with the required fields,
    uses version ``"1.0"``, parses as a ``BackupArtifact``, and that the
    artifact exists with the shape its format implies (directory for
    ``directory`` format and physical backups, regular file otherwise).

    Args:
        path: Artifact path or manifest path.

    Returns:
        Dict with ``valid`` (bool), ``errors`` (list[str]),
        and ``warnings`` (list[str]).

    Example:
        report = validate_artifact("backups/inventory-2026-01-15-093000.dump")
        if report["errors"]:
            raise ValueError("Artifact is invalid")
    """
    errors: list[str] = []
    warnings: list[str] = []
    manifest = manifest_path_for(path)

    try:
        with open(manifest, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        errors.append(f"Manifest not found: {manifest}")
        return {"valid": False, "errors": errors, "warnings": warnings}
    except json.JSONDecodeError as e:
        errors.append(f"Invalid JSON: {e}")
        return {"valid": False, "errors": errors, "warnings": warnings}

    if not isinstance(data, dict):
        errors.append("Manifest must be a JSON object")
        return {"valid": False, "errors": errors, "warnings": warnings}

    for key in ("scope", "format", "mode", "source_identity", "path"):
        if key not in data:
            errors.append(f"Missing required key: {key}")

    if errors:
        return {"valid": False, "errors": errors, "warnings": warnings}

    if "created_at" not in data:
        warnings.append("Missing metadata field: created_at")

    version = data.get("version")
    if version != MANIFEST_VERSION:
        errors.append(
            f"Unsupported manifest version '{version}' (expected '{MANIFEST_VERSION}')"
        )

    try:
        artifact = BackupArtifact(**data)
    except ValidationError as e:
        errors.append(f"Invalid manifest fields: {e.error_count()} error(s)")
        return {"valid": False, "errors": errors, "warnings": warnings}

    artifact_path = Path(artifact.path)
    expects_dir = (
        artifact.mode is ExportMode.PHYSICAL_BASE
        or artifact.format is BackupFormat.DIRECTORY
    )
    if not artifact_path.exists():
        errors.append(f"Artifact not found: {artifact_path}")
    elif expects_dir and not artifact_path.is_dir():
        errors.append(f"{artifact.format.value} artifact must be a directory: {artifact_path}")
    elif not expects_dir and not artifact_path.is_file():
        errors.append(f"{artifact.format.value} artifact must be a file: {artifact_path}")

    if artifact.mode is ExportMode.PHYSICAL_BASE:
        warnings.append(
            "Physical base backup: restore by replacing the data directory, "
            "not through the restore executor"
        )

    valid = len(errors) == 0
    return {"valid": valid, "errors": errors, "warnings": warnings}


def load_artifact(path: str | Path) -> BackupArtifact:
    """Load and validate an artifact manifest.

    Raises:
        ConfigurationError: If the manifest or artifact is invalid.
    """
    report = validate_artifact(path)
    if report["errors"]:
        raise ConfigurationError(
            f"Invalid backup artifact: {'; '.join(report['errors'])}"
        )

    with open(manifest_path_for(path), "r") as f:
        return BackupArtifact(**json.load(f))


def sniff_format(path: str | Path) -> BackupFormat | None:
    """Detect a logical dump's format from its contents.

    Custom-format archives start with ``PGDMP``; tar archives carry the
    ``ustar`` magic at offset 257; directory archives contain ``toc.dat``.
    Any other regular file is treated as a plain script.

    Returns:
        The detected format, or ``None`` if the path does not exist.
    """
    p = Path(path)
    if p.is_dir():
        return BackupFormat.DIRECTORY if (p / "toc.dat").exists() else None
    if not p.is_file():
        return None

    with open(p, "rb") as f:
        header = f.read(512)

    if header.startswith(b"PGDMP"):
        return BackupFormat.CUSTOM
    if header[257:262] == b"ustar":
        return BackupFormat.TAR
    return BackupFormat.PLAIN
