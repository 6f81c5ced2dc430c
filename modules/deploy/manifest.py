"""Read the ``extension.json`` manifest embedded in mod archives.

A mod archive is any zip container carrying an ``extension.json`` entry at
its root.  Only the ``name`` field is required; it is the logical name used
to replace older deployments of the same mod regardless of their filename.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any, Dict, Optional
import zipfile

from plugins import PLUGIN_MANAGER

from .exceptions import ManifestError

EXTENSION_MANIFEST_NAME = "extension.json"


@dataclass(frozen=True)
class ExtensionManifest:
    """Parsed ``extension.json`` payload."""

    name: str
    data: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def version(self) -> Optional[str]:
        value = self.data.get("version")
        return str(value) if value is not None else None


def _parse_manifest(raw: bytes, archive: Path) -> ExtensionManifest:
    try:
        payload = json.loads(raw.decode("utf8"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise ManifestError(f"Malformed {EXTENSION_MANIFEST_NAME} in '{archive}': {exc}") from exc
    if not isinstance(payload, dict):
        raise ManifestError(f"{EXTENSION_MANIFEST_NAME} in '{archive}' must contain a JSON object.")
    name = payload.get("name")
    if not isinstance(name, str):
        raise ManifestError(f"{EXTENSION_MANIFEST_NAME} in '{archive}' lacks a string 'name' field.")
    return ExtensionManifest(name=name, data=payload)


def read_extension_manifest(path: Path | str) -> Optional[ExtensionManifest]:
    """Return the manifest of the archive at ``path`` or ``None`` when absent.

    Entries are scanned in stored order and the first one named exactly
    ``extension.json`` wins; the manifest does not need to be the first entry.
    """

    archive_path = Path(path)
    try:
        with zipfile.ZipFile(archive_path) as archive:
            for entry in archive.infolist():
                if entry.filename != EXTENSION_MANIFEST_NAME:
                    continue
                return _parse_manifest(archive.read(entry), archive_path)
    except ManifestError:
        raise
    except zipfile.BadZipFile as exc:
        raise ManifestError(f"'{archive_path}' is not a zip archive.") from exc
    except (OSError, EOFError, RuntimeError, zipfile.LargeZipFile) as exc:
        # encrypted or unsupported entries surface as RuntimeError subclasses
        raise ManifestError(f"Unable to read '{archive_path}': {exc}") from exc
    return None


def read_extension_name(path: Path | str) -> Optional[str]:
    """Return the logical extension name declared by the archive at ``path``."""

    manifest = read_extension_manifest(path)
    return manifest.name if manifest is not None else None


PLUGIN_MANAGER.expose("read_extension_manifest", read_extension_manifest)
PLUGIN_MANAGER.expose("read_extension_name", read_extension_name)

__all__ = [
    "EXTENSION_MANIFEST_NAME",
    "ExtensionManifest",
    "read_extension_manifest",
    "read_extension_name",
]
