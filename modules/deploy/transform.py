"""Archive transforms used to place a mod into the extension directory.

A transform receives the source archive and the destination path and writes
the deployable archive.  The plain copy is the default; the remapping copy in
:mod:`modules.deploy.remapper` registers itself under ``"remap"`` when it is
configured.  Transformers are managed the same way as the JVM backends so
plugins can register their own.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
import shutil
from threading import RLock
from typing import Dict, Iterable, Optional

from plugins import PLUGIN_MANAGER

from .exceptions import ConfigurationError, TransformError


class ArchiveTransformer(ABC):
    """Writes ``target`` from ``source``."""

    name: str

    @abstractmethod
    def transform(self, source: Path, target: Path) -> None:
        """Produce ``target`` from ``source``; raise :class:`TransformError` on failure."""


class CopyTransformer(ArchiveTransformer):
    """Byte-for-byte copy replacing any existing file."""

    name = "copy"

    def transform(self, source: Path, target: Path) -> None:
        try:
            shutil.copyfile(source, target)
        except OSError as exc:
            raise TransformError(f"Unable to copy '{source}' to '{target}': {exc}") from exc


class TransformerManager:
    """Thread-safe registry of archive transformers."""

    def __init__(self) -> None:
        self._transformers: Dict[str, ArchiveTransformer] = {}
        self._active_name: Optional[str] = None
        self._lock = RLock()

    def register(self, transformer: ArchiveTransformer, *, activate: bool = False) -> None:
        with self._lock:
            self._transformers[transformer.name] = transformer
            if activate or self._active_name is None:
                self._active_name = transformer.name

    def available(self) -> Iterable[str]:
        with self._lock:
            return tuple(sorted(self._transformers))

    def get(self, name: Optional[str] = None) -> ArchiveTransformer:
        with self._lock:
            target = name or self._active_name
            if target is None or target not in self._transformers:
                raise ConfigurationError(f"Unknown archive transformer '{target}'.")
            return self._transformers[target]

    def activate(self, name: str) -> ArchiveTransformer:
        with self._lock:
            transformer = self.get(name)
            self._active_name = name
            return transformer


TRANSFORMERS = TransformerManager()


def register_transformer(transformer: ArchiveTransformer, *, activate: bool = False) -> None:
    """Register ``transformer`` with the global manager."""

    TRANSFORMERS.register(transformer, activate=activate)


def use_transformer(name: str) -> ArchiveTransformer:
    """Activate and return the transformer identified by ``name``."""

    return TRANSFORMERS.activate(name)


def active_transformer() -> ArchiveTransformer:
    return TRANSFORMERS.get()


register_transformer(CopyTransformer(), activate=True)

PLUGIN_MANAGER.expose("archive_transformers", TRANSFORMERS)
PLUGIN_MANAGER.expose("register_transformer", register_transformer)

__all__ = [
    "ArchiveTransformer",
    "CopyTransformer",
    "TransformerManager",
    "TRANSFORMERS",
    "register_transformer",
    "use_transformer",
    "active_transformer",
]
