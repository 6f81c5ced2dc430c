"""Mod source references and their resolution to archive paths.

Deploy tasks accept heterogeneous references to the mods they should ship:
build components, published artifacts, archive tasks, dependency sets, or
plain paths.  Each kind is wrapped in a :class:`ModSource` variant exposing a
single :meth:`ModSource.resolve` capability; :class:`ModSourceSet`
accumulates them and flattens everything into an ordered, de-duplicated list
of absolute paths.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
import os
from pathlib import Path
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from plugins import PLUGIN_MANAGER

from .exceptions import SourceError


def _to_path(value: Any, base_directory: Path) -> Path:
    if callable(value):
        value = value()
    path = Path(os.fspath(value)).expanduser()
    if not path.is_absolute():
        path = base_directory / path
    return path.resolve()


class ModSource(ABC):
    """A reference to one or more mod archives."""

    kind: str = "source"

    @abstractmethod
    def resolve(self, base_directory: Path) -> List[Path]:
        """Return the archive paths referenced by this source, in order."""

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"{type(self).__name__}({self.target!r})"

    @property
    @abstractmethod
    def target(self) -> Any:
        """The wrapped reference."""


class PathSource(ModSource):
    """A literal path; relative paths resolve against the base directory."""

    kind = "path"

    def __init__(self, value: str | os.PathLike[str]) -> None:
        self._value = value

    @property
    def target(self) -> Any:
        return self._value

    def resolve(self, base_directory: Path) -> List[Path]:
        return [_to_path(self._value, base_directory)]


class ArtifactSource(ModSource):
    """A publishable artifact exposing its ``file``."""

    kind = "artifact"

    def __init__(self, artifact: Any) -> None:
        self._artifact = artifact

    @property
    def target(self) -> Any:
        return self._artifact

    def resolve(self, base_directory: Path) -> List[Path]:
        return [_to_path(self._artifact.file, base_directory)]


class ComponentSource(ModSource):
    """A buildable component; every artifact of every usage context counts."""

    kind = "component"

    def __init__(self, component: Any) -> None:
        self._component = component

    @property
    def target(self) -> Any:
        return self._component

    def resolve(self, base_directory: Path) -> List[Path]:
        paths: List[Path] = []
        for context in self._component.usage_contexts or ():
            if context is None:
                continue
            for artifact in context.artifacts or ():
                if artifact is None:
                    continue
                paths.append(_to_path(artifact.file, base_directory))
        return paths


class ArchiveTaskSource(ModSource):
    """An archive producing task; resolves to its declared output file."""

    kind = "archive_task"

    def __init__(self, task: Any) -> None:
        self._task = task

    @property
    def target(self) -> Any:
        return self._task

    def resolve(self, base_directory: Path) -> List[Path]:
        return [_to_path(self._task.archive_file, base_directory)]


class DependencySetSource(ModSource):
    """A resolvable dependency set; resolves to every file it yields."""

    kind = "dependency_set"

    def __init__(self, dependencies: Any) -> None:
        self._dependencies = dependencies

    @property
    def target(self) -> Any:
        return self._dependencies

    def resolve(self, base_directory: Path) -> List[Path]:
        return [_to_path(entry, base_directory) for entry in self._dependencies.resolve()]


def coerce_source(notation: Any) -> ModSource:
    """Classify ``notation`` into the matching :class:`ModSource` variant."""

    if isinstance(notation, ModSource):
        return notation
    if isinstance(notation, (str, os.PathLike)):
        return PathSource(notation)
    if hasattr(notation, "usage_contexts"):
        return ComponentSource(notation)
    if hasattr(notation, "archive_file"):
        return ArchiveTaskSource(notation)
    if hasattr(notation, "file"):
        return ArtifactSource(notation)
    if callable(getattr(notation, "resolve", None)):
        return DependencySetSource(notation)
    raise SourceError(f"Cannot interpret {notation!r} as a mod source.")


class ModSourceSet:
    """Ordered accumulator of mod sources."""

    def __init__(self, base_directory: Optional[Path] = None) -> None:
        self.base_directory = Path(base_directory) if base_directory else Path.cwd()
        self._sources: List[ModSource] = []

    def add(self, *notations: Any) -> "ModSourceSet":
        for notation in notations:
            self._sources.append(coerce_source(notation))
        return self

    def __iter__(self) -> Iterator[ModSource]:
        return iter(self._sources)

    def __len__(self) -> int:
        return len(self._sources)

    def task_dependencies(self) -> Tuple[Any, ...]:
        """Archive tasks that must run before the sources can be deployed."""

        return tuple(source.target for source in self._sources if isinstance(source, ArchiveTaskSource))

    def resolve(self) -> List[Path]:
        """Flatten every source into unique absolute paths, first occurrence wins."""

        resolved: Iterable[Path] = (
            path for source in self._sources for path in source.resolve(self.base_directory)
        )
        return list(dict.fromkeys(resolved))


PLUGIN_MANAGER.expose("ModSourceSet", ModSourceSet)
PLUGIN_MANAGER.expose("coerce_mod_source", coerce_source)

__all__ = [
    "ModSource",
    "PathSource",
    "ArtifactSource",
    "ComponentSource",
    "ArchiveTaskSource",
    "DependencySetSource",
    "ModSourceSet",
    "coerce_source",
]
