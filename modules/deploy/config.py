"""Configuration helpers for mod deployment."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, List, Mapping, MutableMapping, Optional

from .exceptions import ConfigurationError
from .remapper import DEFAULT_EXTENSIONS, DEFAULT_RESOURCE_REMAPPERS, RemapSettings, RemappingTransformer
from .task import DeployModsTask
from .transform import ArchiveTransformer, TRANSFORMERS

DEFAULT_CONFIG_FILE = Path.home() / ".starplane" / "deploy.json"
TRANSFORM_CHOICES = ("copy", "remap")


def _split_paths(value: str) -> List[Path]:
    return [Path(p).expanduser().resolve() for p in value.split(os.pathsep) if p]


def _optional_path(value: Any) -> Optional[Path]:
    return Path(str(value)).expanduser().resolve() if value else None


@dataclass(slots=True)
class DeployConfig:
    """Describes where mods come from, where they go and how they are placed."""

    mods: List[Path] = field(default_factory=list)
    mod_directory: Optional[Path] = None
    run_directory: Optional[Path] = None
    transform: str = "copy"
    mappings: Optional[Path] = None
    source_namespace: str = "intermediary"
    target_namespace: str = "named"
    remapper_classpath: List[Path] = field(default_factory=list)
    library_classpath: List[Path] = field(default_factory=list)
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    resource_remappers: List[str] = field(default_factory=lambda: list(DEFAULT_RESOURCE_REMAPPERS))
    access_widener_remappers: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.transform not in TRANSFORM_CHOICES:
            raise ConfigurationError(
                f"Unknown transform '{self.transform}'; expected one of {', '.join(TRANSFORM_CHOICES)}."
            )

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DeployConfig":
        env = env if env is not None else os.environ
        return cls(
            mods=_split_paths(env.get("STARPLANE_MODS", "")),
            mod_directory=_optional_path(env.get("STARPLANE_MOD_DIRECTORY")),
            run_directory=_optional_path(env.get("STARPLANE_RUN_DIRECTORY")),
            transform=env.get("STARPLANE_TRANSFORM", "copy") or "copy",
            mappings=_optional_path(env.get("STARPLANE_MAPPINGS")),
            remapper_classpath=_split_paths(env.get("STARPLANE_REMAPPER_CLASSPATH", "")),
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DeployConfig":
        def paths(key: str) -> List[Path]:
            return [Path(str(p)).expanduser().resolve() for p in data.get(key, []) or []]

        config = cls(
            mods=paths("mods"),
            mod_directory=_optional_path(data.get("mod_directory")),
            run_directory=_optional_path(data.get("run_directory")),
            transform=str(data.get("transform", "copy")),
            mappings=_optional_path(data.get("mappings")),
            source_namespace=str(data.get("source_namespace", "intermediary")),
            target_namespace=str(data.get("target_namespace", "named")),
            remapper_classpath=paths("remapper_classpath"),
            library_classpath=paths("library_classpath"),
        )
        if "extensions" in data:
            config.extensions = [str(name) for name in data["extensions"] or []]
        if "resource_remappers" in data:
            config.resource_remappers = [str(name) for name in data["resource_remappers"] or []]
        if "access_widener_remappers" in data:
            config.access_widener_remappers = [str(name) for name in data["access_widener_remappers"] or []]
        return config

    def to_mapping(self) -> MutableMapping[str, object]:
        return {
            "mods": [str(p) for p in self.mods],
            "mod_directory": str(self.mod_directory) if self.mod_directory else None,
            "run_directory": str(self.run_directory) if self.run_directory else None,
            "transform": self.transform,
            "mappings": str(self.mappings) if self.mappings else None,
            "source_namespace": self.source_namespace,
            "target_namespace": self.target_namespace,
            "remapper_classpath": [str(p) for p in self.remapper_classpath],
            "library_classpath": [str(p) for p in self.library_classpath],
            "extensions": list(self.extensions),
            "resource_remappers": list(self.resource_remappers),
            "access_widener_remappers": list(self.access_widener_remappers),
        }

    def dump(self, destination: Path | None = None) -> None:
        destination = destination or DEFAULT_CONFIG_FILE
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(json.dumps(self.to_mapping(), indent=2), encoding="utf8")

    @classmethod
    def load(cls, source: Path | None = None) -> "DeployConfig":
        """Load a JSON or YAML configuration file."""

        source = source or DEFAULT_CONFIG_FILE
        if not source.exists():
            raise ConfigurationError(f"Configuration file not found: {source}")
        try:
            text = source.read_text(encoding="utf8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"Unable to read configuration file '{source}': {exc}") from exc
        if source.suffix.lower() in {".yaml", ".yml"}:
            try:
                import yaml  # type: ignore
            except ImportError as exc:  # pragma: no cover - declared dependency
                raise ConfigurationError("PyYAML is required to load YAML configuration files.") from exc
            try:
                data = yaml.safe_load(text) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Invalid YAML in '{source}': {exc}") from exc
        else:
            try:
                data = json.loads(text)
            except json.JSONDecodeError as exc:
                raise ConfigurationError(f"Invalid JSON in '{source}': {exc}") from exc
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Configuration root in '{source}' must be a mapping.")
        return cls.from_mapping(data)

    def remap_settings(self) -> RemapSettings:
        if self.mappings is None:
            raise ConfigurationError("The remap transform requires a mappings file.")
        return RemapSettings(
            mappings=self.mappings,
            source_namespace=self.source_namespace,
            target_namespace=self.target_namespace,
            remapper_classpath=tuple(self.remapper_classpath),
            library_classpath=tuple(self.library_classpath),
            extensions=tuple(self.extensions),
            resource_remappers=tuple(self.resource_remappers),
            access_widener_remappers=tuple(self.access_widener_remappers),
        )

    def build_transformer(self) -> ArchiveTransformer:
        if self.transform == "remap":
            return RemappingTransformer(self.remap_settings())
        return TRANSFORMERS.get(self.transform)

    def build_task(
        self,
        *,
        extra_sources: Iterable[Any] = (),
        logger: Optional[Callable[[str], None]] = None,
    ) -> DeployModsTask:
        task = DeployModsTask(
            mod_directory=self.mod_directory,
            run_directory=self.run_directory,
            transformer=self.build_transformer(),
            logger=logger,
        )
        task.from_(*self.mods, *extra_sources)
        return task


__all__ = ["DEFAULT_CONFIG_FILE", "DeployConfig"]
