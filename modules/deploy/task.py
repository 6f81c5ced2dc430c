"""Deploy mod archives into a runtime's extension directory.

:class:`DeployModsTask` accumulates mod sources, keeps only archives carrying
an ``extension.json`` manifest, removes previously deployed archives that
declare the same logical name (whatever their filename), and places each mod
through the configured :class:`~modules.deploy.transform.ArchiveTransformer`.

Failures concerning a single archive are recorded on the returned
:class:`DeployReport` and never abort the run.  A missing extension directory
configuration is fatal.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from plugins import PLUGIN_MANAGER, PluginManager

from .exceptions import ConfigurationError
from .manifest import read_extension_name
from .sources import ModSourceSet
from .transform import ArchiveTransformer, active_transformer

ARCHIVE_SUFFIX = ".jar"
DEFAULT_ARCHIVE_NAME = "extension.jar"
MODS_DIRECTORY_NAME = "mods"


@dataclass(frozen=True)
class DeployedMod:
    """An archive placed into the extension directory."""

    name: str
    source: Path
    target: Path

    def as_dict(self) -> Dict[str, str]:
        return {"name": self.name, "source": str(self.source), "target": str(self.target)}


@dataclass(frozen=True)
class DeployFailure:
    """A per-archive failure.

    ``stage`` is ``inspect``, ``cleanup``, ``transform`` or ``hook`` (a plugin
    hook raised while the archive was being handled).
    """

    path: Path
    stage: str
    error: BaseException

    def as_dict(self) -> Dict[str, str]:
        return {"path": str(self.path), "stage": self.stage, "error": str(self.error)}


@dataclass
class DeployReport:
    """Outcome of a single :meth:`DeployModsTask.deploy` invocation."""

    mod_directory: Path
    deployed: List[DeployedMod] = field(default_factory=list)
    removed: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failures: List[DeployFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def as_dict(self) -> Dict[str, Any]:
        return {
            "mod_directory": str(self.mod_directory),
            "deployed": [item.as_dict() for item in self.deployed],
            "removed": [str(path) for path in self.removed],
            "skipped": [str(path) for path in self.skipped],
            "failures": [item.as_dict() for item in self.failures],
        }


class DeployModsTask:
    """Synchronise an extension directory with a set of mod archives."""

    def __init__(
        self,
        *,
        mod_directory: Optional[Path] = None,
        run_directory: Optional[Path] = None,
        base_directory: Optional[Path] = None,
        transformer: Optional[ArchiveTransformer] = None,
        logger: Optional[Callable[[str], None]] = None,
        plugin_manager: Optional[PluginManager] = None,
    ) -> None:
        self.mod_directory = Path(mod_directory) if mod_directory else None
        self.run_directory = Path(run_directory) if run_directory else None
        self.sources = ModSourceSet(base_directory)
        self.transformer = transformer
        self.logger = logger or print
        self.plugin_manager = plugin_manager or PLUGIN_MANAGER

    # ------------------------------------------------------------------
    # configuration API
    # ------------------------------------------------------------------
    def from_(self, *notations: Any) -> "DeployModsTask":
        """Add mod sources; see :func:`modules.deploy.sources.coerce_source`."""

        self.sources.add(*notations)
        return self

    add = from_

    def mod_paths(self) -> List[Path]:
        return self.sources.resolve()

    def resolve_mod_directory(self) -> Path:
        """Return the extension directory, falling back to ``<run dir>/mods``."""

        if self.mod_directory is not None:
            return self.mod_directory
        if self.run_directory is None:
            raise ConfigurationError("Unable to resolve the extension directory.")
        return self.run_directory / MODS_DIRECTORY_NAME

    # ------------------------------------------------------------------
    # deployment
    # ------------------------------------------------------------------
    def _collect_candidates(self, report: DeployReport) -> Tuple[List[Tuple[Path, str]], Set[str]]:
        candidates: List[Tuple[Path, str]] = []
        names: Set[str] = set()
        for path in self.mod_paths():
            if not path.exists():
                report.skipped.append(path)
                continue
            try:
                name = read_extension_name(path)
            except Exception as exc:
                self._record(report, path, "inspect", exc)
                continue
            if name is None:
                report.skipped.append(path)
                continue
            candidates.append((path, name))
            names.add(name)
        return candidates, names

    def _remove_stale(self, mod_directory: Path, names: Set[str], report: DeployReport) -> None:
        try:
            children = sorted(mod_directory.iterdir())
        except OSError:
            children = []
        for child in children:
            if not child.name.endswith(ARCHIVE_SUFFIX) or child.is_dir():
                continue
            try:
                name = read_extension_name(child)
                if name is None or name not in names:
                    continue
                child.unlink()
            except Exception as exc:
                self._record(report, child, "cleanup", exc)
                continue
            self.logger(f"Removed previous deployment {child} of '{name}'.")
            report.removed.append(child)
            self._notify(report, child, "on_mod_removed", child, name)

    def _place(self, source: Path, name: str, mod_directory: Path, transformer: ArchiveTransformer, report: DeployReport) -> None:
        target = mod_directory / (source.name or DEFAULT_ARCHIVE_NAME)
        try:
            target.unlink(missing_ok=True)
            self.logger(f"Copying target {target} from {source}")
            transformer.transform(source, target)
        except Exception as exc:
            self._record(report, source, "transform", exc)
            return
        deployed = DeployedMod(name=name, source=source, target=target)
        report.deployed.append(deployed)
        self._notify(report, source, "on_mod_deployed", deployed)

    def _notify(self, report: DeployReport, path: Path, hook: str, *args: Any) -> None:
        try:
            self.plugin_manager.broadcast(hook, *args)
        except Exception as exc:
            self._record(report, path, "hook", exc)

    def _record(self, report: DeployReport, path: Path, stage: str, error: BaseException) -> None:
        self.logger(f"Failed to {stage} {path}: {error}")
        report.failures.append(DeployFailure(path=path, stage=stage, error=error))

    def deploy(self) -> DeployReport:
        """Run the deployment once and return what happened."""

        mod_directory = self.resolve_mod_directory()
        transformer = self.transformer or active_transformer()
        report = DeployReport(mod_directory=mod_directory)

        candidates, names = self._collect_candidates(report)

        try:
            mod_directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass

        self._remove_stale(mod_directory, names, report)
        for source, name in candidates:
            self._place(source, name, mod_directory, transformer, report)

        self._notify(report, mod_directory, "on_deploy_finished", report)
        return report


def deploy_mods(
    *sources: Any,
    mod_directory: Optional[Path] = None,
    run_directory: Optional[Path] = None,
    transformer: Optional[ArchiveTransformer] = None,
    logger: Optional[Callable[[str], None]] = None,
) -> DeployReport:
    """Convenience wrapper building a :class:`DeployModsTask` and running it."""

    task = DeployModsTask(
        mod_directory=mod_directory,
        run_directory=run_directory,
        transformer=transformer,
        logger=logger,
    )
    return task.from_(*sources).deploy()


PLUGIN_MANAGER.expose("DeployModsTask", DeployModsTask)
PLUGIN_MANAGER.expose("DeployReport", DeployReport)
PLUGIN_MANAGER.expose("deploy_mods", deploy_mods)

__all__ = [
    "ARCHIVE_SUFFIX",
    "DEFAULT_ARCHIVE_NAME",
    "DeployedMod",
    "DeployFailure",
    "DeployReport",
    "DeployModsTask",
    "deploy_mods",
]
