"""Global plugin infrastructure for starplane-deploy.

A single :class:`PluginManager` instance is shared by the whole repository.
Deployment modules expose their public API through
:func:`PLUGIN_MANAGER.expose` and announce progress through
:func:`PLUGIN_MANAGER.broadcast` so plugins can observe or extend a deploy
without patching the core implementation.

Plugins are plain modules providing a ``setup_plugin(manager, exposed)``
callable.  The returned object may implement any of the hooks emitted by
``modules.deploy.task``::

    on_mod_removed(path, name)
    on_mod_deployed(deployed)
    on_deploy_finished(report)
"""
from __future__ import annotations

from dataclasses import dataclass
from importlib import import_module
from importlib.util import find_spec
from pathlib import Path
import pkgutil
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple


class PluginError(RuntimeError):
    """Raised whenever a plugin cannot be registered or executed."""


@dataclass
class PluginRecord:
    """Simple data container describing a registered plugin."""

    name: str
    module: str
    obj: Any


class PluginManager:
    """Co-ordinates plugin registration and access to repository internals."""

    def __init__(self) -> None:
        self._plugins: Dict[str, PluginRecord] = {}
        self._exposed: Dict[str, Any] = {}

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    @property
    def exposed(self) -> MappingProxyType:
        """Immutable view of the currently exposed repository objects."""

        return MappingProxyType(self._exposed)

    @property
    def plugins(self) -> MappingProxyType:
        """Immutable view of the registered plugins."""

        return MappingProxyType(self._plugins)

    def expose(self, name: str, obj: Any) -> None:
        """Expose an object to the plugin context under ``name``.

        Existing entries are overwritten so modules can refresh the exposed
        object when their own state changes.
        """

        if not name:
            raise PluginError("Exposed names must be non-empty strings.")
        self._exposed[name] = obj

    def expose_module(self, module_name: str, alias: Optional[str] = None) -> None:
        """Expose all public attributes of ``module_name`` under ``alias``."""

        module = import_module(module_name)
        export: Dict[str, Any] = {
            key: getattr(module, key)
            for key in dir(module)
            if not key.startswith("_")
        }
        self.expose(alias or module_name, MappingProxyType(export))

    def register_plugin(self, module_name: str, attr: str = "setup_plugin") -> PluginRecord:
        """Import ``module_name`` and run its setup function.

        The callable receives the manager and the mapping of exposed objects
        and returns the plugin object whose hooks are broadcast to.
        """

        if module_name in self._plugins:
            raise PluginError(f"Plugin '{module_name}' is already registered.")

        module = import_module(module_name)
        try:
            factory = getattr(module, attr)
        except AttributeError as exc:
            raise PluginError(
                f"Plugin '{module_name}' does not provide a '{attr}' callable."
            ) from exc

        if not callable(factory):
            raise PluginError(
                f"Plugin '{module_name}.{attr}' must be callable, got {type(factory)!r}."
            )

        instance = factory(self, self.exposed)
        record = PluginRecord(
            name=getattr(instance, "name", module_name),
            module=module_name,
            obj=instance,
        )
        self._plugins[module_name] = record
        return record

    def unregister_plugin(self, module_name: str) -> None:
        self._plugins.pop(module_name, None)

    def broadcast(self, hook: str, *args: Any, **kwargs: Any) -> Dict[str, Any]:
        """Invoke ``hook`` on all registered plugins and collect responses."""

        responses: Dict[str, Any] = {}
        for name, record in self._plugins.items():
            target = getattr(record.obj, hook, None)
            if target is None:
                continue
            if not callable(target):
                raise PluginError(
                    f"Hook '{hook}' on plugin '{name}' is not callable (got {type(target)!r})."
                )
            responses[name] = target(*args, **kwargs)
        return responses

    def ensure(self, required: Iterable[str]) -> None:
        """Validate that all ``required`` plugins have been registered."""

        missing = [name for name in required if name not in self._plugins]
        if missing:
            raise PluginError(
                "Missing required plugin(s): " + ", ".join(sorted(missing))
            )

    def auto_discover(
        self,
        package: str,
        *,
        attr: str = "setup_plugin",
        match: Optional[Callable[[str], bool]] = None,
    ) -> Dict[str, PluginRecord]:
        """Register every plugin module found below the importable ``package``."""

        search_paths = self._package_search_paths(package)
        matcher = match or self._default_auto_discover_match
        discovered: Dict[str, PluginRecord] = {}
        failures: List[Tuple[str, Exception]] = []
        for module_name in self._walk_modules(search_paths, package):
            if not matcher(module_name):
                continue
            try:
                discovered[module_name] = self.register_plugin(module_name, attr=attr)
            except PluginError as exc:
                failures.append((module_name, exc))
        if failures:
            reasons = "\n".join(f"- {name}: {error}" for name, error in failures)
            raise PluginError(
                "Failed to auto discover plugin modules:\n" + reasons
            )
        return discovered

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _default_auto_discover_match(module_name: str) -> bool:
        base = module_name.rsplit(".", 1)[-1].lower()
        return base.startswith("plugin_") or base.endswith("plugin")

    @staticmethod
    def _package_search_paths(package: str) -> Sequence[str]:
        spec = find_spec(package)
        if spec is None or not spec.submodule_search_locations:
            raise PluginError(f"Plugin package '{package}' cannot be imported.")
        return [str(Path(location)) for location in spec.submodule_search_locations]

    @staticmethod
    def _walk_modules(search_paths: Sequence[str], package_name: str) -> Iterator[str]:
        for module_info in pkgutil.walk_packages(search_paths, package_name + "."):
            yield module_info.name


# Expose the global plugin manager instance immediately for general use.
PLUGIN_MANAGER = PluginManager()

PLUGIN_MANAGER.expose("auto_discover_plugins", PLUGIN_MANAGER.auto_discover)

__all__ = ["PLUGIN_MANAGER", "PluginManager", "PluginError", "PluginRecord"]
