"""Pluggable bridge between Python and the JVM hosting the class remapper.

Remapping copies drive a Java remapping library, so the deploy layer needs a
running JVM with the remapper jars on its classpath.  All JVM access goes
through a small backend object implementing :class:`JavaIntegrationBackend`;
the :class:`JavaBackendManager` keeps track of the available implementations
so tests and plugins can swap in their own bridge.

JPype is the default backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from importlib.util import find_spec
import os
from pathlib import Path
from threading import RLock
from typing import Any, Dict, Iterable, Optional, Sequence

from plugins import PLUGIN_MANAGER

from .exceptions import JavaBridgeError

__all__ = [
    "JavaIntegrationBackend",
    "JavaBackendManager",
    "JAVA_BACKENDS",
    "register_backend",
    "use_backend",
    "active_backend",
    "available_backends",
]


class JavaIntegrationBackend(ABC):
    """Abstract base class for JVM bridge implementations."""

    name: str

    @abstractmethod
    def ensure_bridge(self) -> None:
        """Ensure the Python bridge package is available."""

    @abstractmethod
    def is_bridge_available(self) -> bool:
        """Return ``True`` when the bridge runtime can be imported."""

    @abstractmethod
    def start_vm(self, classpath_entries: Sequence[Path]) -> None:
        """Start or attach to the JVM."""

    @abstractmethod
    def is_vm_running(self) -> bool:
        """Return ``True`` if the underlying JVM is active."""

    @abstractmethod
    def shutdown_vm(self) -> None:
        """Attempt to stop the underlying JVM if supported."""

    @abstractmethod
    def jclass(self, name: str) -> Any:
        """Return the Java class handle for ``name``."""

    @abstractmethod
    def create_array(self, component_name: str, values: Sequence[Any]) -> Any:
        """Return a Java array for the given component class and ``values``."""

    @abstractmethod
    def java_path(self, path: Path) -> Any:
        """Return a ``java.nio.file.Path`` for ``path``."""


class JavaBackendManager:
    """Thread-safe registry for JVM integration backends."""

    def __init__(self) -> None:
        self._backends: Dict[str, JavaIntegrationBackend] = {}
        self._active_name: Optional[str] = None
        self._lock = RLock()

    def register(self, backend: JavaIntegrationBackend, *, activate: bool = False) -> None:
        with self._lock:
            self._backends[backend.name] = backend
            if activate or self._active_name is None:
                self._active_name = backend.name

    def available(self) -> Iterable[str]:
        with self._lock:
            return tuple(sorted(self._backends))

    def get(self, name: Optional[str] = None) -> JavaIntegrationBackend:
        with self._lock:
            target = name or self._active_name
            if target is None or target not in self._backends:
                raise JavaBridgeError("No JVM integration backend has been registered.")
            return self._backends[target]

    def activate(self, name: str) -> JavaIntegrationBackend:
        with self._lock:
            if name not in self._backends:
                raise KeyError(name)
            self._active_name = name
            return self._backends[name]

    def active_name(self) -> str:
        with self._lock:
            return self.get().name


JAVA_BACKENDS = JavaBackendManager()


def register_backend(backend: JavaIntegrationBackend, *, activate: bool = False) -> None:
    """Register ``backend`` with the global manager."""

    JAVA_BACKENDS.register(backend, activate=activate)


def use_backend(name: str) -> JavaIntegrationBackend:
    """Activate and return the backend identified by ``name``."""

    backend = JAVA_BACKENDS.activate(name)
    PLUGIN_MANAGER.expose("java_backend_active", backend.name)
    return backend


def active_backend() -> JavaIntegrationBackend:
    """Return the currently active backend."""

    return JAVA_BACKENDS.get()


def available_backends() -> Iterable[str]:
    """Expose the registered backend names."""

    return JAVA_BACKENDS.available()


# -- JPype backend -----------------------------------------------------------


class _JPypeBackend(JavaIntegrationBackend):
    name = "jpype"

    def ensure_bridge(self) -> None:
        if not self.is_bridge_available():
            raise JavaBridgeError("JPype1 is required for remapping copies; install it with pip.")

    def is_bridge_available(self) -> bool:
        return find_spec("jpype") is not None

    def start_vm(self, classpath_entries: Sequence[Path]) -> None:
        import jpype

        classpath = [str(path) for path in classpath_entries]
        if jpype.isJVMStarted():
            # the system classpath is frozen once the JVM runs
            return
        jpype.startJVM(classpath=[os.pathsep.join(classpath)] if classpath else None)

    def is_vm_running(self) -> bool:
        import jpype

        return jpype.isJVMStarted()

    def shutdown_vm(self) -> None:
        import jpype

        if jpype.isJVMStarted():
            try:
                jpype.shutdownJVM()
            except RuntimeError:  # pragma: no cover - jpype quirk during interpreter shutdown
                pass

    def jclass(self, name: str) -> Any:
        import jpype

        return jpype.JClass(name)

    def create_array(self, component_name: str, values: Sequence[Any]) -> Any:
        import jpype

        array_type = jpype.JArray(jpype.JClass(component_name))
        return array_type(values)

    def java_path(self, path: Path) -> Any:
        paths = self.jclass("java.nio.file.Paths")
        return paths.get(str(path), self.create_array("java.lang.String", []))


register_backend(_JPypeBackend(), activate=True)


PLUGIN_MANAGER.expose("java_backends", JAVA_BACKENDS)
PLUGIN_MANAGER.expose("java_backend_use", use_backend)
