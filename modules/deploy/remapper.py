"""Remapping copy backed by tiny-remapper running inside the JVM.

The destination archive is produced by streaming the source through a fresh
``TinyRemapper`` instance.  Class files are remapped with the configured
mappings and extensions, non-class resources pass through the configured
resource remappers.  The remapper and its output consumer are released after
every call, successful or not, and are never shared between mods.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple

from plugins import PLUGIN_MANAGER

from .exceptions import TransformError
from .java_backend import JavaIntegrationBackend, active_backend
from .transform import ArchiveTransformer

TINY_REMAPPER_CLASS = "net.fabricmc.tinyremapper.TinyRemapper"
TINY_UTILS_CLASS = "net.fabricmc.tinyremapper.TinyUtils"
OUTPUT_CONSUMER_BUILDER_CLASS = "net.fabricmc.tinyremapper.OutputConsumerPath$Builder"
DEFAULT_EXTENSIONS: Tuple[str, ...] = (
    "net.fabricmc.tinyremapper.extension.mixin.MixinExtension",
)
DEFAULT_RESOURCE_REMAPPERS: Tuple[str, ...] = (
    "net.fabricmc.tinyremapper.MetaInfFixer",
)


@dataclass(frozen=True)
class RemapSettings:
    """Inputs required to build a remapper for a single archive."""

    mappings: Path
    source_namespace: str = "intermediary"
    target_namespace: str = "named"
    remapper_classpath: Tuple[Path, ...] = ()
    library_classpath: Tuple[Path, ...] = ()
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    resource_remappers: Tuple[str, ...] = DEFAULT_RESOURCE_REMAPPERS
    access_widener_remappers: Tuple[str, ...] = field(default_factory=tuple)


def _instantiate(backend: JavaIntegrationBackend, class_name: str) -> Any:
    java_class = backend.jclass(class_name)
    instance = getattr(java_class, "INSTANCE", None)
    if instance is not None:
        return instance
    return java_class()


class RemappingTransformer(ArchiveTransformer):
    """Transform archives through tiny-remapper."""

    name = "remap"

    def __init__(
        self,
        settings: RemapSettings,
        *,
        backend: Optional[JavaIntegrationBackend] = None,
    ) -> None:
        self.settings = settings
        self._backend = backend

    @property
    def backend(self) -> JavaIntegrationBackend:
        return self._backend or active_backend()

    def _prepare_backend(self) -> JavaIntegrationBackend:
        backend = self.backend
        backend.ensure_bridge()
        backend.start_vm(self.settings.remapper_classpath)
        return backend

    def _build_remapper(self, backend: JavaIntegrationBackend) -> Any:
        settings = self.settings
        tiny_utils = backend.jclass(TINY_UTILS_CLASS)
        builder = backend.jclass(TINY_REMAPPER_CLASS).newRemapper()
        builder = builder.withMappings(
            tiny_utils.createTinyMappingProvider(
                backend.java_path(settings.mappings),
                settings.source_namespace,
                settings.target_namespace,
            )
        )
        for extension in settings.extensions:
            builder = builder.extension(_instantiate(backend, extension))
        return builder.build()

    def _resource_remappers(self, backend: JavaIntegrationBackend) -> Any:
        names: Sequence[str] = (
            *self.settings.resource_remappers,
            *self.settings.access_widener_remappers,
        )
        remappers = [_instantiate(backend, name) for name in names]
        return backend.jclass("java.util.Arrays").asList(
            backend.create_array("java.lang.Object", remappers)
        )

    def _remap(self, backend: JavaIntegrationBackend, remapper: Any, source: Path, target: Path) -> None:
        java_source = backend.java_path(source)
        output = backend.jclass(OUTPUT_CONSUMER_BUILDER_CLASS)(backend.java_path(target)).build()
        try:
            output.addNonClassFiles(java_source, remapper, self._resource_remappers(backend))
            remapper.readInputs(backend.create_array("java.nio.file.Path", [java_source]))
            if self.settings.library_classpath:
                remapper.readClassPath(
                    backend.create_array(
                        "java.nio.file.Path",
                        [backend.java_path(path) for path in self.settings.library_classpath],
                    )
                )
            remapper.apply(output)
        finally:
            output.close()

    def transform(self, source: Path, target: Path) -> None:
        try:
            backend = self._prepare_backend()
        except Exception as exc:
            raise TransformError(f"Unable to start the Java bridge for '{source}': {exc}") from exc

        try:
            remapper = self._build_remapper(backend)
        except Exception as exc:
            raise TransformError(f"Unable to configure remapper for '{source}': {exc}") from exc

        failure: Optional[Exception] = None
        try:
            self._remap(backend, remapper, source, target)
        except Exception as exc:
            failure = exc

        # The remap error wins over a failing release.
        try:
            remapper.finish()
        except Exception as exc:
            if failure is None:
                raise TransformError(f"Unable to release remapper for '{source}': {exc}") from exc

        if failure is not None:
            raise TransformError(f"Unable to remap '{source}' to '{target}': {failure}") from failure


PLUGIN_MANAGER.expose("RemapSettings", RemapSettings)
PLUGIN_MANAGER.expose("RemappingTransformer", RemappingTransformer)

__all__ = [
    "DEFAULT_EXTENSIONS",
    "DEFAULT_RESOURCE_REMAPPERS",
    "RemapSettings",
    "RemappingTransformer",
]
