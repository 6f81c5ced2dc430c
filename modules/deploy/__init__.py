"""Deploy mod archives into a runtime's extension directory."""
from __future__ import annotations

from .exceptions import (
    ConfigurationError,
    DeployError,
    JavaBridgeError,
    ManifestError,
    SourceError,
    TransformError,
)
from .manifest import EXTENSION_MANIFEST_NAME, ExtensionManifest, read_extension_manifest, read_extension_name
from .sources import (
    ArchiveTaskSource,
    ArtifactSource,
    ComponentSource,
    DependencySetSource,
    ModSource,
    ModSourceSet,
    PathSource,
    coerce_source,
)
from .transform import ArchiveTransformer, CopyTransformer, TRANSFORMERS, register_transformer, use_transformer
from .remapper import RemapSettings, RemappingTransformer
from .task import DeployedMod, DeployFailure, DeployModsTask, DeployReport, deploy_mods
from .config import DeployConfig
from plugins import PLUGIN_MANAGER

PLUGIN_MANAGER.expose_module("modules.deploy")

__all__ = [
    "DeployError",
    "ConfigurationError",
    "SourceError",
    "ManifestError",
    "TransformError",
    "JavaBridgeError",
    "EXTENSION_MANIFEST_NAME",
    "ExtensionManifest",
    "read_extension_manifest",
    "read_extension_name",
    "ModSource",
    "PathSource",
    "ArtifactSource",
    "ComponentSource",
    "ArchiveTaskSource",
    "DependencySetSource",
    "ModSourceSet",
    "coerce_source",
    "ArchiveTransformer",
    "CopyTransformer",
    "TRANSFORMERS",
    "register_transformer",
    "use_transformer",
    "RemapSettings",
    "RemappingTransformer",
    "DeployedMod",
    "DeployFailure",
    "DeployModsTask",
    "DeployReport",
    "deploy_mods",
    "DeployConfig",
]
