"""Exception hierarchy for mod deployment."""

from __future__ import annotations


class DeployError(RuntimeError):
    """Base exception for deployment failures."""


class ConfigurationError(DeployError):
    """Raised when the deploy task is misconfigured."""


class SourceError(ConfigurationError):
    """Raised when a mod source reference cannot be interpreted."""


class ManifestError(DeployError):
    """Raised when an archive's ``extension.json`` cannot be read."""


class TransformError(DeployError, OSError):
    """Raised when an archive cannot be copied or remapped into place."""


class JavaBridgeError(DeployError):
    """Raised when the JVM bridge is unavailable or cannot start."""
