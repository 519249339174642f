"""Exception hierarchy for dependency analysis.

Purpose
-------
Give every failure mode its own type so callers can decide, per type,
whether a failure is fatal to the invocation or only excludes one package.

Contents
--------
* :class:`DependencyAnalysisError` - common base class
* :class:`ConfigurationError` - malformed configuration or unreadable project root
* :class:`RegistryLookupError` - latest-version lookup failed for one package
* :class:`InvalidVersionError` - a version string is not valid semver
* :class:`AdapterError` - the package-manager adapter could not list dependencies

System Role
-----------
``ConfigurationError`` propagates to the caller. ``RegistryLookupError`` and
``InvalidVersionError`` exclude a single package from the result.
``AdapterError`` is caught at the top of a project check and yields an empty
result.
"""

from __future__ import annotations


class DependencyAnalysisError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(DependencyAnalysisError):
    """Configuration is malformed or the project root cannot be read."""


class RegistryLookupError(DependencyAnalysisError):
    """The registry could not tell the latest version of a package.

    Attributes:
        package_name: The package that was looked up.
        retryable: Whether another attempt may succeed. Unknown packages
            (HTTP 404) are not retryable.
    """

    def __init__(self, package_name: str, message: str, *, retryable: bool = True) -> None:
        super().__init__(f"{package_name}: {message}")
        self.package_name = package_name
        self.retryable = retryable


class InvalidVersionError(DependencyAnalysisError, ValueError):
    """A version string could not be parsed as semver."""

    def __init__(self, version: str) -> None:
        super().__init__(f"Invalid version: {version!r}")
        self.version = version


class AdapterError(DependencyAnalysisError):
    """The underlying package-manager adapter failed."""


__all__ = [
    "AdapterError",
    "ConfigurationError",
    "DependencyAnalysisError",
    "InvalidVersionError",
    "RegistryLookupError",
]
