"""Interfaces to external collaborators and a manifest-based adapter.

Purpose
-------
Describe what the update engine needs from a package manager and from a
migration advisor, and provide an adapter that answers from the files on
disk instead of invoking a package-manager CLI.

Contents
--------
* :class:`PackageManagerAdapter` - dependency listing, installed versions, updates
* :class:`MigrationAdvisor` - upgrade notes for breaking updates
* :class:`ManifestAdapter` - reads ``package.json`` and ``node_modules``,
  asks a :class:`~jsproj_dep_analyse.registry_client.RegistryClient` for
  outdated entries

System Role
-----------
Adapters raise :class:`~jsproj_dep_analyse.errors.AdapterError`; the engine
turns that into an empty result for the project.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from .catalog_resolver import CatalogResolver
from .errors import AdapterError, InvalidVersionError
from .models import RewriteKind, RewriteTarget
from .registry_client import RegistryClient
from .schemas import InstalledPackageSchema
from .versions import apply_decorator, bump_level, clean_version, is_opaque_reference, split_decorator
from .workspace_manager import PACKAGE_JSON, load_package_json

logger = logging.getLogger(__name__)


class PackageManagerAdapter(Protocol):
    """Operations the engine needs from a package manager."""

    async def get_dependencies(self, project_path: Path) -> dict[str, str]:
        """Return declared dependencies (name → specifier)."""
        ...

    async def get_installed_version(self, project_path: Path, package_name: str) -> str | None:
        """Return the installed version, None when not installed."""
        ...

    async def update_dependency(self, project_path: Path, package_name: str, version: str) -> None:
        """Move ``package_name`` to ``version``."""
        ...

    async def check_outdated(self, project_path: Path) -> dict[str, tuple[str, str]]:
        """Return outdated dependencies (name → (current, latest))."""
        ...


class MigrationAdvisor(Protocol):
    """Source of upgrade notes for breaking updates."""

    async def get_migration_instructions(self, package_name: str, from_version: str, to_version: str) -> str: ...


class ManifestAdapter:
    """Answer adapter calls from ``package.json`` and ``node_modules``.

    Args:
        include_dev: Whether ``devDependencies`` are listed.
        registry_client: Answers latest-version lookups for
            :meth:`check_outdated`.
    """

    def __init__(self, *, include_dev: bool = True, registry_client: RegistryClient | None = None) -> None:
        self.include_dev = include_dev
        self.registry_client = registry_client

    def __repr__(self) -> str:
        return f"ManifestAdapter(include_dev={self.include_dev}, registry_client={self.registry_client!r})"

    async def get_dependencies(self, project_path: Path) -> dict[str, str]:
        manifest_path = Path(project_path) / PACKAGE_JSON
        try:
            manifest = load_package_json(manifest_path)
        except (OSError, ValueError) as exc:
            raise AdapterError(f"Failed to read {manifest_path}: {exc}") from exc
        if not self.include_dev:
            return dict(manifest.dependencies)
        return {**manifest.dev_dependencies, **manifest.dependencies}

    async def get_installed_version(self, project_path: Path, package_name: str) -> str | None:
        installed_path = Path(project_path) / "node_modules" / package_name / PACKAGE_JSON
        if not installed_path.is_file():
            return None
        try:
            data = json.loads(installed_path.read_text(encoding="utf-8"))
            return InstalledPackageSchema.model_validate(data).version
        except (OSError, ValueError, ValidationError) as exc:
            logger.debug("Cannot read installed version of %s: %s", package_name, exc)
            return None

    async def update_dependency(self, project_path: Path, package_name: str, version: str) -> None:
        """Rewrite the manifest entry, keeping its decorator."""
        dependencies = await self.get_dependencies(project_path)
        specifier = dependencies.get(package_name)
        if specifier is None:
            raise AdapterError(f"{package_name} is not declared in {Path(project_path) / PACKAGE_JSON}")
        target = RewriteTarget(
            kind=RewriteKind.MANIFEST,
            file_path=Path(project_path) / PACKAGE_JSON,
            package_name=package_name,
            new_specifier=apply_decorator(split_decorator(specifier.strip())[0], version),
        )
        try:
            CatalogResolver.apply_rewrites([target])
        except (OSError, ValueError) as exc:
            raise AdapterError(f"Failed to update {package_name}: {exc}") from exc

    async def check_outdated(self, project_path: Path) -> dict[str, tuple[str, str]]:
        """Return declared dependencies whose latest version is newer.

        ``catalog:`` and ``workspace:`` references, failed lookups and
        non-semver specifiers are left out.

        Raises:
            AdapterError: Without a registry client or when the manifest
                cannot be read.
        """
        if self.registry_client is None:
            raise AdapterError("check_outdated needs a registry client")
        dependencies = await self.get_dependencies(project_path)
        current = {
            name: clean_version(specifier)
            for name, specifier in dependencies.items()
            if not is_opaque_reference(specifier)
        }
        latest_versions = await self.registry_client.get_latest_versions(current)

        outdated: dict[str, tuple[str, str]] = {}
        for name, version in current.items():
            latest = latest_versions.get(name)
            if latest is None:
                continue
            try:
                if bump_level(version, latest) is None:
                    continue
            except InvalidVersionError:
                logger.debug("Cannot compare %s %s with %s", name, version, latest)
                continue
            outdated[name] = (version, latest)
        return outdated


__all__ = [
    "ManifestAdapter",
    "MigrationAdvisor",
    "PackageManagerAdapter",
]
