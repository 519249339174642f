"""Workspace (monorepo) detection.

Purpose
-------
Scan a project directory and describe its package layout: which package
manager it uses, which workspace packages it contains, and which version
catalogs it declares.

Contents
--------
* :class:`WorkspaceManager` - detection plus helpers over workspace packages
* :func:`load_package_json` - read and validate one package.json

Sources Read
------------
* ``pnpm-workspace.yaml`` - ``packages``, ``catalog`` and ``catalogs``
* root ``package.json`` - ``workspaces`` (array or object form), ``catalog``,
  ``catalogs`` and ``packageManager``
* lockfiles - package manager detection

System Role
-----------
The first stage of every check. An unreadable root manifest raises
:class:`~jsproj_dep_analyse.errors.ConfigurationError`; an unreadable
workspace manifest only drops that workspace.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

import yaml
from pydantic import ValidationError

from .errors import ConfigurationError
from .models import PackageManagerKind, WorkspaceInfo, WorkspacePackage
from .schemas import PackageJsonSchema, PnpmWorkspaceSchema, WorkspacesObjectSchema

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"
PNPM_WORKSPACE_FILE = "pnpm-workspace.yaml"

# Resolution order: first lockfile found decides.
LOCKFILES: tuple[tuple[str, PackageManagerKind], ...] = (
    ("pnpm-lock.yaml", PackageManagerKind.PNPM),
    ("yarn.lock", PackageManagerKind.YARN),
    ("package-lock.json", PackageManagerKind.NPM),
    ("bun.lockb", PackageManagerKind.BUN),
    ("bun.lock", PackageManagerKind.BUN),
)

_IGNORED_DIRS = frozenset({"node_modules", ".git"})


def load_package_json(path: Path) -> PackageJsonSchema:
    """Read and validate a package.json file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the content is not JSON or does not match the schema
            (pydantic's ValidationError is a ValueError).
    """
    return PackageJsonSchema.model_validate(json.loads(path.read_text(encoding="utf-8")))


def _load_pnpm_workspace(root_path: Path) -> PnpmWorkspaceSchema | None:
    path = root_path / PNPM_WORKSPACE_FILE
    if not path.is_file():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        return PnpmWorkspaceSchema.model_validate(data or {})
    except (OSError, yaml.YAMLError, ValidationError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return None


def _normalize_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.rstrip("/")


def _is_ignored(directory: Path, root_path: Path) -> bool:
    return any(part in _IGNORED_DIRS for part in directory.relative_to(root_path).parts)


def _expand_pattern(root_path: Path, pattern: str) -> list[Path]:
    """Return directories matching ``pattern`` that contain a package.json."""
    pattern = _normalize_pattern(pattern)
    if not pattern or pattern.startswith("/") or ".." in Path(pattern).parts:
        logger.warning("Ignoring workspace pattern outside the project: %r", pattern)
        return []
    directories = {match.parent for match in root_path.glob(f"{pattern}/{PACKAGE_JSON}")}
    return sorted(d for d in directories if d != root_path and not _is_ignored(d, root_path))


class WorkspaceManager:
    """Detect workspace layouts and answer questions about them.

    All methods are stateless; ``detect`` is the entry point.

    Example:
        >>> from pathlib import Path
        >>> WorkspaceManager.detect_package_manager(Path("/nonexistent")).value
        'npm'
    """

    @classmethod
    def detect(cls, root_path: Path | str) -> WorkspaceInfo:
        """Scan ``root_path`` and return its workspace description.

        Raises:
            ConfigurationError: If the root package.json is missing or
                cannot be parsed.
        """
        root_path = Path(root_path).resolve()
        manifest_path = root_path / PACKAGE_JSON
        if not manifest_path.is_file():
            raise ConfigurationError(f"package.json not found at {manifest_path}")
        try:
            manifest = load_package_json(manifest_path)
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Failed to read {manifest_path}: {exc}") from exc

        package_manager = cls.detect_package_manager(root_path, manifest)
        pnpm_workspace = _load_pnpm_workspace(root_path)
        patterns = cls.parse_workspace_patterns(manifest, pnpm_workspace)
        catalog, catalogs, catalog_file = cls._read_catalogs(root_path, manifest, pnpm_workspace)

        root_package = WorkspacePackage(
            name=manifest.name or "root",
            path=root_path,
            dependencies=dict(manifest.dependencies),
            dev_dependencies=dict(manifest.dev_dependencies),
            is_root=True,
        )

        if not patterns:
            logger.debug("No workspace patterns in %s, treating as single package", root_path)
            return WorkspaceInfo(
                is_monorepo=False,
                root_path=root_path,
                packages=[root_package],
                workspace_patterns=[],
                package_manager=package_manager,
                catalog=catalog,
                catalogs=catalogs,
                catalog_file=catalog_file,
            )

        packages = cls.get_workspace_packages(patterns, root_path)
        if root_package.dependencies or root_package.dev_dependencies:
            packages.insert(0, root_package)

        logger.debug("Detected monorepo with %d packages", len(packages))
        return WorkspaceInfo(
            is_monorepo=True,
            root_path=root_path,
            packages=packages,
            workspace_patterns=patterns,
            package_manager=package_manager,
            catalog=catalog,
            catalogs=catalogs,
            catalog_file=catalog_file,
        )

    @staticmethod
    def detect_package_manager(
        root_path: Path,
        manifest: PackageJsonSchema | None = None,
    ) -> PackageManagerKind:
        """Detect the package manager from lockfiles.

        The ``packageManager`` manifest field (``"pnpm@9.1.0"``) is only
        consulted when no lockfile exists. Defaults to npm.
        """
        for lockfile, kind in LOCKFILES:
            if (root_path / lockfile).exists():
                return kind
        if manifest is not None and manifest.package_manager:
            declared = manifest.package_manager.split("@", 1)[0].strip().lower()
            try:
                return PackageManagerKind(declared)
            except ValueError:
                logger.debug("Unknown packageManager field %r", manifest.package_manager)
        return PackageManagerKind.NPM

    @staticmethod
    def parse_workspace_patterns(
        manifest: PackageJsonSchema,
        pnpm_workspace: PnpmWorkspaceSchema | None = None,
    ) -> list[str]:
        """Collect workspace patterns, de-duplicated in declaration order."""
        patterns: list[str] = []
        if pnpm_workspace is not None:
            patterns.extend(pnpm_workspace.packages)
        workspaces = manifest.workspaces
        if isinstance(workspaces, list):
            patterns.extend(workspaces)
        elif isinstance(workspaces, WorkspacesObjectSchema):
            patterns.extend(workspaces.packages)
        return [p for p in dict.fromkeys(patterns) if p and p.strip()]

    @staticmethod
    def get_workspace_packages(patterns: Iterable[str], root_path: Path) -> list[WorkspacePackage]:
        """Expand patterns into workspace packages.

        Patterns starting with ``!`` exclude the directories they match.
        A workspace whose manifest cannot be read is skipped with a warning.
        """
        included: list[Path] = []
        excluded: set[Path] = set()
        for pattern in patterns:
            if pattern.startswith("!"):
                excluded.update(_expand_pattern(root_path, pattern[1:]))
            else:
                included.extend(_expand_pattern(root_path, pattern))

        packages: list[WorkspacePackage] = []
        for directory in dict.fromkeys(included):
            if directory in excluded:
                continue
            manifest_path = directory / PACKAGE_JSON
            try:
                manifest = load_package_json(manifest_path)
            except (OSError, ValueError) as exc:
                logger.warning("Failed to parse package.json at %s: %s", manifest_path, exc)
                continue
            package = WorkspacePackage(
                name=manifest.name or directory.relative_to(root_path).as_posix(),
                path=directory,
                dependencies=dict(manifest.dependencies),
                dev_dependencies=dict(manifest.dev_dependencies),
            )
            logger.debug("Found workspace package: %s at %s", package.name, directory.relative_to(root_path))
            packages.append(package)
        return packages

    @staticmethod
    def _read_catalogs(
        root_path: Path,
        manifest: PackageJsonSchema,
        pnpm_workspace: PnpmWorkspaceSchema | None,
    ) -> tuple[dict[str, str] | None, dict[str, dict[str, str]] | None, Path | None]:
        if pnpm_workspace is not None and (pnpm_workspace.catalog or pnpm_workspace.catalogs):
            return (
                dict(pnpm_workspace.catalog) if pnpm_workspace.catalog else None,
                {k: dict(v) for k, v in pnpm_workspace.catalogs.items()} if pnpm_workspace.catalogs else None,
                root_path / PNPM_WORKSPACE_FILE,
            )

        catalog = manifest.catalog
        catalogs = manifest.catalogs
        if isinstance(manifest.workspaces, WorkspacesObjectSchema):
            catalog = catalog or manifest.workspaces.catalog
            catalogs = catalogs or manifest.workspaces.catalogs
        if not catalog and not catalogs:
            return None, None, None
        return (
            dict(catalog) if catalog else None,
            {k: dict(v) for k, v in catalogs.items()} if catalogs else None,
            root_path / PACKAGE_JSON,
        )

    @staticmethod
    def is_internal_dependency(package_name: str, workspaces: Iterable[WorkspacePackage]) -> bool:
        """Return True when ``package_name`` is one of the workspace packages."""
        return any(workspace.name == package_name for workspace in workspaces)

    @staticmethod
    def get_workspaces_depending_on(
        package_name: str,
        workspaces: Iterable[WorkspacePackage],
    ) -> list[WorkspacePackage]:
        """Return the workspaces that declare ``package_name``."""
        return [w for w in workspaces if package_name in w.dependencies or package_name in w.dev_dependencies]

    @classmethod
    def get_all_external_dependencies(
        cls,
        workspaces: list[WorkspacePackage],
        *,
        include_dev: bool = True,
    ) -> dict[str, set[str]]:
        """Map every external dependency to the set of specifiers declared for it."""
        internal = {w.name for w in workspaces}
        result: dict[str, set[str]] = {}
        for workspace in workspaces:
            for name, specifier in workspace.all_dependencies(include_dev=include_dev).items():
                if name in internal:
                    continue
                result.setdefault(name, set()).add(specifier)
        return result

    @classmethod
    def find_version_conflicts(cls, workspaces: list[WorkspacePackage]) -> dict[str, list[str]]:
        """Return external dependencies declared with more than one specifier."""
        return {
            name: sorted(specifiers)
            for name, specifiers in cls.get_all_external_dependencies(workspaces).items()
            if len(specifiers) > 1
        }


__all__ = [
    "LOCKFILES",
    "PACKAGE_JSON",
    "PNPM_WORKSPACE_FILE",
    "WorkspaceManager",
    "load_package_json",
]
