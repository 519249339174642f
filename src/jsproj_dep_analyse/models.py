"""Domain models for dependency update analysis (dataclasses).

Purpose
-------
Define the core data structures that flow between workspace detection,
catalog resolution, bulk collection and the update decision engine.
These are pure dataclasses used for internal business logic.

For external data serialization, use the Pydantic schemas in schemas.py.

Contents
--------
* :class:`PackageManagerKind` - Package managers whose layouts are understood
* :class:`DependencySource` - Where a resolved version came from
* :class:`UpdateStrategy` - Which semver bump levels a package may take
* :class:`BumpLevel` - The semver component that changed between two versions
* :class:`WorkspacePackage` / :class:`WorkspaceInfo` - Workspace scan results
* :class:`ResolvedDependency` - Effective version of a dependency
* :class:`BulkDependencyRecord` - One distinct dependency across all workspaces
* :class:`CacheEntry` / :class:`CacheStats` - Version cache entries and summary
* :class:`UpdateCandidate` / :class:`UpdateResult` - Classified updates
* :class:`RewriteTarget` - A file location that must change to apply an update

Data Flow Pattern
-----------------
External Input → Pydantic (validate) → Dataclass (domain) → Pydantic (serialize) → Output
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class PackageManagerKind(str, Enum):
    """Package managers recognised from lockfiles.

    The declaration order is the lockfile resolution order: when several
    lockfiles exist the first kind listed here wins.
    """

    PNPM = "pnpm"
    YARN = "yarn"
    NPM = "npm"
    BUN = "bun"


class DependencySource(str, Enum):
    """Origin of a resolved dependency version.

    Attributes:
        DIRECT: The version is written in the workspace manifest itself.
        CATALOG: The manifest holds a ``catalog:`` reference and the version
            lives in the workspace catalog.
    """

    DIRECT = "direct"
    CATALOG = "catalog"


class UpdateStrategy(str, Enum):
    """Highest semver bump level a package is allowed to take.

    Attributes:
        MAJOR: Any bump is allowed.
        MINOR: Minor and patch bumps only.
        PATCH: Patch bumps only.
        NONE: No updates at all.
    """

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"
    NONE = "none"

    def allows(self, bump: BumpLevel) -> bool:
        """Return True when a bump of the given level is permitted."""
        return bump.rank <= _STRATEGY_CEILING[self]


class BumpLevel(str, Enum):
    """Semver component that differs between a current and a newer version."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        """Numeric rank, higher means more disruptive."""
        return _BUMP_RANK[self]


_BUMP_RANK: dict[BumpLevel, int] = {
    BumpLevel.PATCH: 1,
    BumpLevel.MINOR: 2,
    BumpLevel.MAJOR: 3,
}

_STRATEGY_CEILING: dict[UpdateStrategy, int] = {
    UpdateStrategy.NONE: 0,
    UpdateStrategy.PATCH: 1,
    UpdateStrategy.MINOR: 2,
    UpdateStrategy.MAJOR: 3,
}


def _empty_str_dict() -> dict[str, str]:
    """Return an empty string mapping for dataclass defaults."""
    return {}


def _empty_str_list() -> list[str]:
    """Return an empty string list for dataclass defaults."""
    return []


@dataclass(frozen=True, slots=True)
class WorkspacePackage:
    """A package discovered in the project.

    Attributes:
        name: The ``name`` field of the manifest, or the directory name.
        path: Absolute directory of the package.
        dependencies: ``dependencies`` map of the manifest.
        dev_dependencies: ``devDependencies`` map of the manifest.
        is_root: Whether this is the project root package.
    """

    name: str
    path: Path
    dependencies: dict[str, str] = field(default_factory=_empty_str_dict)
    dev_dependencies: dict[str, str] = field(default_factory=_empty_str_dict)
    is_root: bool = False

    def get_specifier(self, name: str) -> str | None:
        """Return the declared specifier for ``name``, runtime deps first."""
        return self.dependencies.get(name) or self.dev_dependencies.get(name)

    def all_dependencies(self, *, include_dev: bool = True) -> dict[str, str]:
        """Return runtime dependencies merged with dev dependencies.

        Runtime declarations win when a name appears in both maps.
        """
        if not include_dev:
            return dict(self.dependencies)
        return {**self.dev_dependencies, **self.dependencies}


def _empty_package_list() -> list[WorkspacePackage]:
    """Return an empty package list for dataclass defaults."""
    return []


@dataclass(frozen=True, slots=True)
class WorkspaceInfo:
    """Result of scanning a project directory.

    Attributes:
        is_monorepo: Whether workspace patterns were declared.
        root_path: Absolute project root.
        packages: Packages in discovery order, root first when included.
        workspace_patterns: Glob patterns that declared the workspaces.
        package_manager: Package manager detected from lockfiles.
        catalog: Default catalog (package name → version), if any.
        catalogs: Named catalogs (catalog name → package name → version).
        catalog_file: File that declared the catalogs, used for rewrites.
    """

    is_monorepo: bool
    root_path: Path
    packages: list[WorkspacePackage] = field(default_factory=_empty_package_list)
    workspace_patterns: list[str] = field(default_factory=_empty_str_list)
    package_manager: PackageManagerKind = PackageManagerKind.NPM
    catalog: dict[str, str] | None = None
    catalogs: dict[str, dict[str, str]] | None = None
    catalog_file: Path | None = None

    @property
    def package_names(self) -> frozenset[str]:
        """Names of all packages that belong to this workspace."""
        return frozenset(pkg.name for pkg in self.packages)


@dataclass(frozen=True, slots=True)
class ResolvedDependency:
    """Effective version of a dependency after catalog resolution.

    Attributes:
        name: Package name.
        version: Version with the decorator stripped.
        source: Whether the version came from a manifest or a catalog.
        original_specifier: The specifier exactly as declared in the manifest.
        decorator: Leading range operator of the effective specifier
            (``^``, ``~``, ``>=`` ... or ``""``).
    """

    name: str
    version: str
    source: DependencySource
    original_specifier: str
    decorator: str = ""


def _empty_str_set() -> set[str]:
    """Return an empty string set for dataclass defaults."""
    return set()


@dataclass(slots=True)
class BulkDependencyRecord:
    """One distinct external dependency aggregated across all workspaces.

    Attributes:
        name: Package name.
        current_versions: Distinct cleaned current versions seen.
        latest_version: Latest registry version, None when unknown.
        has_breaking_changes: Whether the latest major exceeds the major of
            the lowest current version.
        workspaces: Names of the workspaces that declare the dependency.
    """

    name: str
    current_versions: set[str] = field(default_factory=_empty_str_set)
    latest_version: str | None = None
    has_breaking_changes: bool = False
    workspaces: list[str] = field(default_factory=_empty_str_list)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached latest version.

    Attributes:
        package_name: Package name.
        version: Latest version at fetch time.
        fetched_at: Epoch seconds when the version was fetched.
        ttl: Lifetime in seconds.
    """

    package_name: str
    version: str
    fetched_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        """Return True once ``now`` is past ``fetched_at + ttl``."""
        return now > self.fetched_at + self.ttl


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Summary of the persisted version cache."""

    entry_count: int
    total_size_bytes: int


@dataclass(frozen=True, slots=True)
class UpdateCandidate:
    """A dependency with a newer version available.

    Attributes:
        name: Package name.
        current_version: Declared version with the decorator stripped.
        new_version: Latest registry version.
        has_breaking_changes: Whether the update is a major bump.
        installed_version: Version found in ``node_modules``, if any.
        migration_instructions: Upgrade notes, only for breaking entries.
    """

    name: str
    current_version: str
    new_version: str
    has_breaking_changes: bool = False
    installed_version: str | None = None
    migration_instructions: str | None = None


def _empty_candidate_list() -> list[UpdateCandidate]:
    """Return an empty candidate list for dataclass defaults."""
    return []


@dataclass(slots=True)
class UpdateResult:
    """Classified update candidates of one run.

    A package name never appears in both lists.
    """

    updatable: list[UpdateCandidate] = field(default_factory=_empty_candidate_list)
    breaking_changes: list[UpdateCandidate] = field(default_factory=_empty_candidate_list)

    @property
    def is_empty(self) -> bool:
        """Return True when there is nothing to update."""
        return not self.updatable and not self.breaking_changes


class RewriteKind(str, Enum):
    """Kind of file that holds a version declaration."""

    CATALOG = "catalog"
    MANIFEST = "manifest"


@dataclass(frozen=True, slots=True)
class RewriteTarget:
    """A single place that must be rewritten to apply an update.

    Attributes:
        kind: Catalog entry or workspace manifest.
        file_path: File to rewrite.
        package_name: Dependency being updated.
        new_specifier: New specifier including the original decorator.
        catalog_name: Named catalog, None for the default catalog or manifests.
    """

    kind: RewriteKind
    file_path: Path
    package_name: str
    new_specifier: str
    catalog_name: str | None = None


__all__ = [
    "BulkDependencyRecord",
    "BumpLevel",
    "CacheEntry",
    "CacheStats",
    "DependencySource",
    "PackageManagerKind",
    "ResolvedDependency",
    "RewriteKind",
    "RewriteTarget",
    "UpdateCandidate",
    "UpdateResult",
    "UpdateStrategy",
    "WorkspaceInfo",
    "WorkspacePackage",
]
