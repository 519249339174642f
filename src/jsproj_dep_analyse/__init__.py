"""Public package surface for JavaScript dependency update analysis.

This package detects outdated dependencies in single-package projects and
monorepos (npm, yarn, pnpm and bun workspaces), resolves ``catalog:``
references, deduplicates registry lookups across workspaces, caches latest
versions and classifies every update as safe or breaking.

Main API
--------
* :class:`DependencyChecker` - check or update a project
* :func:`run_check` - one-shot check returning an :class:`UpdateResult`
* :class:`UpdateDecisionEngine` - classification of individual dependencies
* :func:`get_update_config` / :func:`load_update_config` - update policy
"""

from __future__ import annotations

from .__init__conf__ import print_info
from .adapters import ManifestAdapter, MigrationAdvisor, PackageManagerAdapter
from .bulk_processor import BulkProcessor
from .catalog_resolver import CatalogResolver
from .checker import DependencyChecker, result_to_dict, run_check, write_updates_json
from .config import PackageRule, UpdateConfig, get_config, get_update_config, load_update_config
from .errors import (
    AdapterError,
    ConfigurationError,
    DependencyAnalysisError,
    InvalidVersionError,
    RegistryLookupError,
)
from .migration import MigrationProvider, MigrationRegistry
from .models import (
    BulkDependencyRecord,
    DependencySource,
    PackageManagerKind,
    ResolvedDependency,
    UpdateCandidate,
    UpdateResult,
    UpdateStrategy,
    WorkspaceInfo,
    WorkspacePackage,
)
from .registry_client import NpmRegistrySource, RegistryClient, RetryPolicy
from .update_engine import UpdateDecisionEngine
from .version_cache import VersionCache
from .workspace_manager import WorkspaceManager

__all__ = [
    "AdapterError",
    "BulkDependencyRecord",
    "BulkProcessor",
    "CatalogResolver",
    "ConfigurationError",
    "DependencyAnalysisError",
    "DependencyChecker",
    "DependencySource",
    "InvalidVersionError",
    "ManifestAdapter",
    "MigrationAdvisor",
    "MigrationProvider",
    "MigrationRegistry",
    "NpmRegistrySource",
    "PackageManagerAdapter",
    "PackageManagerKind",
    "PackageRule",
    "RegistryClient",
    "RegistryLookupError",
    "ResolvedDependency",
    "RetryPolicy",
    "UpdateCandidate",
    "UpdateConfig",
    "UpdateDecisionEngine",
    "UpdateResult",
    "UpdateStrategy",
    "VersionCache",
    "WorkspaceInfo",
    "WorkspaceManager",
    "WorkspacePackage",
    "get_config",
    "get_update_config",
    "load_update_config",
    "print_info",
    "result_to_dict",
    "run_check",
    "write_updates_json",
]
