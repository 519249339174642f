"""Orchestration of a complete dependency check.

Purpose
-------
Wire workspace detection, bulk collection, the version cache, the registry
client and the update decision engine together for one project, and apply
or export the result.

Contents
--------
* :class:`DependencyChecker` - one scan, one bulk pass, one decision pass
* :func:`run_check` - convenience function returning the update result
* :func:`result_to_dict` / :func:`write_updates_json` - JSON export

System Role
-----------
The main entry point for the library and the CLI.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from .adapters import ManifestAdapter, MigrationAdvisor
from .bulk_processor import BulkProcessor
from .catalog_resolver import CatalogResolver
from .config import UpdateConfig
from .models import UpdateCandidate, UpdateResult, WorkspaceInfo
from .registry_client import NpmRegistrySource, RegistryClient, RegistrySource
from .schemas import UpdateCandidateSchema, UpdateResultSchema
from .update_engine import UpdateDecisionEngine
from .version_cache import VersionCache
from .workspace_manager import WorkspaceManager

logger = logging.getLogger(__name__)


@dataclass
class DependencyChecker:
    """Check a project (single package or monorepo) for dependency updates.

    Attributes:
        config: Update policy, registry and cache settings.
        advisor: Migration notes for breaking updates; None uses an empty
            :class:`~jsproj_dep_analyse.migration.MigrationRegistry`.
        source: Registry source; None queries ``config.registry_url`` over HTTP.
        use_cache: Whether the on-disk version cache is consulted.
    """

    config: UpdateConfig = field(default_factory=UpdateConfig)
    advisor: MigrationAdvisor | None = None
    source: RegistrySource | None = None
    use_cache: bool = True

    def version_cache(self, project_path: Path | str) -> VersionCache:
        """Return the version cache of ``project_path`` configured from ``config``."""
        return VersionCache.for_project(
            project_path,
            self.config.cache_dir,
            ttl=self.config.cache_ttl,
            stable_ttl=self.config.stable_cache_ttl,
            stable_packages=self.config.stable_packages,
        )

    async def _check_with_source(self, info: WorkspaceInfo, source: RegistrySource) -> UpdateResult:
        cache = self.version_cache(info.root_path) if self.use_cache else None
        client = RegistryClient(source, cache, self.config.retry_policy())
        records = await BulkProcessor(client, self.config).process_bulk_dependencies(info)

        adapter = ManifestAdapter(include_dev=self.config.include_dev)
        installed = {name: await adapter.get_installed_version(info.root_path, name) for name in records}

        engine = UpdateDecisionEngine(client, self.advisor)
        return await engine.check_workspace(records, self.config, installed)

    async def _check_info(self, info: WorkspaceInfo) -> UpdateResult:
        if self.source is not None:
            return await self._check_with_source(info, self.source)
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            source = NpmRegistrySource(self.config.registry_url, timeout=self.config.timeout, client=client)
            return await self._check_with_source(info, source)

    async def check_async(self, project_path: Path | str) -> UpdateResult:
        """Check ``project_path`` and return the classified updates.

        Raises:
            ConfigurationError: If the project root cannot be read.
        """
        info = WorkspaceManager.detect(project_path)
        logger.info("Checking %s (%s, %d packages)", info.root_path, info.package_manager.value, len(info.packages))
        result = await self._check_info(info)
        logger.info(
            "Found %d updatable and %d breaking updates",
            len(result.updatable),
            len(result.breaking_changes),
        )
        return result

    def check(self, project_path: Path | str) -> UpdateResult:
        """Synchronous wrapper for check_async."""
        return asyncio.run(self.check_async(project_path))

    async def update_async(self, project_path: Path | str) -> list[UpdateCandidate]:
        """Apply every non-breaking update and return the applied candidates.

        Catalog-only dependencies are changed in the catalog; all others in
        each declaring manifest. Packages whose rule disables auto-update
        are left alone.
        """
        info = WorkspaceManager.detect(project_path)
        result = await self._check_info(info)

        applied: list[UpdateCandidate] = []
        for candidate in result.updatable:
            if not self.config.should_auto_update(candidate.name):
                logger.info("Skipping %s: auto-update disabled", candidate.name)
                continue
            targets = CatalogResolver.plan_rewrites(candidate.name, candidate.new_version, info)
            if not targets:
                continue
            CatalogResolver.apply_rewrites(targets)
            logger.info("Updated %s from %s to %s", candidate.name, candidate.current_version, candidate.new_version)
            applied.append(candidate)
        return applied

    def update(self, project_path: Path | str) -> list[UpdateCandidate]:
        """Synchronous wrapper for update_async."""
        return asyncio.run(self.update_async(project_path))


def run_check(project_path: Path | str, *, config: UpdateConfig | None = None) -> UpdateResult:
    """Check a project with the given (or default) configuration.

    Example:
        >>> result = run_check(".")  # doctest: +SKIP
        >>> [c.name for c in result.updatable]  # doctest: +SKIP
        ['lodash']
    """
    return DependencyChecker(config=config or UpdateConfig()).check(project_path)


def _candidate_schema(candidate: UpdateCandidate) -> UpdateCandidateSchema:
    return UpdateCandidateSchema(
        name=candidate.name,
        current_version=candidate.current_version,
        installed_version=candidate.installed_version,
        new_version=candidate.new_version,
        has_breaking_changes=candidate.has_breaking_changes,
        migration_instructions=candidate.migration_instructions,
    )


def result_to_dict(result: UpdateResult) -> dict[str, Any]:
    """Convert an UpdateResult to a dictionary for JSON serialization."""
    schema = UpdateResultSchema(
        updatable=[_candidate_schema(c) for c in result.updatable],
        breaking_changes=[_candidate_schema(c) for c in result.breaking_changes],
    )
    return schema.model_dump()


def write_updates_json(result: UpdateResult, output_path: Path | str) -> None:
    """Write an update result to a JSON file.

    Raises:
        ValueError: If output_path is a directory.
    """
    path = Path(output_path).resolve()
    if path.is_dir():
        raise ValueError(f"Output path must be a file, not a directory: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(result_to_dict(result), f, indent=2, ensure_ascii=False)

    logger.info(
        "Wrote %d updatable and %d breaking entries to %s",
        len(result.updatable),
        len(result.breaking_changes),
        path,
    )


__all__ = [
    "DependencyChecker",
    "result_to_dict",
    "run_check",
    "write_updates_json",
]
