"""Update decision engine.

Purpose
-------
Decide, for each dependency, whether a newer version should be offered
and whether offering it is a breaking change.

Contents
--------
* :class:`UpdateDecisionEngine` - gates, classification, project checks

Decision Gates
--------------
Evaluated in order; the first failing gate excludes the dependency:

1. Ignored package.
2. Opaque ``catalog:`` / ``workspace:`` reference.
3. Latest version lookup failed.
4. Ignored version.
5. Unparsable version, or nothing older than the latest version.
6. Bump level not allowed by the package's update strategy.

Surviving major bumps become breaking changes (with migration notes)
when major updates are not allowed or the strategy is ``major``;
everything else is updatable.

System Role
-----------
The last stage of a check. Never raises for a single dependency;
:meth:`UpdateDecisionEngine.check_project` never raises at all.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from .adapters import MigrationAdvisor, PackageManagerAdapter
from .config import UpdateConfig
from .errors import InvalidVersionError
from .migration import MigrationRegistry
from .models import BulkDependencyRecord, BumpLevel, UpdateCandidate, UpdateResult, UpdateStrategy
from .registry_client import RegistryClient
from .versions import bump_level, clean_version, is_opaque_reference, lowest_version, parse_version

logger = logging.getLogger(__name__)


def migration_fallback(package_name: str) -> str:
    """Return the notice used when the migration advisor fails."""
    return f"Unable to fetch migration instructions for {package_name}."


class UpdateDecisionEngine:
    """Classify available updates under an :class:`~jsproj_dep_analyse.config.UpdateConfig`.

    Args:
        registry_client: Source of latest versions.
        advisor: Source of migration notes; defaults to an empty
            :class:`~jsproj_dep_analyse.migration.MigrationRegistry`.
    """

    def __init__(self, registry_client: RegistryClient, advisor: MigrationAdvisor | None = None) -> None:
        self.registry_client = registry_client
        self.advisor: MigrationAdvisor = advisor or MigrationRegistry()

    async def check_for_updates(
        self,
        dependencies: Mapping[str, str],
        installed_versions: Mapping[str, str | None],
        config: UpdateConfig,
    ) -> UpdateResult:
        """Return the classified updates for ``dependencies`` (name → specifier).

        Latest versions of all surviving names are fetched concurrently,
        bounded by ``config.batch_size``.
        """
        pending: dict[str, str] = {}
        for name, specifier in dependencies.items():
            if config.should_ignore_package(name):
                logger.debug("Skipping ignored package %s", name)
                continue
            if is_opaque_reference(specifier):
                logger.debug("Skipping %s: %r is not a version", name, specifier)
                continue
            pending[name] = clean_version(specifier)

        latest_versions = await self.registry_client.get_latest_versions(pending, batch_size=config.batch_size)

        result = UpdateResult()
        for name, current in pending.items():
            latest = latest_versions.get(name)
            if latest is None:
                continue
            installed = installed_versions.get(name)
            candidate = await self.classify(
                name,
                current,
                latest,
                config,
                installed_version=clean_version(installed) if installed else None,
            )
            _add_candidate(result, candidate)

        logger.info(
            "%d updatable, %d breaking out of %d dependencies",
            len(result.updatable),
            len(result.breaking_changes),
            len(dependencies),
        )
        return result

    async def classify(
        self,
        package_name: str,
        current_version: str,
        latest_version: str,
        config: UpdateConfig,
        *,
        installed_version: str | None = None,
    ) -> UpdateCandidate | None:
        """Evaluate one dependency whose latest version is already known.

        Returns None when the dependency is excluded by a gate.
        """
        if config.should_ignore_version(package_name, latest_version):
            logger.debug("Skipping %s %s: version is ignored", package_name, latest_version)
            return None

        try:
            bump = _effective_bump(current_version, installed_version, latest_version)
        except InvalidVersionError as exc:
            logger.debug("Skipping %s: %s", package_name, exc)
            return None
        if bump is None:
            return None

        strategy = config.get_update_strategy_for_package(package_name)
        if not strategy.allows(bump):
            logger.debug("Skipping %s: %s bump not allowed by %s strategy", package_name, bump.value, strategy.value)
            return None

        breaking = bump is BumpLevel.MAJOR and (
            not config.should_allow_major_update() or strategy is UpdateStrategy.MAJOR
        )
        instructions = None
        if breaking:
            instructions = await self._migration_instructions(package_name, current_version, latest_version)

        return UpdateCandidate(
            name=package_name,
            current_version=current_version,
            new_version=latest_version,
            has_breaking_changes=breaking,
            installed_version=installed_version,
            migration_instructions=instructions,
        )

    async def check_workspace(
        self,
        records: Mapping[str, BulkDependencyRecord],
        config: UpdateConfig,
        installed_versions: Mapping[str, str | None] | None = None,
    ) -> UpdateResult:
        """Classify bulk records, using the lowest declared version of each."""
        installed_versions = installed_versions or {}
        result = UpdateResult()
        for name, record in records.items():
            if record.latest_version is None or config.should_ignore_package(name):
                continue
            current = lowest_version(record.current_versions)
            if current is None:
                logger.debug("Skipping %s: no valid current version in %s", name, sorted(record.current_versions))
                continue
            installed = installed_versions.get(name)
            candidate = await self.classify(
                name,
                current,
                record.latest_version,
                config,
                installed_version=clean_version(installed) if installed else None,
            )
            _add_candidate(result, candidate)
        return result

    async def check_project(
        self,
        project_path: Path | str,
        adapter: PackageManagerAdapter,
        config: UpdateConfig,
    ) -> UpdateResult:
        """List dependencies through ``adapter`` and classify them.

        Any failure is logged and yields an empty result.
        """
        project_path = Path(project_path)
        try:
            dependencies = await adapter.get_dependencies(project_path)
            installed = {name: await adapter.get_installed_version(project_path, name) for name in dependencies}
            return await self.check_for_updates(dependencies, installed, config)
        except Exception as exc:
            logger.error("Error checking for updates: %s", exc)
            return UpdateResult()

    async def _migration_instructions(self, package_name: str, from_version: str, to_version: str) -> str:
        try:
            return await self.advisor.get_migration_instructions(package_name, from_version, to_version)
        except Exception as exc:
            logger.error("Error getting migration instructions for %s: %s", package_name, exc)
            return migration_fallback(package_name)


def _effective_bump(current: str, installed: str | None, latest: str) -> BumpLevel | None:
    """Bump level from the lowest of current and installed that is older than latest.

    Raises:
        InvalidVersionError: If any given version is not valid semver.
    """
    older = [v for v in (current, installed) if v is not None and bump_level(v, latest) is not None]
    if not older:
        return None
    return bump_level(min(older, key=parse_version), latest)


def _add_candidate(result: UpdateResult, candidate: UpdateCandidate | None) -> None:
    if candidate is None:
        return
    if candidate.has_breaking_changes:
        result.breaking_changes.append(candidate)
    else:
        result.updatable.append(candidate)


__all__ = [
    "UpdateDecisionEngine",
    "migration_fallback",
]
