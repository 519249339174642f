"""Deduplicated dependency collection across all workspaces.

Purpose
-------
Build one record per distinct external dependency of a workspace, so that
each package name is looked up in the registry exactly once no matter how
many workspaces declare it.

Contents
--------
* :class:`BulkProcessor` - collects records and fills in latest versions

System Role
-----------
Sits between workspace detection and the update decision engine. Lookups
run concurrently through
:meth:`~jsproj_dep_analyse.registry_client.RegistryClient.get_latest_versions`,
bounded by ``batch_size``.
"""

from __future__ import annotations

import logging
import time

from .catalog_resolver import CatalogResolver
from .config import UpdateConfig
from .models import BulkDependencyRecord, WorkspaceInfo
from .registry_client import RegistryClient
from .versions import clean_version, is_catalog_reference, is_workspace_reference, lowest_version, parse_version

logger = logging.getLogger(__name__)


def has_breaking_changes(current_versions: set[str], latest_version: str) -> bool:
    """Return True when ``latest_version`` has a higher major than the lowest current version.

    Invalid versions are ignored; with no valid current version the result
    is False.

    Example:
        >>> has_breaking_changes({"1.2.0", "2.0.0"}, "2.1.0")
        True
        >>> has_breaking_changes({"2.0.0"}, "2.1.0")
        False
    """
    lowest = lowest_version(current_versions)
    if lowest is None:
        return False
    try:
        return parse_version(latest_version).major > parse_version(lowest).major
    except ValueError:
        return False


class BulkProcessor:
    """Collect distinct external dependencies and fetch their latest versions.

    Args:
        registry_client: Client used for the latest-version lookups.
        config: Supplies ``batch_size`` and ``include_dev``.
    """

    def __init__(self, registry_client: RegistryClient, config: UpdateConfig | None = None) -> None:
        self.registry_client = registry_client
        self.config = config or UpdateConfig()

    def collect_unique_dependencies(self, info: WorkspaceInfo) -> dict[str, BulkDependencyRecord]:
        """Group declarations by package name without contacting the registry.

        Internal packages, ``workspace:`` references and ignored packages are
        left out, so they never reach the registry.
        """
        internal = info.package_names
        records: dict[str, BulkDependencyRecord] = {}

        for workspace in info.packages:
            for name, specifier in workspace.all_dependencies(include_dev=self.config.include_dev).items():
                if name in internal or is_workspace_reference(specifier):
                    continue
                if self.config.should_ignore_package(name):
                    logger.debug("Skipping ignored package %s", name)
                    continue

                resolved = specifier
                if is_catalog_reference(specifier):
                    catalog_value = CatalogResolver.resolve_catalog_reference(name, specifier, info)
                    if catalog_value is None:
                        logger.warning("Catalog reference for %s found but no catalog entry exists", name)
                        continue
                    resolved = catalog_value

                record = records.setdefault(name, BulkDependencyRecord(name=name))
                record.current_versions.add(clean_version(resolved))
                record.workspaces.append(workspace.name)

        return records

    async def process_bulk_dependencies(self, info: WorkspaceInfo) -> dict[str, BulkDependencyRecord]:
        """Return one record per distinct external dependency with its latest version.

        Failed lookups leave ``latest_version`` as None and the record
        non-breaking.
        """
        start = time.perf_counter()
        records = self.collect_unique_dependencies(info)
        logger.info(
            "Found %d unique external dependencies across %d workspaces",
            len(records),
            len(info.packages),
        )

        latest = await self.registry_client.get_latest_versions(records, batch_size=self.config.batch_size)
        for name, record in records.items():
            version = latest.get(name)
            if version is None:
                continue
            record.latest_version = version
            record.has_breaking_changes = has_breaking_changes(record.current_versions, version)

        logger.debug("Bulk processing completed in %.1fs for %d packages", time.perf_counter() - start, len(records))
        return records


__all__ = [
    "BulkProcessor",
    "has_breaking_changes",
]
