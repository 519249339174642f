"""Manifest adapter stories: answers come from the files on disk.

ManifestAdapter reads ``package.json`` and ``node_modules`` instead of
shelling out to a package manager. Updates keep the range operator the
author chose; outdated checks ask a registry client for latest versions.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from jsproj_dep_analyse.adapters import ManifestAdapter
from jsproj_dep_analyse.errors import AdapterError, RegistryLookupError
from jsproj_dep_analyse.registry_client import RegistryClient, RetryPolicy


class DictSource:
    def __init__(self, versions: dict[str, str]) -> None:
        self.versions = versions
        self.calls: list[str] = []

    async def fetch_latest_version(self, package_name: str) -> str:
        self.calls.append(package_name)
        if package_name not in self.versions:
            raise RegistryLookupError(package_name, "package not found", retryable=False)
        return self.versions[package_name]


def _write_json(path: Path, content: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2) + "\n", encoding="utf-8")


def _read_manifest(project: Path) -> dict[str, Any]:
    return json.loads((project / "package.json").read_text(encoding="utf-8"))


@pytest.fixture
def project(tmp_path: Path) -> Path:
    _write_json(
        tmp_path / "package.json",
        {
            "name": "app",
            "dependencies": {"lodash": "~4.17.0", "react": "17.0.2", "ui": "workspace:*", "zod": "catalog:"},
            "devDependencies": {"vitest": "^1.0.0"},
        },
    )
    return tmp_path


def _client(versions: dict[str, str]) -> RegistryClient:
    return RegistryClient(DictSource(versions), retry_policy=RetryPolicy(max_attempts=1))


# ════════════════════════════════════════════════════════════════════════════
# get_dependencies / get_installed_version
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_dependencies_include_dev_by_default(project: Path) -> None:
    dependencies = asyncio.run(ManifestAdapter().get_dependencies(project))

    assert dependencies["vitest"] == "^1.0.0"
    assert dependencies["lodash"] == "~4.17.0"


@pytest.mark.os_agnostic
def test_dev_dependencies_can_be_left_out(project: Path) -> None:
    dependencies = asyncio.run(ManifestAdapter(include_dev=False).get_dependencies(project))

    assert "vitest" not in dependencies


@pytest.mark.os_agnostic
def test_missing_manifest_is_an_adapter_error(tmp_path: Path) -> None:
    with pytest.raises(AdapterError, match="Failed to read"):
        asyncio.run(ManifestAdapter().get_dependencies(tmp_path))


@pytest.mark.os_agnostic
def test_installed_version_comes_from_node_modules(project: Path) -> None:
    _write_json(project / "node_modules" / "lodash" / "package.json", {"name": "lodash", "version": "4.17.5"})

    adapter = ManifestAdapter()

    assert asyncio.run(adapter.get_installed_version(project, "lodash")) == "4.17.5"
    assert asyncio.run(adapter.get_installed_version(project, "react")) is None


# ════════════════════════════════════════════════════════════════════════════
# update_dependency
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_update_keeps_the_range_operator(project: Path) -> None:
    asyncio.run(ManifestAdapter().update_dependency(project, "lodash", "4.17.21"))

    manifest = _read_manifest(project)
    assert manifest["dependencies"]["lodash"] == "~4.17.21"
    assert manifest["dependencies"]["react"] == "17.0.2"


@pytest.mark.os_agnostic
def test_update_of_exact_pin_stays_exact(project: Path) -> None:
    asyncio.run(ManifestAdapter().update_dependency(project, "react", "17.0.3"))

    assert _read_manifest(project)["dependencies"]["react"] == "17.0.3"


@pytest.mark.os_agnostic
def test_update_reaches_dev_dependencies(project: Path) -> None:
    asyncio.run(ManifestAdapter().update_dependency(project, "vitest", "1.6.0"))

    assert _read_manifest(project)["devDependencies"]["vitest"] == "^1.6.0"


@pytest.mark.os_agnostic
def test_update_of_undeclared_package_is_an_adapter_error(project: Path) -> None:
    before = (project / "package.json").read_text(encoding="utf-8")

    with pytest.raises(AdapterError, match="left-pad is not declared"):
        asyncio.run(ManifestAdapter().update_dependency(project, "left-pad", "1.3.0"))

    assert (project / "package.json").read_text(encoding="utf-8") == before


# ════════════════════════════════════════════════════════════════════════════
# check_outdated
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_check_outdated_pairs_current_with_latest(project: Path) -> None:
    adapter = ManifestAdapter(registry_client=_client({"lodash": "4.17.21", "react": "18.3.1", "vitest": "1.0.0"}))

    outdated = asyncio.run(adapter.check_outdated(project))

    assert outdated == {"lodash": ("4.17.0", "4.17.21"), "react": ("17.0.2", "18.3.1")}


@pytest.mark.os_agnostic
def test_check_outdated_skips_workspace_and_catalog_references(project: Path) -> None:
    source = DictSource({"lodash": "4.17.0", "react": "17.0.2", "vitest": "1.0.0"})
    adapter = ManifestAdapter(registry_client=RegistryClient(source, retry_policy=RetryPolicy(max_attempts=1)))

    outdated = asyncio.run(adapter.check_outdated(project))

    assert outdated == {}
    assert sorted(source.calls) == ["lodash", "react", "vitest"]


@pytest.mark.os_agnostic
def test_check_outdated_leaves_out_failed_lookups(project: Path) -> None:
    adapter = ManifestAdapter(registry_client=_client({"react": "18.3.1"}))

    outdated = asyncio.run(adapter.check_outdated(project))

    assert outdated == {"react": ("17.0.2", "18.3.1")}


@pytest.mark.os_agnostic
def test_check_outdated_without_registry_client_is_an_adapter_error(project: Path) -> None:
    with pytest.raises(AdapterError, match="registry client"):
        asyncio.run(ManifestAdapter().check_outdated(project))
