"""Catalog resolution stories: one effective version, one place to change it.

CatalogResolver looks through every workspace that declares a dependency,
follows catalog references, and picks the declaration that wins. It then
decides where an update must be written and writes it there.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from jsproj_dep_analyse.catalog_resolver import CatalogResolver
from jsproj_dep_analyse.models import DependencySource, RewriteKind, WorkspaceInfo, WorkspacePackage


def _info(*packages: WorkspacePackage, **kwargs: object) -> WorkspaceInfo:
    return WorkspaceInfo(is_monorepo=True, root_path=Path("/repo"), packages=list(packages), **kwargs)  # type: ignore[arg-type]


def _pkg(name: str, **deps: str) -> WorkspacePackage:
    return WorkspacePackage(name=name, path=Path("/repo") / name, dependencies=dict(deps))


# ════════════════════════════════════════════════════════════════════════════
# resolve_dependency_version
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_undeclared_dependency_resolves_to_none() -> None:
    info = _info(_pkg("a", lodash="^4.17.0"))

    assert CatalogResolver.resolve_dependency_version("react", info) is None


@pytest.mark.os_agnostic
def test_direct_declaration_strips_decorator() -> None:
    info = _info(_pkg("a", lodash="^4.17.0"))

    resolved = CatalogResolver.resolve_dependency_version("lodash", info)

    assert resolved is not None
    assert (resolved.version, resolved.decorator, resolved.source) == ("4.17.0", "^", DependencySource.DIRECT)


@pytest.mark.os_agnostic
def test_catalog_reference_resolves_through_default_catalog() -> None:
    info = _info(_pkg("a", react="catalog:"), catalog={"react": "~18.2.0"})

    resolved = CatalogResolver.resolve_dependency_version("react", info)

    assert resolved is not None
    assert resolved.version == "18.2.0"
    assert resolved.source is DependencySource.CATALOG
    assert resolved.original_specifier == "catalog:"


@pytest.mark.os_agnostic
def test_explicit_default_catalog_reference_resolves() -> None:
    info = _info(_pkg("a", react="catalog:default"), catalog={"react": "^18.2.0"})

    resolved = CatalogResolver.resolve_dependency_version("react", info)

    assert resolved is not None
    assert resolved.version == "18.2.0"


@pytest.mark.os_agnostic
def test_named_catalog_reference_resolves() -> None:
    info = _info(_pkg("a", react="catalog:legacy"), catalogs={"legacy": {"react": "^17.0.2"}})

    resolved = CatalogResolver.resolve_dependency_version("react", info)

    assert resolved is not None
    assert resolved.version == "17.0.2"


@pytest.mark.os_agnostic
def test_catalog_reference_without_entry_is_ignored() -> None:
    info = _info(_pkg("a", react="catalog:"))

    assert CatalogResolver.resolve_dependency_version("react", info) is None


@pytest.mark.os_agnostic
def test_workspace_reference_is_never_resolved() -> None:
    info = _info(_pkg("a", ui="workspace:*"))

    assert CatalogResolver.resolve_dependency_version("ui", info) is None


@pytest.mark.os_agnostic
def test_direct_declaration_beats_catalog_reference() -> None:
    info = _info(_pkg("a", react="catalog:"), _pkg("b", react="^17.0.0"), catalog={"react": "^18.2.0"})

    resolved = CatalogResolver.resolve_dependency_version("react", info)

    assert resolved is not None
    assert resolved.source is DependencySource.DIRECT
    assert resolved.version == "17.0.0"


@pytest.mark.os_agnostic
def test_exact_version_beats_range() -> None:
    info = _info(_pkg("a", lodash="^4.17.21"), _pkg("b", lodash="4.17.0"))

    resolved = CatalogResolver.resolve_dependency_version("lodash", info)

    assert resolved is not None
    assert resolved.version == "4.17.0"
    assert resolved.decorator == ""


@pytest.mark.os_agnostic
def test_higher_version_wins_among_ranges() -> None:
    info = _info(_pkg("a", lodash="^4.17.0"), _pkg("b", lodash="^4.17.21"))

    resolved = CatalogResolver.resolve_dependency_version("lodash", info)

    assert resolved is not None
    assert resolved.version == "4.17.21"


@pytest.mark.os_agnostic
def test_first_declaration_wins_when_not_comparable() -> None:
    info = _info(_pkg("a", lodash="^4"), _pkg("b", lodash="^4.x"))

    resolved = CatalogResolver.resolve_dependency_version("lodash", info)

    assert resolved is not None
    assert resolved.original_specifier == "^4"


# ════════════════════════════════════════════════════════════════════════════
# should_update_catalog and helpers
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_catalog_only_dependency_updates_catalog() -> None:
    info = _info(
        _pkg("a", **{"shared-lib": "catalog:"}),
        _pkg("b", **{"shared-lib": "catalog:"}),
        catalog={"shared-lib": "^1.0.0"},
    )

    assert CatalogResolver.should_update_catalog("shared-lib", info) is True


@pytest.mark.os_agnostic
def test_mixed_declarations_do_not_update_catalog() -> None:
    info = _info(_pkg("a", react="catalog:"), _pkg("b", react="^18.0.0"), catalog={"react": "^18.2.0"})

    assert CatalogResolver.should_update_catalog("react", info) is False


@pytest.mark.os_agnostic
def test_unresolvable_catalog_reference_does_not_update_catalog() -> None:
    info = _info(_pkg("a", react="catalog:"))

    assert CatalogResolver.should_update_catalog("react", info) is False


@pytest.mark.os_agnostic
def test_undeclared_dependency_does_not_update_catalog() -> None:
    info = _info(_pkg("a"), catalog={"react": "^18.2.0"})

    assert CatalogResolver.should_update_catalog("react", info) is False


@pytest.mark.os_agnostic
def test_catalog_dependencies_map_to_consuming_workspaces() -> None:
    info = _info(_pkg("a", react="catalog:"), _pkg("b", react="catalog:", lodash="^4.0.0"))

    assert CatalogResolver.get_catalog_dependencies(info) == {"react": {"a", "b"}}


@pytest.mark.os_agnostic
def test_direct_update_workspaces_skip_catalog_consumers() -> None:
    info = _info(_pkg("a", react="catalog:"), _pkg("b", react="^18.0.0"))

    assert CatalogResolver.get_direct_update_workspaces("react", info) == [Path("/repo/b")]


# ════════════════════════════════════════════════════════════════════════════
# plan_rewrites
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_catalog_only_dependency_yields_one_catalog_target() -> None:
    info = _info(
        _pkg("a", **{"shared-lib": "catalog:"}),
        _pkg("b", **{"shared-lib": "catalog:"}),
        _pkg("c", lodash="^4.0.0"),
        catalog={"shared-lib": "^1.0.0"},
        catalog_file=Path("/repo/pnpm-workspace.yaml"),
    )

    targets = CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info)

    assert len(targets) == 1
    assert targets[0].kind is RewriteKind.CATALOG
    assert targets[0].new_specifier == "^1.2.0"
    assert targets[0].file_path == Path("/repo/pnpm-workspace.yaml")


@pytest.mark.os_agnostic
def test_direct_declarers_each_get_a_manifest_target() -> None:
    info = _info(_pkg("a", lodash="~4.17.0"), _pkg("b", lodash=">=4.0.0"), _pkg("c"))

    targets = CatalogResolver.plan_rewrites("lodash", "4.17.21", info)

    assert [(t.file_path, t.new_specifier) for t in targets] == [
        (Path("/repo/a/package.json"), "~4.17.21"),
        (Path("/repo/b/package.json"), ">=4.17.21"),
    ]


@pytest.mark.os_agnostic
def test_catalog_plan_without_catalog_file_is_empty() -> None:
    info = _info(_pkg("a", react="catalog:"), catalog={"react": "^18.2.0"})

    assert CatalogResolver.plan_rewrites("react", "18.3.1", info) == []


# ════════════════════════════════════════════════════════════════════════════
# apply_rewrites
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_apply_rewrites_updates_manifest_sections(tmp_path: Path) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text(
        json.dumps({"name": "a", "dependencies": {"lodash": "^4.17.0"}, "devDependencies": {"vitest": "^1.0.0"}}),
        encoding="utf-8",
    )
    info = WorkspaceInfo(
        is_monorepo=False,
        root_path=tmp_path,
        packages=[WorkspacePackage(name="a", path=tmp_path, dependencies={"lodash": "^4.17.0"})],
    )

    CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("lodash", "4.17.21", info))

    data = json.loads(manifest.read_text(encoding="utf-8"))
    assert data["dependencies"]["lodash"] == "^4.17.21"
    assert data["devDependencies"]["vitest"] == "^1.0.0"


@pytest.mark.os_agnostic
def test_apply_rewrites_updates_pnpm_catalog(tmp_path: Path) -> None:
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text("packages:\n  - packages/*\ncatalog:\n  shared-lib: ^1.0.0\n", encoding="utf-8")
    info = WorkspaceInfo(
        is_monorepo=True,
        root_path=tmp_path,
        packages=[WorkspacePackage(name="a", path=tmp_path / "a", dependencies={"shared-lib": "catalog:"})],
        catalog={"shared-lib": "^1.0.0"},
        catalog_file=workspace_file,
    )

    changed = CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info))

    data = yaml.safe_load(workspace_file.read_text(encoding="utf-8"))
    assert changed == [workspace_file]
    assert data["catalog"]["shared-lib"] == "^1.2.0"
    assert data["packages"] == ["packages/*"]


@pytest.mark.os_agnostic
def test_apply_rewrites_updates_named_catalog_in_package_json(tmp_path: Path) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text(
        json.dumps({"name": "mono", "workspaces": {"packages": [], "catalogs": {"legacy": {"react": "^17.0.0"}}}}),
        encoding="utf-8",
    )
    info = WorkspaceInfo(
        is_monorepo=True,
        root_path=tmp_path,
        packages=[WorkspacePackage(name="a", path=tmp_path / "a", dependencies={"react": "catalog:legacy"})],
        catalogs={"legacy": {"react": "^17.0.0"}},
        catalog_file=manifest,
    )

    CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("react", "17.0.2", info))

    data = json.loads(manifest.read_text(encoding="utf-8"))
    assert data["workspaces"]["catalogs"]["legacy"]["react"] == "^17.0.2"


def _catalog_info(catalog_file: Path, specifier: str = "catalog:", **kwargs: object) -> WorkspaceInfo:
    return WorkspaceInfo(
        is_monorepo=True,
        root_path=catalog_file.parent,
        packages=[WorkspacePackage(name="a", path=catalog_file.parent / "a", dependencies={"shared-lib": specifier})],
        catalog_file=catalog_file,
        **kwargs,  # type: ignore[arg-type]
    )


@pytest.mark.os_agnostic
def test_yaml_catalog_rewrite_keeps_comments_and_layout(tmp_path: Path) -> None:
    original = (
        "# managed by platform team\n"
        "packages:\n"
        "    - 'packages/*'\n"
        "    - apps/*   # deployable apps\n"
        "\n"
        "catalog:\n"
        "    # shared across every package\n"
        "    react: ^18.2.0\n"
        "    shared-lib: ^1.0.0  # pinned until 2.x\n"
    )
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text(original, encoding="utf-8")
    info = _catalog_info(workspace_file, catalog={"react": "^18.2.0", "shared-lib": "^1.0.0"})

    changed = CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info))

    assert changed == [workspace_file]
    assert workspace_file.read_text(encoding="utf-8") == original.replace(
        "shared-lib: ^1.0.0  # pinned", "shared-lib: ^1.2.0  # pinned"
    )


@pytest.mark.os_agnostic
def test_yaml_named_catalog_rewrite_leaves_other_catalogs(tmp_path: Path) -> None:
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text(
        "catalog:\n  shared-lib: ^1.0.0\n"
        "catalogs:\n  legacy:\n    shared-lib: ~0.9.0\n  next:\n    shared-lib: ^2.0.0\n",
        encoding="utf-8",
    )
    info = _catalog_info(
        workspace_file,
        "catalog:legacy",
        catalog={"shared-lib": "^1.0.0"},
        catalogs={"legacy": {"shared-lib": "~0.9.0"}, "next": {"shared-lib": "^2.0.0"}},
    )

    CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "0.9.4", info))

    data = yaml.safe_load(workspace_file.read_text(encoding="utf-8"))
    assert data["catalogs"]["legacy"]["shared-lib"] == "~0.9.4"
    assert data["catalogs"]["next"]["shared-lib"] == "^2.0.0"
    assert data["catalog"]["shared-lib"] == "^1.0.0"


@pytest.mark.os_agnostic
def test_yaml_quoted_catalog_value_keeps_its_quotes(tmp_path: Path) -> None:
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text("catalog:\n  'shared-lib': \"^1.0.0\"\r\n", encoding="utf-8")
    info = _catalog_info(workspace_file, catalog={"shared-lib": "^1.0.0"})

    CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info))

    assert workspace_file.read_bytes().decode("utf-8") == "catalog:\n  'shared-lib': \"^1.2.0\"\r\n"


@pytest.mark.os_agnostic
def test_yaml_default_catalog_falls_back_to_catalogs_default(tmp_path: Path) -> None:
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text("catalogs:\n  default:\n    shared-lib: ^1.0.0\n", encoding="utf-8")
    info = _catalog_info(workspace_file, catalogs={"default": {"shared-lib": "^1.0.0"}})

    changed = CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info))

    assert changed == [workspace_file]
    assert workspace_file.read_text(encoding="utf-8") == "catalogs:\n  default:\n    shared-lib: ^1.2.0\n"


@pytest.mark.os_agnostic
def test_yaml_catalog_without_entry_is_left_untouched(tmp_path: Path) -> None:
    workspace_file = tmp_path / "pnpm-workspace.yaml"
    workspace_file.write_text("catalog:\n  react: ^18.2.0\n", encoding="utf-8")
    info = _catalog_info(workspace_file, catalog={"shared-lib": "^1.0.0"})

    changed = CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("shared-lib", "1.2.0", info))

    assert changed == []
    assert workspace_file.read_text(encoding="utf-8") == "catalog:\n  react: ^18.2.0\n"


@pytest.mark.os_agnostic
@pytest.mark.parametrize("indent", ["\t", "    "], ids=["tab", "four-spaces"])
def test_manifest_rewrite_keeps_existing_indentation(tmp_path: Path, indent: str) -> None:
    manifest = tmp_path / "package.json"
    manifest.write_text(
        json.dumps({"name": "a", "dependencies": {"lodash": "^4.17.0"}}, indent=indent) + "\n",
        encoding="utf-8",
    )
    info = WorkspaceInfo(
        is_monorepo=False,
        root_path=tmp_path,
        packages=[WorkspacePackage(name="a", path=tmp_path, dependencies={"lodash": "^4.17.0"})],
    )

    CatalogResolver.apply_rewrites(CatalogResolver.plan_rewrites("lodash", "4.17.21", info))

    expected = json.dumps({"name": "a", "dependencies": {"lodash": "^4.17.21"}}, indent=indent) + "\n"
    assert manifest.read_text(encoding="utf-8") == expected
