"""Resolution of catalog references and direct declarations.

Purpose
-------
Find the effective version of a dependency across all workspaces, decide
whether an update belongs in the shared catalog or in individual manifests,
and write such updates back to disk.

Contents
--------
* :class:`CatalogResolver` - resolution, update-location decisions, rewrites

Priority Rules
--------------
When several workspaces declare the same dependency:

1. A direct declaration beats a catalog reference.
2. Among candidates of the same source an exact version beats a range.
3. Otherwise the higher version wins; ties keep the first declaration.

System Role
-----------
Used by the bulk processor to turn ``catalog:`` references into versions
and by the checker to plan and apply updates.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .models import (
    DependencySource,
    ResolvedDependency,
    RewriteKind,
    RewriteTarget,
    WorkspaceInfo,
    WorkspacePackage,
)
from .versions import (
    DEFAULT_CATALOG_NAME,
    apply_decorator,
    catalog_name_of,
    is_catalog_reference,
    is_valid_version,
    is_workspace_reference,
    parse_version,
    split_decorator,
)
from .workspace_manager import PACKAGE_JSON

logger = logging.getLogger(__name__)

_MANIFEST_SECTIONS = ("dependencies", "devDependencies")
_JSON_INDENT = re.compile(r"^([ \t]+)\S", re.MULTILINE)
_YAML_ENTRY = re.compile(
    r"""^(?P<indent> *)(?P<key>"[^"]*"|'[^']*'|(?!- )[^\s#'"][^:#]*?)"""
    r"""[ \t]*:(?=\s|$)(?P<value>.*)$"""
)
_YAML_VALUE = re.compile(r"""^(?P<lead>[ \t]*)(?P<scalar>"[^"]*"|'[^']*'|[^#]*?)(?P<trail>[ \t]*(?:#.*)?)$""")
# Characters that cannot start a plain YAML scalar.
_YAML_INDICATORS = frozenset("!&*>|%@`{['\"")


@dataclass(frozen=True, slots=True)
class _Candidate:
    """One workspace's view of a dependency version."""

    workspace: WorkspacePackage
    specified: str
    resolved: str
    source: DependencySource

    @property
    def is_exact(self) -> bool:
        decorator, rest = split_decorator(self.resolved.strip())
        return not decorator and not any(ch in rest for ch in "*xX| ")

    def beats(self, other: _Candidate) -> bool:
        if self.source is not other.source:
            return self.source is DependencySource.DIRECT
        if self.is_exact != other.is_exact:
            return self.is_exact
        mine = split_decorator(self.resolved.strip())[1]
        theirs = split_decorator(other.resolved.strip())[1]
        if is_valid_version(mine) and is_valid_version(theirs):
            return parse_version(mine) > parse_version(theirs)
        return False


def _lookup_catalog(info: WorkspaceInfo, package_name: str, catalog_name: str | None) -> str | None:
    if catalog_name is None:
        if info.catalog and package_name in info.catalog:
            return info.catalog[package_name]
        return (info.catalogs or {}).get(DEFAULT_CATALOG_NAME, {}).get(package_name)
    return (info.catalogs or {}).get(catalog_name, {}).get(package_name)


class CatalogResolver:
    """Stateless resolver over a :class:`~jsproj_dep_analyse.models.WorkspaceInfo`."""

    @staticmethod
    def resolve_catalog_reference(package_name: str, specifier: str, info: WorkspaceInfo) -> str | None:
        """Return the catalog specifier a ``catalog:`` reference points at, or None."""
        if not is_catalog_reference(specifier):
            return None
        return _lookup_catalog(info, package_name, catalog_name_of(specifier))

    @staticmethod
    def _candidates(package_name: str, info: WorkspaceInfo) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        for workspace in info.packages:
            specifier = workspace.get_specifier(package_name)
            if not specifier or is_workspace_reference(specifier):
                continue
            if is_catalog_reference(specifier):
                resolved = _lookup_catalog(info, package_name, catalog_name_of(specifier))
                if resolved is None:
                    logger.warning(
                        "Catalog reference %r for %s in %s has no catalog entry",
                        specifier,
                        package_name,
                        workspace.name,
                    )
                    continue
                candidates.append(_Candidate(workspace, specifier, resolved, DependencySource.CATALOG))
            else:
                candidates.append(_Candidate(workspace, specifier, specifier, DependencySource.DIRECT))
        return candidates

    @classmethod
    def resolve_dependency_version(cls, package_name: str, info: WorkspaceInfo) -> ResolvedDependency | None:
        """Return the effective version of ``package_name``, or None if undeclared.

        Example:
            >>> from pathlib import Path
            >>> from jsproj_dep_analyse.models import WorkspaceInfo, WorkspacePackage
            >>> pkg = WorkspacePackage(name="app", path=Path("/p"), dependencies={"react": "catalog:"})
            >>> info = WorkspaceInfo(True, Path("/"), [pkg], catalog={"react": "^18.2.0"})
            >>> resolved = CatalogResolver.resolve_dependency_version("react", info)
            >>> resolved.version, resolved.source.value, resolved.decorator
            ('18.2.0', 'catalog', '^')
        """
        best: _Candidate | None = None
        for candidate in cls._candidates(package_name, info):
            if best is None or candidate.beats(best):
                best = candidate
        if best is None:
            return None

        decorator, version = split_decorator(best.resolved.strip())
        return ResolvedDependency(
            name=package_name,
            version=version.strip(),
            source=best.source,
            original_specifier=best.specified,
            decorator=decorator,
        )

    @classmethod
    def should_update_catalog(cls, package_name: str, info: WorkspaceInfo) -> bool:
        """Return True when every consumer of ``package_name`` uses a resolvable catalog reference."""
        consumers = [w for w in info.packages if w.get_specifier(package_name)]
        if not consumers:
            return False
        for workspace in consumers:
            specifier = workspace.get_specifier(package_name) or ""
            if not is_catalog_reference(specifier):
                return False
            if _lookup_catalog(info, package_name, catalog_name_of(specifier)) is None:
                return False
        return True

    @staticmethod
    def get_catalog_dependencies(info: WorkspaceInfo) -> dict[str, set[str]]:
        """Map each catalog-referenced dependency to the workspaces referencing it."""
        result: dict[str, set[str]] = {}
        for workspace in info.packages:
            for name, specifier in workspace.all_dependencies().items():
                if is_catalog_reference(specifier):
                    result.setdefault(name, set()).add(workspace.name)
        return result

    @staticmethod
    def get_direct_update_workspaces(package_name: str, info: WorkspaceInfo) -> list[Path]:
        """Return the paths of workspaces that declare ``package_name`` directly."""
        paths: list[Path] = []
        for workspace in info.packages:
            specifier = workspace.get_specifier(package_name)
            if specifier and not is_catalog_reference(specifier) and not is_workspace_reference(specifier):
                paths.append(workspace.path)
        return paths

    @classmethod
    def plan_rewrites(cls, package_name: str, new_version: str, info: WorkspaceInfo) -> list[RewriteTarget]:
        """Return the file locations to rewrite to move ``package_name`` to ``new_version``.

        Catalog-only dependencies yield one target per referenced catalog;
        otherwise every direct declarer yields a manifest target. The original
        decorator of each location is kept.
        """
        if cls.should_update_catalog(package_name, info):
            if info.catalog_file is None:
                logger.warning("No catalog file known for %s, cannot plan catalog update", package_name)
                return []
            targets: dict[str | None, RewriteTarget] = {}
            for workspace in info.packages:
                specifier = workspace.get_specifier(package_name)
                if not specifier:
                    continue
                catalog_name = catalog_name_of(specifier)
                if catalog_name in targets:
                    continue
                current = _lookup_catalog(info, package_name, catalog_name) or ""
                decorator = split_decorator(current.strip())[0]
                targets[catalog_name] = RewriteTarget(
                    kind=RewriteKind.CATALOG,
                    file_path=info.catalog_file,
                    package_name=package_name,
                    new_specifier=apply_decorator(decorator, new_version),
                    catalog_name=catalog_name,
                )
            return list(targets.values())

        manifests: list[RewriteTarget] = []
        for workspace in info.packages:
            specifier = workspace.get_specifier(package_name)
            if not specifier or is_catalog_reference(specifier) or is_workspace_reference(specifier):
                continue
            decorator = split_decorator(specifier.strip())[0]
            manifests.append(
                RewriteTarget(
                    kind=RewriteKind.MANIFEST,
                    file_path=workspace.path / PACKAGE_JSON,
                    package_name=package_name,
                    new_specifier=apply_decorator(decorator, new_version),
                )
            )
        return manifests

    @classmethod
    def apply_rewrites(cls, targets: Iterable[RewriteTarget]) -> list[Path]:
        """Write ``targets`` to disk and return the files that changed.

        JSON files keep their indentation. YAML catalogs are edited line by
        line, so comments and layout outside the changed values survive.

        Raises:
            OSError: If a file cannot be read or written.
            ValueError: If a file cannot be parsed.
        """
        by_file: dict[Path, list[RewriteTarget]] = {}
        for target in targets:
            by_file.setdefault(target.file_path, []).append(target)

        changed: list[Path] = []
        for file_path, file_targets in by_file.items():
            if file_path.suffix in (".yaml", ".yml"):
                modified = cls._rewrite_yaml(file_path, file_targets)
            else:
                modified = cls._rewrite_json(file_path, file_targets)
            if modified:
                changed.append(file_path)
                logger.info("Updated %d dependency declaration(s) in %s", len(file_targets), file_path)
        return changed

    @staticmethod
    def _set_in_sections(data: dict[str, Any], target: RewriteTarget) -> bool:
        modified = False
        if target.kind is RewriteKind.MANIFEST:
            for section in _MANIFEST_SECTIONS:
                deps = data.get(section)
                if isinstance(deps, dict) and target.package_name in deps:
                    deps[target.package_name] = target.new_specifier
                    modified = True
            return modified

        # Catalogs live at the top level or, for bun, under "workspaces".
        holders = [data]
        if isinstance(data.get("workspaces"), dict):
            holders.append(data["workspaces"])
        for holder in holders:
            if target.catalog_name is None:
                catalog = holder.get("catalog")
                if not isinstance(catalog, dict) or target.package_name not in catalog:
                    catalog = (holder.get("catalogs") or {}).get(DEFAULT_CATALOG_NAME)
            else:
                catalog = (holder.get("catalogs") or {}).get(target.catalog_name)
            if isinstance(catalog, dict) and target.package_name in catalog:
                catalog[target.package_name] = target.new_specifier
                modified = True
        return modified

    @classmethod
    def _rewrite_json(cls, file_path: Path, targets: list[RewriteTarget]) -> bool:
        text = file_path.read_text(encoding="utf-8")
        data = json.loads(text)
        modified = False
        for target in targets:
            modified = cls._set_in_sections(data, target) or modified
        if modified:
            newline = "\n" if text.endswith("\n") else ""
            dumped = json.dumps(data, indent=_json_indent(text), ensure_ascii=False)
            file_path.write_text(dumped + newline, encoding="utf-8")
        return modified

    @staticmethod
    def _rewrite_yaml(file_path: Path, targets: list[RewriteTarget]) -> bool:
        """Replace catalog values in place, leaving every other line untouched."""
        with file_path.open(encoding="utf-8", newline="") as handle:
            lines = handle.read().splitlines(keepends=True)
        modified = False
        for target in targets:
            if target.catalog_name is None:
                paths = [("catalog", target.package_name), ("catalogs", DEFAULT_CATALOG_NAME, target.package_name)]
            else:
                paths = [("catalogs", target.catalog_name, target.package_name)]
            for path in paths:
                index = _find_yaml_entry(lines, path)
                if index is not None and _replace_yaml_value(lines, index, target.new_specifier):
                    modified = True
                    break
            else:
                logger.warning("No catalog entry for %s found in %s", target.package_name, file_path)
        if modified:
            with file_path.open("w", encoding="utf-8", newline="") as handle:
                handle.write("".join(lines))
        return modified


def _json_indent(text: str) -> int | str:
    match = _JSON_INDENT.search(text)
    if match is None:
        return 2
    indent = match.group(1)
    return "\t" if indent.startswith("\t") else len(indent)


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _is_yaml_content(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def _yaml_block_end(lines: list[str], index: int) -> int:
    """Return the index just past the block nested under the key at ``index``."""
    indent = _indent_of(lines[index])
    for position in range(index + 1, len(lines)):
        if _is_yaml_content(lines[position]) and _indent_of(lines[position]) <= indent:
            return position
    return len(lines)


def _find_yaml_entry(lines: list[str], path: tuple[str, ...]) -> int | None:
    """Return the index of the line holding the last key of ``path``, or None."""
    start, end = 0, len(lines)
    found: int | None = None
    for key in path:
        found = None
        child_indent: int | None = None
        for position in range(start, end):
            line = lines[position]
            if not _is_yaml_content(line):
                continue
            if child_indent is None:
                child_indent = _indent_of(line)
            if _indent_of(line) != child_indent:
                continue
            match = _YAML_ENTRY.match(line.rstrip("\r\n"))
            if match is not None and _unquote(match.group("key")) == key:
                found = position
                break
        if found is None:
            return None
        start, end = found + 1, _yaml_block_end(lines, found)
    return found


def _unquote(key: str) -> str:
    key = key.strip()
    if len(key) >= 2 and key[0] == key[-1] and key[0] in "\"'":
        return key[1:-1]
    return key


def _replace_yaml_value(lines: list[str], index: int, new_value: str) -> bool:
    line = lines[index]
    body = line.rstrip("\r\n")
    ending = line[len(body) :]
    entry = _YAML_ENTRY.match(body)
    if entry is None:
        return False
    value = _YAML_VALUE.match(entry.group("value"))
    if value is None or not value.group("scalar"):
        return False

    scalar = value.group("scalar")
    quote = scalar[0] if scalar[0] in "\"'" else ""
    if not quote and new_value[:1] in _YAML_INDICATORS:
        quote = '"'
    prefix = body[: entry.start("value")]
    lines[index] = f"{prefix}{value.group('lead')}{quote}{new_value}{quote}{value.group('trail')}{ending}"
    return True


__all__ = [
    "CatalogResolver",
]
