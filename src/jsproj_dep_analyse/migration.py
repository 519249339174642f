"""Migration instructions for breaking updates.

Purpose
-------
Provide upgrade notes for major version bumps. Package-specific notes come
from explicitly registered providers; every other package gets a generic
notice.

Contents
--------
* :class:`MigrationRule` / :class:`PackageMigrationInfo` - provider data
* :class:`MigrationProvider` - protocol implemented by rule providers
* :class:`MigrationRegistry` - provider lookup; implements the
  :class:`~jsproj_dep_analyse.adapters.MigrationAdvisor` protocol

System Role
-----------
Consulted by the update decision engine for each breaking candidate.
Providers are never discovered implicitly; call
:meth:`MigrationRegistry.register`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from .versions import is_valid_version, parse_version


@dataclass(frozen=True, slots=True)
class MigrationRule:
    """Notes for moving between two version ranges.

    Ranges use ``x`` wildcards per component, e.g. ``"17.x.x"``.
    """

    from_version: str
    to_version: str
    instructions: str
    breaking_changes: tuple[str, ...] = ()


def _empty_rules() -> list[MigrationRule]:
    return []


@dataclass(frozen=True, slots=True)
class PackageMigrationInfo:
    """Everything a provider knows about one package."""

    name: str
    rules: list[MigrationRule] = field(default_factory=_empty_rules)
    documentation_url: str | None = None
    changelog_url: str | None = None


class MigrationProvider(Protocol):
    """Supplies migration rules for exactly one package."""

    def get_package_name(self) -> str: ...

    def get_migration_info(self) -> PackageMigrationInfo: ...


def version_matches_range(version: str, pattern: str) -> bool:
    """Return True when ``version`` falls into an ``x``-wildcard range.

    Example:
        >>> version_matches_range("17.0.2", "17.x.x")
        True
        >>> version_matches_range("18.2.0", "17.x")
        False
    """
    if not is_valid_version(version):
        return False
    parsed = parse_version(version)
    for actual, expected in zip((parsed.major, parsed.minor, parsed.patch), pattern.strip().split(".")):
        if expected.lower() in ("x", "*"):
            continue
        if not expected.isdigit() or int(expected) != actual:
            return False
    return True


def generic_instructions(package_name: str, from_version: str, to_version: str) -> str:
    """Build the notice used when no provider rule applies."""
    return (
        f"## {package_name} Major Version Update: {from_version} → {to_version}\n\n"
        "Major version change detected. This update may include breaking changes.\n\n"
        "### Recommended Steps:\n"
        "1. Review the release notes or changelog of the package\n"
        "2. Update related packages to compatible versions\n"
        "3. Look for deprecated API usage and update it\n"
        "4. Run your test suite\n"
    )


class MigrationRegistry:
    """Registry of migration providers keyed by package name."""

    def __init__(self, providers: Iterable[MigrationProvider] = ()) -> None:
        self._providers: dict[str, MigrationProvider] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: MigrationProvider) -> None:
        """Add ``provider``; a later registration for the same package replaces the earlier one."""
        self._providers[provider.get_package_name()] = provider

    def unregister(self, package_name: str) -> None:
        self._providers.pop(package_name, None)

    def get_provider(self, package_name: str) -> MigrationProvider | None:
        return self._providers.get(package_name)

    def list_supported_packages(self) -> list[str]:
        return sorted(self._providers)

    def find_rule(self, package_name: str, from_version: str, to_version: str) -> MigrationRule | None:
        """Return the first provider rule covering the version pair."""
        provider = self.get_provider(package_name)
        if provider is None:
            return None
        for rule in provider.get_migration_info().rules:
            if version_matches_range(from_version, rule.from_version) and version_matches_range(
                to_version, rule.to_version
            ):
                return rule
        return None

    async def get_migration_instructions(self, package_name: str, from_version: str, to_version: str) -> str:
        """Return provider instructions for the bump, or a generic notice."""
        rule = self.find_rule(package_name, from_version, to_version)
        if rule is not None:
            return rule.instructions
        return generic_instructions(package_name, from_version, to_version)


__all__ = [
    "MigrationProvider",
    "MigrationRegistry",
    "MigrationRule",
    "PackageMigrationInfo",
    "generic_instructions",
    "version_matches_range",
]
