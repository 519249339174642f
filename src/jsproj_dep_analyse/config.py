"""Configuration management using lib_layered_config.

Purpose
-------
Provides a centralized configuration loader that merges defaults, application
configs, host configs, user configs, .env files, and environment variables
following a deterministic precedence order, and turns the ``[updates]``
section into a fully typed, immutable :class:`UpdateConfig`.

Contents
--------
* :func:`get_config` – loads configuration with lib_layered_config
* :func:`get_default_config_path` – returns path to bundled default config
* :class:`PackageRule` / :class:`UpdateConfig` – typed update policy
* :func:`load_update_config` – validates a raw mapping into an UpdateConfig
* :func:`get_update_config` – the effective UpdateConfig for this invocation

Configuration identifiers (vendor, app, slug) are imported from
:mod:`jsproj_dep_analyse.__init__conf__` as LAYEREDCONF_* constants.

System Role
-----------
Acts as the configuration adapter layer, bridging lib_layered_config with the
application's runtime needs while keeping domain logic decoupled from
configuration mechanics.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

from lib_layered_config import Config, read_config
from pydantic import ValidationError

from . import __init__conf__
from .errors import ConfigurationError
from .models import UpdateStrategy
from .schemas import UpdateConfigSchema

if TYPE_CHECKING:
    from .registry_client import RetryPolicy

# Environment variable prefix for native (short) env vars
_ENV_PREFIX = "JSPROJ_DEP_ANALYSE_"

_CONFIG_SECTION = "updates"


def get_default_config_path() -> Path:
    """Return the path to the bundled default configuration file.

    Returns:
        Absolute path to defaultconfig.toml.

    Example:
        >>> path = get_default_config_path()
        >>> path.name
        'defaultconfig.toml'
        >>> path.exists()
        True
    """
    return Path(__file__).parent / "defaultconfig.toml"


@lru_cache(maxsize=1)
def get_config(*, start_dir: str | None = None) -> Config:
    """Load layered configuration with application defaults.

    Loads configuration from multiple sources in precedence order:
    defaults → app → host → user → dotenv → env

    Args:
        start_dir: Optional directory that seeds .env discovery. Defaults to
            current working directory when None.

    Returns:
        Immutable configuration object with provenance tracking.

    Note:
        This function is cached (maxsize=1). The first call loads and parses
        all configuration files; subsequent calls with the same start_dir
        return the cached Config instance immediately.
    """
    return read_config(
        vendor=__init__conf__.LAYEREDCONF_VENDOR,
        app=__init__conf__.LAYEREDCONF_APP,
        slug=__init__conf__.LAYEREDCONF_SLUG,
        default_file=get_default_config_path(),
        start_dir=start_dir,
    )


@lru_cache(maxsize=256)
def _pattern_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``*`` wildcard pattern into an anchored regex."""
    return re.compile("^" + re.escape(pattern).replace(r"\*", ".*") + "$")


def _is_wildcard(pattern: str) -> bool:
    return "*" in pattern


def _matches(pattern: str, value: str) -> bool:
    """Return True when ``value`` equals ``pattern`` or matches its wildcards."""
    if not _is_wildcard(pattern):
        return pattern == value
    return _pattern_regex(pattern).match(value) is not None


def _specificity(pattern: str) -> int:
    """Number of literal characters; more literals means more specific."""
    return len(pattern.replace("*", ""))


@dataclass(frozen=True, slots=True)
class PackageRule:
    """Update policy for the packages matching ``pattern``.

    Attributes:
        pattern: Exact package name or wildcard pattern like ``@scope/*``.
        update_strategy: Highest bump level allowed for matching packages.
        auto_update: Whether ``update`` may apply changes unattended. None
            means no opinion.
        ignored_versions: Versions (or wildcard patterns) never offered.
    """

    pattern: str
    update_strategy: UpdateStrategy
    auto_update: bool | None = None
    ignored_versions: tuple[str, ...] = ()

    @property
    def is_wildcard(self) -> bool:
        """Whether the pattern contains a ``*``."""
        return _is_wildcard(self.pattern)

    def matches(self, package_name: str) -> bool:
        """Return True when the rule applies to ``package_name``."""
        return _matches(self.pattern, package_name)


def _empty_ignored_versions() -> dict[str, tuple[str, ...]]:
    return {}


@dataclass(frozen=True, slots=True)
class UpdateConfig:
    """Immutable, fully typed update policy.

    Every recognised option is listed here with its default. Instances are
    built through :func:`load_update_config`, which rejects type mismatches.
    Use :meth:`with_updates` to derive a changed copy.

    Attributes:
        ignored_packages: Names or wildcard patterns never checked.
        ignored_versions: Package name → versions never offered.
        package_rules: Ordered per-package policies.
        default_update_strategy: Strategy when no rule matches.
        allow_major_updates: When False, major bumps are always reported as
            breaking changes.
        include_dev: Whether devDependencies take part in bulk collection.
        batch_size: Maximum concurrent registry lookups.
        retry_attempts: Maximum attempts per registry lookup.
        retry_delay: Base delay in seconds between attempts.
        retry_backoff: ``constant``, ``linear`` or ``exponential``.
        registry_url: npm-compatible registry base URL.
        timeout: Per-request timeout in seconds.
        cache_ttl: Version cache lifetime in seconds.
        stable_cache_ttl: Lifetime for packages listed in ``stable_packages``.
        stable_packages: Packages that rarely publish and are cached longer.
        cache_dir: Cache directory, relative to the project root unless absolute.
    """

    ignored_packages: tuple[str, ...] = ()
    ignored_versions: dict[str, tuple[str, ...]] = field(default_factory=_empty_ignored_versions)
    package_rules: tuple[PackageRule, ...] = ()
    default_update_strategy: UpdateStrategy = UpdateStrategy.MAJOR
    allow_major_updates: bool = False
    include_dev: bool = True
    batch_size: int = 50
    retry_attempts: int = 3
    retry_delay: float = 1.0
    retry_backoff: str = "linear"
    registry_url: str = "https://registry.npmjs.org"
    timeout: float = 30.0
    cache_ttl: float = 7200.0
    stable_cache_ttl: float = 86400.0
    stable_packages: tuple[str, ...] = ()
    cache_dir: str = ".jsproj-dep-analyse"

    def should_ignore_package(self, package_name: str) -> bool:
        """Return True when the package is listed in ``ignored_packages``."""
        return any(_matches(pattern, package_name) for pattern in self.ignored_packages)

    def should_ignore_version(self, package_name: str, version: str) -> bool:
        """Return True when ``version`` of ``package_name`` must not be offered."""
        patterns = list(self.ignored_versions.get(package_name, ()))
        rule = self.find_package_rule(package_name)
        if rule is not None:
            patterns.extend(rule.ignored_versions)
        return any(_matches(pattern, version) for pattern in patterns)

    def find_package_rule(self, package_name: str) -> PackageRule | None:
        """Return the most specific rule for a package.

        An exact name match wins over any wildcard match. Among wildcard
        matches the pattern with the most literal characters wins; ties go
        to the rule declared first.
        """
        for rule in self.package_rules:
            if not rule.is_wildcard and rule.pattern == package_name:
                return rule

        best: PackageRule | None = None
        for rule in self.package_rules:
            if not rule.is_wildcard or not rule.matches(package_name):
                continue
            if best is None or _specificity(rule.pattern) > _specificity(best.pattern):
                best = rule
        return best

    def get_update_strategy_for_package(self, package_name: str) -> UpdateStrategy:
        """Resolve the strategy: exact rule > wildcard rule > default."""
        rule = self.find_package_rule(package_name)
        if rule is not None:
            return rule.update_strategy
        return self.default_update_strategy

    def should_auto_update(self, package_name: str) -> bool:
        """Return the rule's ``auto_update`` flag, True when unset."""
        rule = self.find_package_rule(package_name)
        if rule is None or rule.auto_update is None:
            return True
        return rule.auto_update

    def should_allow_major_update(self) -> bool:
        """Return True when major bumps may be offered as ordinary updates."""
        return self.allow_major_updates

    def retry_policy(self) -> RetryPolicy:
        """Build the retry policy consumed by the registry client."""
        from .registry_client import BackoffKind, RetryPolicy

        return RetryPolicy(
            max_attempts=self.retry_attempts,
            base_delay=self.retry_delay,
            backoff=BackoffKind(self.retry_backoff),
        )

    def to_mapping(self) -> dict[str, Any]:
        """Return the configuration as a plain mapping (snake_case keys)."""
        return {
            "ignored_packages": list(self.ignored_packages),
            "ignored_versions": {name: list(versions) for name, versions in self.ignored_versions.items()},
            "package_rules": [
                {
                    "pattern": rule.pattern,
                    "update_strategy": rule.update_strategy.value,
                    "auto_update": rule.auto_update,
                    "ignored_versions": list(rule.ignored_versions),
                }
                for rule in self.package_rules
            ],
            "default_update_strategy": self.default_update_strategy.value,
            "allow_major_updates": self.allow_major_updates,
            "include_dev": self.include_dev,
            "batch_size": self.batch_size,
            "retry_attempts": self.retry_attempts,
            "retry_delay": self.retry_delay,
            "retry_backoff": self.retry_backoff,
            "registry_url": self.registry_url,
            "timeout": self.timeout,
            "cache_ttl": self.cache_ttl,
            "stable_cache_ttl": self.stable_cache_ttl,
            "stable_packages": list(self.stable_packages),
            "cache_dir": self.cache_dir,
        }

    def with_updates(self, **changes: Any) -> UpdateConfig:
        """Return a copy with ``changes`` applied, validated like a fresh load.

        Raises:
            ConfigurationError: If a changed value has the wrong type.
        """
        return load_update_config({**self.to_mapping(), **changes})


def _rule_from_schema(schema: Any) -> PackageRule:
    return PackageRule(
        pattern=schema.pattern,
        update_strategy=UpdateStrategy(schema.update_strategy),
        auto_update=schema.auto_update,
        ignored_versions=tuple(schema.ignored_versions),
    )


def load_update_config(raw: Mapping[str, Any] | None = None) -> UpdateConfig:
    """Validate a raw configuration mapping into an :class:`UpdateConfig`.

    Unknown keys are ignored; missing keys take their defaults.

    Raises:
        ConfigurationError: If any recognised key has the wrong type or an
            out-of-range value.
    """
    try:
        schema = UpdateConfigSchema.model_validate(dict(raw or {}))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid update configuration: {exc}") from exc

    return UpdateConfig(
        ignored_packages=tuple(schema.ignored_packages),
        ignored_versions={name: tuple(versions) for name, versions in schema.ignored_versions.items()},
        package_rules=tuple(_rule_from_schema(rule) for rule in schema.package_rules),
        default_update_strategy=UpdateStrategy(schema.default_update_strategy),
        allow_major_updates=schema.allow_major_updates,
        include_dev=schema.include_dev,
        batch_size=schema.batch_size,
        retry_attempts=schema.retry_attempts,
        retry_delay=float(schema.retry_delay),
        retry_backoff=schema.retry_backoff,
        registry_url=schema.registry_url,
        timeout=float(schema.timeout),
        cache_ttl=float(schema.cache_ttl),
        stable_cache_ttl=float(schema.stable_cache_ttl),
        stable_packages=tuple(schema.stable_packages),
        cache_dir=schema.cache_dir,
    )


def _env_int(key: str) -> int | None:
    raw = os.environ.get(f"{_ENV_PREFIX}{key}")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{_ENV_PREFIX}{key} must be an integer, got {raw!r}") from exc


def get_update_config(*, start_dir: str | None = None) -> UpdateConfig:
    """Get the update policy from configuration with environment overrides.

    Settings are resolved in the following precedence order (highest wins):
    1. Native environment variables (JSPROJ_DEP_ANALYSE_BATCH_SIZE, etc.)
    2. lib_layered_config environment variables (JSPROJ_DEP_ANALYSE___UPDATES__*)
    3. User config file (~/.config/jsproj-dep-analyse/config.toml)
    4. Host config file
    5. Application config file
    6. Default config (bundled defaultconfig.toml)

    Raises:
        ConfigurationError: If the merged configuration is malformed.
    """
    config = get_config(start_dir=start_dir)
    section = config.get(_CONFIG_SECTION, default={})
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"[{_CONFIG_SECTION}] must be a table, got {type(section).__name__}")
    raw: dict[str, Any] = dict(section)

    if (batch_size := _env_int("BATCH_SIZE")) is not None:
        raw["batch_size"] = batch_size
    if (retry_attempts := _env_int("RETRY_ATTEMPTS")) is not None:
        raw["retry_attempts"] = retry_attempts
    if registry_url := os.environ.get(f"{_ENV_PREFIX}REGISTRY_URL"):
        raw["registry_url"] = registry_url

    return load_update_config(raw)


__all__ = [
    "PackageRule",
    "UpdateConfig",
    "get_config",
    "get_default_config_path",
    "get_update_config",
    "load_update_config",
]
