"""Pydantic schemas for external data boundaries.

Purpose
-------
Define Pydantic models for data that crosses system boundaries:
- Input: package.json manifests, pnpm-workspace.yaml, npm registry
  responses, the persisted version cache and raw configuration mappings
- Output: JSON serialization of update results

These models handle validation, coercion, and serialization at the edges
while internal business logic uses lightweight dataclasses.

Data Flow Pattern
-----------------
External Input → Pydantic (validate) → Dataclass (domain) → Pydantic (serialize) → External Output
"""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

StrategyName = Literal["major", "minor", "patch", "none"]
BackoffName = Literal["constant", "linear", "exponential"]


def _empty_str_list() -> list[str]:
    """Return empty string list for default factory."""
    return []


def _empty_str_dict() -> dict[str, str]:
    """Return empty string mapping for default factory."""
    return {}


class WorkspacesObjectSchema(BaseModel):
    """Object form of the ``workspaces`` field.

    Yarn uses ``{"packages": [...], "nohoist": [...]}``; bun additionally
    allows ``catalog``/``catalogs`` in this object.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    packages: list[str] = Field(default_factory=_empty_str_list)
    catalog: dict[str, str] | None = None
    catalogs: dict[str, dict[str, str]] | None = None


class PackageJsonSchema(BaseModel):
    """Schema for the parts of package.json this tool reads."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    name: str | None = None
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=_empty_str_dict)
    dev_dependencies: dict[str, str] = Field(default_factory=_empty_str_dict, alias="devDependencies")
    workspaces: list[str] | WorkspacesObjectSchema | None = None
    catalog: dict[str, str] | None = None
    catalogs: dict[str, dict[str, str]] | None = None
    package_manager: str | None = Field(default=None, alias="packageManager")


class PnpmWorkspaceSchema(BaseModel):
    """Schema for pnpm-workspace.yaml."""

    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    packages: list[str] = Field(default_factory=_empty_str_list)
    catalog: dict[str, str] | None = None
    catalogs: dict[str, dict[str, str]] | None = None


class InstalledPackageSchema(BaseModel):
    """Schema for node_modules/<name>/package.json."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: str | None = None


class NpmLatestSchema(BaseModel):
    """Schema for the npm registry ``/<name>/latest`` response."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str | None = None
    version: str = ""


class CacheFileEntrySchema(BaseModel):
    """One entry of the persisted version cache file."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    version: str
    fetched_at: float = Field(alias="fetchedAt")
    ttl: float | None = None


class PackageRuleSchema(BaseModel):
    """Schema for one ``package_rules`` entry of the configuration."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    pattern: StrictStr
    update_strategy: StrategyName = Field(validation_alias=AliasChoices("update_strategy", "updateStrategy"))
    auto_update: StrictBool | None = Field(default=None, validation_alias=AliasChoices("auto_update", "autoUpdate"))
    ignored_versions: list[StrictStr] = Field(
        default_factory=_empty_str_list,
        validation_alias=AliasChoices("ignored_versions", "ignoredVersions"),
    )


def _empty_rule_list() -> list[PackageRuleSchema]:
    """Return empty rule list for default factory."""
    return []


def _empty_ignored_versions() -> dict[str, list[str]]:
    """Return empty ignored-versions mapping for default factory."""
    return {}


class UpdateConfigSchema(BaseModel):
    """Schema for the ``[updates]`` configuration section.

    Unknown keys are ignored. Types are not coerced: a string where a
    boolean or integer is expected fails validation. Both snake_case and
    camelCase keys are accepted.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    ignored_packages: list[StrictStr] = Field(
        default_factory=_empty_str_list,
        validation_alias=AliasChoices("ignored_packages", "ignoredPackages"),
    )
    ignored_versions: dict[StrictStr, list[StrictStr]] = Field(
        default_factory=_empty_ignored_versions,
        validation_alias=AliasChoices("ignored_versions", "ignoredVersions"),
    )
    package_rules: list[PackageRuleSchema] = Field(
        default_factory=_empty_rule_list,
        validation_alias=AliasChoices("package_rules", "packageRules"),
    )
    default_update_strategy: StrategyName = Field(
        default="major",
        validation_alias=AliasChoices("default_update_strategy", "defaultUpdateStrategy"),
    )
    allow_major_updates: StrictBool = Field(
        default=False,
        validation_alias=AliasChoices("allow_major_updates", "allowMajorUpdates"),
    )
    include_dev: StrictBool = Field(default=True, validation_alias=AliasChoices("include_dev", "includeDev"))
    batch_size: StrictInt = Field(default=50, gt=0, validation_alias=AliasChoices("batch_size", "batchSize"))
    retry_attempts: StrictInt = Field(
        default=3,
        gt=0,
        validation_alias=AliasChoices("retry_attempts", "retryAttempts"),
    )
    retry_delay: StrictFloat = Field(default=1.0, ge=0, validation_alias=AliasChoices("retry_delay", "retryDelay"))
    retry_backoff: BackoffName = Field(
        default="linear",
        validation_alias=AliasChoices("retry_backoff", "retryBackoff"),
    )
    registry_url: StrictStr = Field(
        default="https://registry.npmjs.org",
        validation_alias=AliasChoices("registry_url", "registryUrl"),
    )
    timeout: StrictFloat = Field(default=30.0, gt=0)
    cache_ttl: StrictFloat = Field(default=7200.0, gt=0, validation_alias=AliasChoices("cache_ttl", "cacheTtl"))
    stable_cache_ttl: StrictFloat = Field(
        default=86400.0,
        gt=0,
        validation_alias=AliasChoices("stable_cache_ttl", "stableCacheTtl"),
    )
    stable_packages: list[StrictStr] = Field(
        default_factory=_empty_str_list,
        validation_alias=AliasChoices("stable_packages", "stablePackages"),
    )
    cache_dir: StrictStr = Field(
        default=".jsproj-dep-analyse",
        validation_alias=AliasChoices("cache_dir", "cacheDir"),
    )


class UpdateCandidateSchema(BaseModel):
    """Pydantic schema for serializing one update candidate to JSON."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="The name of the package")
    current_version: str = Field(description="Declared version without decorator")
    installed_version: str | None = Field(default=None, description="Version found in node_modules")
    new_version: str = Field(description="Latest registry version")
    has_breaking_changes: bool = Field(description="Whether the update is a major bump")
    migration_instructions: str | None = Field(default=None, description="Upgrade notes for breaking updates")


def _empty_candidate_list() -> list[UpdateCandidateSchema]:
    """Return empty candidate list for default factory."""
    return []


class UpdateResultSchema(BaseModel):
    """Pydantic schema for complete update result serialization."""

    model_config = ConfigDict(frozen=True)

    updatable: list[UpdateCandidateSchema] = Field(default_factory=_empty_candidate_list)
    breaking_changes: list[UpdateCandidateSchema] = Field(default_factory=_empty_candidate_list)


__all__ = [
    "BackoffName",
    "CacheFileEntrySchema",
    "InstalledPackageSchema",
    "NpmLatestSchema",
    "PackageJsonSchema",
    "PackageRuleSchema",
    "PnpmWorkspaceSchema",
    "StrategyName",
    "UpdateCandidateSchema",
    "UpdateConfigSchema",
    "UpdateResultSchema",
    "WorkspacesObjectSchema",
]
