"""Version specifier stories: decorators come off and go back on unchanged.

The versions module splits a specifier into its range decorator and its
version, recognises opaque workspace and catalog references, and compares
versions with semver. Each test reveals one truth about that handling.
"""

from __future__ import annotations

import pytest

from jsproj_dep_analyse.errors import InvalidVersionError
from jsproj_dep_analyse.models import BumpLevel
from jsproj_dep_analyse.versions import (
    apply_decorator,
    bump_level,
    catalog_name_of,
    clean_version,
    is_catalog_reference,
    is_opaque_reference,
    is_valid_version,
    is_workspace_reference,
    lowest_version,
    parse_version,
    split_decorator,
)

# ════════════════════════════════════════════════════════════════════════════
# Decorators: split and reapplied verbatim
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
@pytest.mark.parametrize("decorator", ["^", "~", ">=", ">", "<=", "<", "=", ""])
def test_decorator_survives_split_and_reapply(decorator: str) -> None:
    specifier = f"{decorator}1.2.3"

    split = split_decorator(specifier)
    rebuilt = apply_decorator(split[0], "2.0.0")

    assert split == (decorator, "1.2.3")
    assert rebuilt == f"{decorator}2.0.0"


@pytest.mark.os_agnostic
def test_split_decorator_keeps_whitespace_after_operator() -> None:
    decorator, version = split_decorator(">= 1.0.0")

    assert decorator == ">= "
    assert version == "1.0.0"


@pytest.mark.os_agnostic
def test_clean_version_strips_caret() -> None:
    assert clean_version("^4.17.21") == "4.17.21"


@pytest.mark.os_agnostic
def test_clean_version_strips_surrounding_whitespace() -> None:
    assert clean_version("  ~1.0.0 ") == "1.0.0"


@pytest.mark.os_agnostic
def test_clean_version_leaves_bare_version_alone() -> None:
    assert clean_version("1.0.0") == "1.0.0"


# ════════════════════════════════════════════════════════════════════════════
# Opaque references: catalog: and workspace:
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_catalog_reference_is_recognised() -> None:
    assert is_catalog_reference("catalog:") is True


@pytest.mark.os_agnostic
def test_named_catalog_reference_is_recognised() -> None:
    assert is_catalog_reference("catalog:react18") is True


@pytest.mark.os_agnostic
def test_workspace_reference_is_recognised() -> None:
    assert is_workspace_reference("workspace:*") is True


@pytest.mark.os_agnostic
def test_plain_range_is_not_opaque() -> None:
    assert is_opaque_reference("^1.0.0") is False


@pytest.mark.os_agnostic
def test_default_catalog_has_no_name() -> None:
    assert catalog_name_of("catalog:") is None


@pytest.mark.os_agnostic
def test_explicit_default_catalog_has_no_name() -> None:
    assert catalog_name_of("catalog:default") is None


@pytest.mark.os_agnostic
def test_named_catalog_yields_its_name() -> None:
    assert catalog_name_of("catalog:legacy") == "legacy"


# ════════════════════════════════════════════════════════════════════════════
# Parsing: semver, tolerant of a leading v
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_parse_version_accepts_leading_v() -> None:
    assert parse_version("v1.2.3").major == 1


@pytest.mark.os_agnostic
def test_parse_version_rejects_partial_version() -> None:
    with pytest.raises(InvalidVersionError):
        parse_version("1.2")


@pytest.mark.os_agnostic
def test_invalid_version_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        parse_version("latest")


@pytest.mark.os_agnostic
def test_is_valid_version_rejects_none() -> None:
    assert is_valid_version(None) is False


@pytest.mark.os_agnostic
def test_is_valid_version_accepts_prerelease() -> None:
    assert is_valid_version("2.0.0-beta.1") is True


# ════════════════════════════════════════════════════════════════════════════
# Bump levels
# ════════════════════════════════════════════════════════════════════════════


@pytest.mark.os_agnostic
def test_bump_level_detects_major() -> None:
    assert bump_level("1.9.9", "2.0.0") is BumpLevel.MAJOR


@pytest.mark.os_agnostic
def test_bump_level_detects_minor() -> None:
    assert bump_level("1.0.0", "1.1.0") is BumpLevel.MINOR


@pytest.mark.os_agnostic
def test_bump_level_detects_patch() -> None:
    assert bump_level("1.0.0", "1.0.1") is BumpLevel.PATCH


@pytest.mark.os_agnostic
def test_bump_level_is_none_when_equal() -> None:
    assert bump_level("1.0.0", "1.0.0") is None


@pytest.mark.os_agnostic
def test_bump_level_is_none_when_latest_is_older() -> None:
    assert bump_level("2.0.0", "1.5.0") is None


@pytest.mark.os_agnostic
def test_bump_level_raises_for_invalid_version() -> None:
    with pytest.raises(InvalidVersionError):
        bump_level("not-a-version", "1.0.0")


@pytest.mark.os_agnostic
def test_lowest_version_ignores_invalid_entries() -> None:
    assert lowest_version({"2.0.0", "garbage", "1.5.0"}) == "1.5.0"


@pytest.mark.os_agnostic
def test_lowest_version_is_none_without_valid_entries() -> None:
    assert lowest_version({"latest", "*"}) is None
