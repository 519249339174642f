"""Version specifier canonicalization and semver helpers.

Purpose
-------
Separate a specifier's decorator (the leading range operator) from its
version, recognise opaque workspace references, and compare versions using
the ``semver`` library.

Contents
--------
* :func:`split_decorator` / :func:`apply_decorator` - decorator round-trip
* :func:`clean_version` - strip the decorator from a specifier
* :func:`is_workspace_reference` / :func:`is_catalog_reference` - opaque references
* :func:`catalog_name_of` - named catalog referenced by a ``catalog:`` specifier
* :func:`parse_version` / :func:`is_valid_version` - semver parsing
* :func:`bump_level` - which semver component changed
* :func:`lowest_version` - conservative pick among several versions

Canonicalization Rules
----------------------
A leading run of ``^ ~ >= > <= < =`` is the decorator and is kept verbatim
for write-back. ``catalog:`` and ``workspace:`` specifiers never reach semver.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

import semver

from .errors import InvalidVersionError
from .models import BumpLevel

CATALOG_PREFIX = "catalog:"
WORKSPACE_PREFIX = "workspace:"
DEFAULT_CATALOG_NAME = "default"

_RE_DECORATOR = re.compile(r"^(?:(?:\^|~|>=|<=|>|<|=)\s*)*")


def split_decorator(specifier: str) -> tuple[str, str]:
    """Split a specifier into its decorator and the remaining version.

    Args:
        specifier: A specifier like ``"^1.2.3"`` or ``">= 2.0.0"``.

    Returns:
        Tuple of (decorator, version). ``decorator + version == specifier``.

    Example:
        >>> split_decorator("^1.2.3")
        ('^', '1.2.3')
        >>> split_decorator("1.2.3")
        ('', '1.2.3')
    """
    match = _RE_DECORATOR.match(specifier)
    decorator = match.group(0) if match else ""
    return decorator, specifier[len(decorator) :]


def apply_decorator(decorator: str, version: str) -> str:
    """Reapply a decorator extracted by :func:`split_decorator`.

    Example:
        >>> apply_decorator("~", "2.0.0")
        '~2.0.0'
    """
    return f"{decorator}{version}"


def clean_version(specifier: str) -> str:
    """Strip the decorator and surrounding whitespace from a specifier."""
    return split_decorator(specifier.strip())[1].strip()


def is_catalog_reference(specifier: str) -> bool:
    """Return True for ``catalog:`` and ``catalog:<name>`` specifiers."""
    return specifier.strip().startswith(CATALOG_PREFIX)


def is_workspace_reference(specifier: str) -> bool:
    """Return True for ``workspace:`` specifiers such as ``workspace:*``."""
    return specifier.strip().startswith(WORKSPACE_PREFIX)


def is_opaque_reference(specifier: str) -> bool:
    """Return True when a specifier must never be compared as semver."""
    return is_catalog_reference(specifier) or is_workspace_reference(specifier)


def catalog_name_of(specifier: str) -> str | None:
    """Return the named catalog of a catalog reference.

    ``catalog:`` and ``catalog:default`` refer to the default catalog and
    yield None.

    Example:
        >>> catalog_name_of("catalog:react18")
        'react18'
        >>> catalog_name_of("catalog:") is None
        True
    """
    name = specifier.strip()[len(CATALOG_PREFIX) :].strip()
    if not name or name == DEFAULT_CATALOG_NAME:
        return None
    return name


@lru_cache(maxsize=1024)
def parse_version(version: str) -> semver.Version:
    """Parse a full ``major.minor.patch`` version.

    A leading ``v`` is tolerated, as npm does. Partial versions like ``1.2``
    are rejected.

    Raises:
        InvalidVersionError: If the string is not valid semver.
    """
    candidate = version.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    try:
        return semver.Version.parse(candidate)
    except (ValueError, TypeError) as exc:
        raise InvalidVersionError(version) from exc


def is_valid_version(version: str | None) -> bool:
    """Return True when ``version`` parses as semver."""
    if not version:
        return False
    try:
        parse_version(version)
    except InvalidVersionError:
        return False
    return True


def bump_level(current: str, latest: str) -> BumpLevel | None:
    """Return the semver component that changed from ``current`` to ``latest``.

    Returns None when ``latest`` is not newer than ``current``. Prerelease
    differences within the same ``major.minor.patch`` count as a patch bump.

    Raises:
        InvalidVersionError: If either version is not valid semver.
    """
    cur = parse_version(current)
    new = parse_version(latest)
    if new <= cur:
        return None
    if new.major != cur.major:
        return BumpLevel.MAJOR
    if new.minor != cur.minor:
        return BumpLevel.MINOR
    return BumpLevel.PATCH


def lowest_version(versions: Iterable[str]) -> str | None:
    """Return the lowest valid semver version, ignoring invalid strings."""
    valid = [v for v in versions if is_valid_version(v)]
    if not valid:
        return None
    return min(valid, key=parse_version)


__all__ = [
    "CATALOG_PREFIX",
    "DEFAULT_CATALOG_NAME",
    "WORKSPACE_PREFIX",
    "apply_decorator",
    "bump_level",
    "catalog_name_of",
    "clean_version",
    "is_catalog_reference",
    "is_opaque_reference",
    "is_valid_version",
    "is_workspace_reference",
    "lowest_version",
    "parse_version",
    "split_decorator",
]
