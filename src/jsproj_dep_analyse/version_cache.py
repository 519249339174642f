"""Persistent TTL cache of latest package versions.

Purpose
-------
Remember the latest registry version of each package between invocations
so repeated checks do not query the registry again until the entry expires.

Contents
--------
* :class:`VersionCache` - JSON-file backed cache keyed by package name

File Format
-----------
``{"<name>": {"version": "1.2.3", "fetchedAt": 1700000000.0, "ttl": 7200.0}}``

System Role
-----------
The only entity that is mutated and reused across invocations. A corrupt or
unreadable file degrades to an empty cache; write failures are logged and
ignored. Concurrent writers follow last-writer-wins.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any, cast

from pydantic import ValidationError

from .models import CacheEntry, CacheStats
from .schemas import CacheFileEntrySchema

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "version-cache.json"
DEFAULT_TTL = 2 * 60 * 60.0
DEFAULT_STABLE_TTL = 24 * 60 * 60.0


class VersionCache:
    """TTL-keyed store mapping a package name to its last known latest version.

    Entries are loaded lazily on first access and written through on every
    change; :meth:`set_many` writes a whole batch at once.

    Args:
        cache_file: JSON file holding the entries.
        ttl: Lifetime in seconds for new entries.
        stable_ttl: Lifetime for packages in ``stable_packages``.
        stable_packages: Package names (or ``scope/`` prefixes) that rarely
            publish.
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        cache_file: Path | str,
        *,
        ttl: float = DEFAULT_TTL,
        stable_ttl: float = DEFAULT_STABLE_TTL,
        stable_packages: Iterable[str] = (),
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_file = Path(cache_file)
        self.ttl = ttl
        self.stable_ttl = stable_ttl
        self.stable_packages = frozenset(stable_packages)
        self._clock = clock
        self._entries: dict[str, CacheEntry] | None = None

    def __repr__(self) -> str:
        return f"VersionCache(cache_file={str(self.cache_file)!r}, ttl={self.ttl})"

    @classmethod
    def for_project(
        cls,
        project_path: Path | str,
        cache_dir: str = ".jsproj-dep-analyse",
        **kwargs: Any,
    ) -> VersionCache:
        """Create a cache stored in ``<project>/<cache_dir>/version-cache.json``."""
        directory = Path(cache_dir)
        if not directory.is_absolute():
            directory = Path(project_path) / directory
        return cls(directory / CACHE_FILE_NAME, **kwargs)

    def ttl_for(self, package_name: str) -> float:
        """Return the lifetime new entries for ``package_name`` receive."""
        if self._is_stable(package_name):
            return self.stable_ttl
        return self.ttl

    def _is_stable(self, package_name: str) -> bool:
        return any(
            package_name == stable or package_name.startswith(f"{stable}/") for stable in self.stable_packages
        )

    def get(self, package_name: str) -> str | None:
        """Return the cached version, or None when absent or expired."""
        entry = self._load().get(package_name)
        if entry is None:
            logger.debug("Cache miss for %s", package_name)
            return None
        now = self._clock()
        if entry.is_expired(now):
            logger.debug("Cache entry for %s expired", package_name)
            return None
        logger.debug("Cache hit for %s: %s (age: %ds)", package_name, entry.version, now - entry.fetched_at)
        return entry.version

    def set(self, package_name: str, version: str) -> None:
        """Store ``version`` as the latest version of ``package_name``."""
        self.set_many({package_name: version})

    def set_many(self, versions: Mapping[str, str]) -> None:
        """Store several latest versions with a single file write."""
        if not versions:
            return
        entries = self._load()
        now = self._clock()
        for package_name, version in versions.items():
            entries[package_name] = CacheEntry(
                package_name=package_name,
                version=version,
                fetched_at=now,
                ttl=self.ttl_for(package_name),
            )
        self._save(entries)

    def clean_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        entries = self._load()
        now = self._clock()
        expired = [name for name, entry in entries.items() if entry.is_expired(now)]
        for name in expired:
            del entries[name]
        if expired:
            self._save(entries)
            logger.debug("Cleaned %d expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        """Drop every entry and delete the cache file."""
        self._entries = {}
        try:
            self.cache_file.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Error clearing cache %s: %s", self.cache_file, exc)
            return
        logger.info("Cleared version cache")

    def stats(self) -> CacheStats:
        """Return the entry count and the size of the cache file."""
        entry_count = len(self._load())
        try:
            total_size = self.cache_file.stat().st_size
        except OSError:
            total_size = 0
        return CacheStats(entry_count=entry_count, total_size_bytes=total_size)

    def _load(self) -> dict[str, CacheEntry]:
        if self._entries is None:
            self._entries = self._read_file()
        return self._entries

    def _read_file(self) -> dict[str, CacheEntry]:
        if not self.cache_file.exists():
            return {}
        try:
            raw = json.loads(self.cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Invalid cache file %s, starting fresh: %s", self.cache_file, exc)
            return {}
        if not isinstance(raw, dict):
            logger.debug("Cache file %s is not an object, starting fresh", self.cache_file)
            return {}

        entries: dict[str, CacheEntry] = {}
        for name, payload in cast("dict[str, Any]", raw).items():
            try:
                schema = CacheFileEntrySchema.model_validate(payload)
            except ValidationError:
                logger.debug("Dropping malformed cache entry for %s", name)
                continue
            entries[name] = CacheEntry(
                package_name=name,
                version=schema.version,
                fetched_at=schema.fetched_at,
                ttl=schema.ttl if schema.ttl is not None else self.ttl_for(name),
            )
        return entries

    def _save(self, entries: dict[str, CacheEntry]) -> None:
        payload = {
            name: CacheFileEntrySchema(version=entry.version, fetched_at=entry.fetched_at, ttl=entry.ttl).model_dump(
                by_alias=True
            )
            for name, entry in entries.items()
        }
        tmp_file = self.cache_file.with_suffix(".tmp")
        try:
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_file, self.cache_file)
        except OSError as exc:
            logger.debug("Error writing version cache %s: %s", self.cache_file, exc)


__all__ = [
    "CACHE_FILE_NAME",
    "DEFAULT_STABLE_TTL",
    "DEFAULT_TTL",
    "VersionCache",
]
