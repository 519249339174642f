"""Latest-version lookups against an npm-compatible registry.

Purpose
-------
Resolve the latest published version of a package, consulting the
:class:`~jsproj_dep_analyse.version_cache.VersionCache` first and retrying
registry misses under an explicit :class:`RetryPolicy`.

Contents
--------
* :class:`BackoffKind` / :class:`RetryPolicy` - retry schedule value objects
* :class:`RegistrySource` - protocol for anything that can fetch a latest version
* :class:`NpmRegistrySource` - httpx implementation for ``/<name>/latest``
* :class:`RegistryClient` - cache-first, retrying lookups

System Role
-----------
Used by the bulk processor and the update decision engine. A lookup that
still fails after the last attempt raises
:class:`~jsproj_dep_analyse.errors.RegistryLookupError`; callers treat that
as "version unknown" for one package only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from . import __init__conf__
from .errors import RegistryLookupError
from .schemas import NpmLatestSchema
from .version_cache import VersionCache

logger = logging.getLogger(__name__)

NPM_REGISTRY_URL = "https://registry.npmjs.org"
DEFAULT_TIMEOUT = 30.0
USER_AGENT = f"{__init__conf__.name}/{__init__conf__.version}"


class BackoffKind(str, Enum):
    """How the delay grows between attempts."""

    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry schedule for registry lookups.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Delay in seconds after the first failed attempt.
        backoff: Growth of the delay for later attempts.
        max_delay: Upper bound for a single delay.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: BackoffKind = BackoffKind.LINEAR
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must not be negative, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        """Return the delay after failed attempt number ``attempt`` (1-based)."""
        if self.backoff is BackoffKind.CONSTANT:
            delay = self.base_delay
        elif self.backoff is BackoffKind.LINEAR:
            delay = self.base_delay * attempt
        else:
            delay = self.base_delay * (2 ** (attempt - 1))
        return min(delay, self.max_delay)


class RegistrySource(Protocol):
    """Anything that can fetch the latest version of a package."""

    async def fetch_latest_version(self, package_name: str) -> str:
        """Return the latest version or raise RegistryLookupError."""
        ...


class NpmRegistrySource:
    """Fetch ``dist-tags.latest`` through the registry's ``/<name>/latest`` endpoint.

    Attributes:
        registry_url: Registry base URL.
        timeout: Request timeout in seconds.
        client: Optional shared AsyncClient; a short-lived one is created per
            request when None.
    """

    def __init__(
        self,
        registry_url: str = NPM_REGISTRY_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self.client = client

    def __repr__(self) -> str:
        return f"NpmRegistrySource(registry_url={self.registry_url!r}, timeout={self.timeout})"

    def _latest_url(self, package_name: str) -> str:
        # Scoped names keep their "@" but the slash must be encoded.
        return f"{self.registry_url}/{quote(package_name, safe='@')}/latest"

    def _get_headers(self) -> dict[str, str]:
        return {
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        }

    async def fetch_latest_version(self, package_name: str) -> str:
        """Fetch the latest version of ``package_name``.

        Raises:
            RegistryLookupError: On network errors, HTTP errors and malformed
                responses. HTTP 404 is marked non-retryable.
        """
        url = self._latest_url(package_name)
        try:
            if self.client is not None:
                response = await self.client.get(url, headers=self._get_headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, headers=self._get_headers())
        except httpx.HTTPError as exc:
            raise RegistryLookupError(package_name, f"request failed: {exc}") from exc

        if response.status_code == 404:
            raise RegistryLookupError(package_name, "package not found", retryable=False)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RegistryLookupError(package_name, f"HTTP {response.status_code}") from exc

        return self._parse_latest_response(package_name, response)

    def _parse_latest_response(self, package_name: str, response: httpx.Response) -> str:
        try:
            data = NpmLatestSchema.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RegistryLookupError(package_name, f"malformed registry response: {exc}") from exc
        if not data.version:
            raise RegistryLookupError(package_name, "registry response has no version")
        return data.version


class RegistryClient:
    """Cache-first latest-version lookups with retries.

    Args:
        source: Where versions are fetched from on a cache miss.
        cache: Version cache consulted before the source. None disables caching.
        retry_policy: Attempts and delays for failing lookups.
    """

    def __init__(
        self,
        source: RegistrySource,
        cache: VersionCache | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.source = source
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()

    def __repr__(self) -> str:
        return f"RegistryClient(source={self.source!r}, cache={self.cache!r}, retry_policy={self.retry_policy!r})"

    async def get_latest_version(self, package_name: str) -> str:
        """Return the latest version of ``package_name``.

        Raises:
            RegistryLookupError: When every attempt failed or the failure is
                not retryable.
        """
        version, fetched = await self._resolve(package_name)
        # Only reached when the fetch completed; a cancelled lookup never writes.
        if fetched and self.cache is not None:
            self.cache.set(package_name, version)
        return version

    async def _resolve(self, package_name: str) -> tuple[str, bool]:
        """Return the version and whether it came from the source rather than the cache."""
        if self.cache is not None:
            cached = self.cache.get(package_name)
            if cached is not None:
                return cached, False
        return await self._fetch_with_retry(package_name), True

    async def _fetch_with_retry(self, package_name: str) -> str:
        policy = self.retry_policy
        for attempt in range(1, policy.max_attempts + 1):
            try:
                return await self.source.fetch_latest_version(package_name)
            except RegistryLookupError as exc:
                if not exc.retryable or attempt >= policy.max_attempts:
                    logger.debug("Giving up on %s after %d attempt(s): %s", package_name, attempt, exc)
                    raise
                delay = policy.delay_for(attempt)
                logger.debug(
                    "Lookup of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    package_name,
                    attempt,
                    policy.max_attempts,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
        raise RegistryLookupError(package_name, "no attempts made")

    async def get_latest_versions(
        self,
        package_names: Iterable[str],
        *,
        batch_size: int = 50,
    ) -> dict[str, str | None]:
        """Look up several distinct packages concurrently.

        At most ``batch_size`` lookups run at once. Failed lookups map to None
        and are logged; they never abort the other lookups. Freshly fetched
        versions are written to the cache in one batch once every lookup has
        finished.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        names = list(dict.fromkeys(package_names))
        semaphore = asyncio.Semaphore(batch_size)
        fetched: dict[str, str] = {}

        async def lookup(name: str) -> tuple[str, str | None]:
            async with semaphore:
                try:
                    version, from_source = await self._resolve(name)
                except RegistryLookupError as exc:
                    logger.warning("Failed to get latest version for %s: %s", name, exc)
                    return name, None
                if from_source:
                    fetched[name] = version
                return name, version

        results = await asyncio.gather(*(lookup(name) for name in names))
        if fetched and self.cache is not None:
            self.cache.set_many(fetched)
        return dict(results)


__all__ = [
    "BackoffKind",
    "DEFAULT_TIMEOUT",
    "NPM_REGISTRY_URL",
    "NpmRegistrySource",
    "RegistryClient",
    "RegistrySource",
    "RetryPolicy",
]
