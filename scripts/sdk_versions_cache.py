"""On-disk cache of the SDK versions that can be resolved.

Listing every release branch and stable tag takes several paginated GitHub
requests, so the result is stored as ``{"data": [...]}`` and reused by
``psvm --list --cache``.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import json
import logging
import os
import typing as typ
from pathlib import Path

__all__ = [
    "CACHE_FILE_ENV",
    "VersionCache",
    "default_cache_file",
    "load_versions_from_cache",
    "update_cache",
]

LOGGER = logging.getLogger(__name__)

CACHE_FILE_ENV: typ.Final[str] = "PSVM_CACHE_FILE"
CACHE_DIRECTORY: typ.Final[str] = "psvm"
CACHE_FILENAME: typ.Final[str] = "versions.json"

VersionFetcher = cabc.Callable[[], cabc.Awaitable[cabc.Sequence[str]]]


def default_cache_file() -> Path:
    """Return the cache location honouring ``PSVM_CACHE_FILE`` and XDG."""
    if override := os.environ.get(CACHE_FILE_ENV):
        return Path(override).expanduser()
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / CACHE_DIRECTORY / CACHE_FILENAME


@dc.dataclass(frozen=True)
class VersionCache:
    """JSON file holding the last fetched list of versions."""

    path: Path = dc.field(default_factory=default_cache_file)

    def load(self) -> list[str]:
        """Return the cached versions.

        Raises
        ------
        OSError
            Raised when the cache file cannot be read.
        ValueError
            Raised when the file does not hold a list of version strings.
        """
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list) or not all(isinstance(v, str) for v in data):
            message = f"{self.path} does not contain a list of versions"
            raise ValueError(message)
        return data

    def save(self, versions: cabc.Sequence[str]) -> None:
        """Replace the cached versions with ``versions``."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({"data": list(versions)}, indent=2)
        self.path.write_text(f"{payload}\n", encoding="utf-8")


async def load_versions_from_cache(
    fetch_versions: VersionFetcher, cache: VersionCache | None = None
) -> list[str]:
    """Return cached versions, refreshing the cache when it cannot be used."""
    cache = cache or VersionCache()
    try:
        return cache.load()
    except (OSError, ValueError) as error:
        LOGGER.error("Could not read version cache %s: %s", cache.path, error)
    return await update_cache(fetch_versions, cache)


async def update_cache(
    fetch_versions: VersionFetcher, cache: VersionCache | None = None
) -> list[str]:
    """Fetch the current versions and store them in ``cache``."""
    cache = cache or VersionCache()
    versions = list(await fetch_versions())
    cache.save(versions)
    LOGGER.info("Cached %d versions in %s", len(versions), cache.path)
    return versions
