"""Tests for the on-disk version cache."""

from __future__ import annotations

import asyncio
import json
import logging
import typing as typ

import pytest
from sdk_versions_cache import (
    VersionCache,
    default_cache_file,
    load_versions_from_cache,
    update_cache,
)

if typ.TYPE_CHECKING:
    from pathlib import Path


class FakeVersionSource:
    """Count calls and return a fixed version list."""

    def __init__(self, versions: list[str]) -> None:
        """Store the versions returned by each call."""
        self.versions = versions
        self.calls = 0

    async def __call__(self) -> list[str]:
        """Return the configured versions."""
        self.calls += 1
        return list(self.versions)


def test_cached_versions_are_reused(tmp_path: Path) -> None:
    """A readable cache is returned without fetching."""
    cache = VersionCache(tmp_path / "versions.json")
    cache.save(["1.5.0", "1.6.0"])
    source = FakeVersionSource(["9.9.9"])

    versions = asyncio.run(load_versions_from_cache(source, cache))

    assert versions == ["1.5.0", "1.6.0"]
    assert source.calls == 0


@pytest.mark.parametrize("content", [None, "not json", '{"data": "1.6.0"}', "[]"])
def test_unusable_cache_is_refreshed(
    tmp_path: Path, caplog: pytest.LogCaptureFixture, content: str | None
) -> None:
    """Missing or unreadable caches are logged, refetched and saved."""
    path = tmp_path / "nested" / "versions.json"
    if content is not None:
        path.parent.mkdir()
        path.write_text(content, encoding="utf-8")
    source = FakeVersionSource(["1.6.0", "polkadot-stable2409"])

    with caplog.at_level(logging.ERROR):
        versions = asyncio.run(load_versions_from_cache(source, VersionCache(path)))

    assert versions == ["1.6.0", "polkadot-stable2409"]
    assert source.calls == 1
    assert json.loads(path.read_text(encoding="utf-8")) == {"data": versions}
    assert "Could not read version cache" in caplog.text


def test_update_always_refetches(tmp_path: Path) -> None:
    """Updating replaces an existing cache."""
    cache = VersionCache(tmp_path / "versions.json")
    cache.save(["1.5.0"])

    versions = asyncio.run(update_cache(FakeVersionSource(["1.6.0"]), cache))

    assert versions == ["1.6.0"]
    assert cache.load() == ["1.6.0"]


def test_default_location_honours_overrides(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """``PSVM_CACHE_FILE`` wins over ``XDG_CACHE_HOME``."""
    monkeypatch.delenv("PSVM_CACHE_FILE", raising=False)
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path))

    assert default_cache_file() == tmp_path / "psvm" / "versions.json"

    monkeypatch.setenv("PSVM_CACHE_FILE", str(tmp_path / "custom.json"))

    assert default_cache_file() == tmp_path / "custom.json"
