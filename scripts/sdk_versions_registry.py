"""Crate version snapshots bundled on disk instead of fetched per release.

Each snapshot is a ``release-crates-io-v<version>.json`` file holding a JSON
object of crate names to versions. A registry is built once at startup and
passed to whoever needs offline resolution.
"""

from __future__ import annotations

import collections.abc as cabc
import logging
import types
import typing as typ
from pathlib import Path

from sdk_versions_errors import ResolutionError
from sdk_versions_listing import POLKADOT_SDK
from sdk_versions_sources import SourceKind, parse

__all__ = ["SNAPSHOT_SUFFIX", "PayloadLoader", "VersionRegistry"]

LOGGER = logging.getLogger(__name__)

SNAPSHOT_SUFFIX: typ.Final[str] = ".json"

PayloadLoader = cabc.Callable[[], str]


class VersionRegistry:
    """Map version identifiers to loaders of their snapshot payload.

    Examples
    --------
    >>> registry = VersionRegistry.from_payloads({"1.0.0": '{"demo": "1.0.0"}'})
    >>> dict(registry.mapping("1.0.0"))
    {'demo': '1.0.0'}
    """

    def __init__(self, loaders: cabc.Mapping[str, PayloadLoader]) -> None:
        self._loaders = dict(loaders)

    @classmethod
    def from_directory(cls, directory: Path) -> VersionRegistry:
        """Register every ``release-crates-io-v<version>.json`` in ``directory``."""
        pattern = f"{POLKADOT_SDK.branch_prefix}*{SNAPSHOT_SUFFIX}"
        loaders: dict[str, PayloadLoader] = {}
        for path in sorted(Path(directory).glob(pattern)):
            version = path.name.removeprefix(POLKADOT_SDK.branch_prefix)
            version = version.removesuffix(SNAPSHOT_SUFFIX)
            loaders[version] = _file_loader(path)
        LOGGER.debug("registered %d bundled snapshots from %s", len(loaders), directory)
        return cls(loaders)

    @classmethod
    def from_payloads(cls, payloads: cabc.Mapping[str, str]) -> VersionRegistry:
        """Build a registry over payloads already held in memory."""
        return cls({version: _text_loader(text) for version, text in payloads.items()})

    def versions(self) -> list[str]:
        """Return the registered versions in sorted order."""
        return sorted(self._loaders)

    def __contains__(self, version: object) -> bool:
        return version in self._loaders

    def __len__(self) -> int:
        return len(self._loaders)

    def mapping(self, version: str) -> cabc.Mapping[str, str]:
        """Return the read-only crate mapping bundled for ``version``.

        Raises
        ------
        ResolutionError
            Raised when ``version`` is not registered.
        MalformedInputError
            Raised when the payload is not a JSON object of version strings.
        """
        try:
            loader = self._loaders[version]
        except KeyError as error:
            message = f"Version {version} not available"
            raise ResolutionError(message) from error
        crates_versions = parse(loader(), SourceKind.SNAPSHOT)
        return types.MappingProxyType(dict(sorted(crates_versions.items())))


def _file_loader(path: Path) -> PayloadLoader:
    def load() -> str:
        return path.read_text(encoding="utf-8")

    return load


def _text_loader(text: str) -> PayloadLoader:
    return lambda: text
