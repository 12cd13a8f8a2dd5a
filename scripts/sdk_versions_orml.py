"""Open Runtime Module Library (ORML) crates bundled into an SDK update.

ORML publishes its crates with a single shared version per ``polkadot-vX.Y.Z``
branch. Only the workspace member list and that version are needed, so the
``Cargo.dev.toml`` manifest is scanned line by line instead of being
deserialised.
"""

from __future__ import annotations

import dataclasses as dc
import logging
import re
import typing as typ
from pathlib import PurePosixPath

from sdk_versions_errors import MalformedInputError
from sdk_versions_listing import ORML

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sdk_versions_transport import TextSource

__all__ = [
    "ORML_CRATE_PREFIX",
    "ORML_MANIFEST",
    "OrmlWorkspace",
    "get_orml_crates_and_version",
    "include_orml_crates_in_version_mapping",
    "orml_manifest_url",
    "parse_orml_manifest",
]

LOGGER = logging.getLogger(__name__)

ORML_CRATE_PREFIX: typ.Final[str] = "orml-"
ORML_MANIFEST: typ.Final[str] = "Cargo.dev.toml"

_MEMBERS_START = re.compile(r"^members\s*=\s*\[(?P<rest>.*)$")
_VERSION_LINE = re.compile(r'^(?:crates_)?version\s*=\s*"(?P<version>[^"]+)"')


@dc.dataclass(frozen=True)
class OrmlWorkspace:
    """Workspace members of an ORML release and their shared version."""

    members: tuple[str, ...]
    version: str

    def crate_versions(self) -> dict[str, str]:
        """Return the ``orml-<member>`` crate names mapped to the version."""
        return {
            f"{ORML_CRATE_PREFIX}{member}": self.version for member in self.members
        }


def orml_manifest_url(base_url: str, version: str) -> str:
    """Return the location of the ORML manifest released for ``version``."""
    return f"{base_url}/{ORML.slug}/{ORML.branch_prefix}{version}/{ORML_MANIFEST}"


def parse_orml_manifest(text: str) -> OrmlWorkspace:
    """Extract the member list and shared version from ``Cargo.dev.toml``.

    Examples
    --------
    >>> manifest = 'version = "0.7.0"\\nmembers = ["tokens", "xtokens"]\\n'
    >>> parse_orml_manifest(manifest)
    OrmlWorkspace(members=('tokens', 'xtokens'), version='0.7.0')
    """
    members: list[str] = []
    version: str | None = None
    in_members = False
    seen_members = False
    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if in_members:
            in_members = _collect_members(line, members)
            continue

        if not seen_members and (match := _MEMBERS_START.match(line)):
            seen_members = True
            in_members = _collect_members(match["rest"], members)
            continue

        if version is None and (match := _VERSION_LINE.match(line)):
            version = match["version"]

    if not members:
        raise MalformedInputError(ORML_MANIFEST, "no workspace members found")
    if version is None:
        raise MalformedInputError(ORML_MANIFEST, "no crate version found")
    return OrmlWorkspace(members=tuple(members), version=version)


def _collect_members(fragment: str, members: list[str]) -> bool:
    """Append members listed in ``fragment``; return ``False`` once closed."""
    body, closing, _ = fragment.partition("]")
    for token in body.split(","):
        member = token.strip().strip("\"'")
        if member:
            members.append(PurePosixPath(member).name)
    return not closing


async def get_orml_crates_and_version(
    version: str,
    fetcher: TextSource,
    *,
    base_url: str,
    release_versions: cabc.Callable[[], cabc.Awaitable[cabc.Sequence[str]]],
) -> OrmlWorkspace | None:
    """Return the ORML workspace released alongside ``version``, if any.

    ``None`` is returned when ORML has no ``polkadot-v<version>`` branch.
    """
    if version not in await release_versions():
        LOGGER.info("No ORML release found for %s; skipping ORML crates", version)
        return None

    text = await fetcher.fetch_text(orml_manifest_url(base_url, version))
    return parse_orml_manifest(text)


def include_orml_crates_in_version_mapping(
    crates_versions: dict[str, str], orml: OrmlWorkspace | None
) -> None:
    """Merge ORML crates into ``crates_versions``, overwriting collisions."""
    if orml is None:
        return
    crates_versions.update(orml.crate_versions())
