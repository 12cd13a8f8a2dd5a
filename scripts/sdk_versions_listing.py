"""Enumerate published SDK releases and the crates owned by the publisher.

Release branches and stable tags are listed through the GitHub REST API; the
publisher's crates come from the crates.io crate listing. Both endpoints are
paginated, and every helper here returns the fully collected result.
"""

from __future__ import annotations

import dataclasses as dc
import logging
import re
import typing as typ

from sdk_versions_errors import MalformedInputError

if typ.TYPE_CHECKING:
    from sdk_versions_transport import JsonSource

__all__ = [
    "CRATES_IO_API",
    "DEFAULT_CRATE_OWNER_ID",
    "GITHUB_API",
    "ORML",
    "POLKADOT_SDK",
    "STABLE_TAG_PATTERN",
    "Repository",
    "get_polkadot_sdk_versions",
    "get_release_branches_versions",
    "get_stable_tag_versions",
    "known_public_crate_owners",
]

LOGGER = logging.getLogger(__name__)

GITHUB_API: typ.Final[str] = "https://api.github.com"
CRATES_IO_API: typ.Final[str] = "https://crates.io/api/v1/crates"
PAGE_SIZE: typ.Final[int] = 100
DEFAULT_CRATE_OWNER_ID: typ.Final[int] = 150167

STABLE_TAG_PATTERN: typ.Final[re.Pattern[str]] = re.compile(
    r"^polkadot-stable\d+(-\d+)?$"
)
RELEASE_VERSION_PATTERN: typ.Final[re.Pattern[str]] = re.compile(r"^\d+\.\d+\.\d+$")


@dc.dataclass(frozen=True)
class Repository:
    """A GitHub repository whose release branches carry a version suffix."""

    owner: str
    name: str
    branch_prefix: str

    @property
    def slug(self) -> str:
        """Return the ``owner/name`` path used by GitHub URLs."""
        return f"{self.owner}/{self.name}"

    def branch_version(self, branch: str) -> str | None:
        """Return the version encoded in ``branch`` or ``None``.

        Examples
        --------
        >>> POLKADOT_SDK.branch_version("release-crates-io-v1.6.0")
        '1.6.0'
        >>> POLKADOT_SDK.branch_version("master") is None
        True
        """
        if not branch.startswith(self.branch_prefix):
            return None
        version = branch.removeprefix(self.branch_prefix)
        if RELEASE_VERSION_PATTERN.match(version) is None:
            return None
        return version


POLKADOT_SDK: typ.Final[Repository] = Repository(
    "paritytech", "polkadot-sdk", "release-crates-io-v"
)
ORML: typ.Final[Repository] = Repository(
    "open-web3-stack", "open-runtime-module-library", "polkadot-v"
)


async def get_release_branches_versions(
    fetcher: JsonSource, repository: Repository = POLKADOT_SDK
) -> list[str]:
    """Return the versions of every release branch in ``repository``."""
    names = await _github_names(fetcher, f"repos/{repository.slug}/branches")
    return [
        version
        for version in map(repository.branch_version, names)
        if version is not None
    ]


async def get_stable_tag_versions(fetcher: JsonSource) -> list[str]:
    """Return the ``polkadot-stableYYMM[-N]`` tags of the SDK repository."""
    names = await _github_names(fetcher, f"repos/{POLKADOT_SDK.slug}/tags")
    return [name for name in names if STABLE_TAG_PATTERN.match(name)]


async def get_polkadot_sdk_versions(fetcher: JsonSource) -> list[str]:
    """Return release-branch versions followed by stable tags."""
    versions = await get_release_branches_versions(fetcher, POLKADOT_SDK)
    versions.extend(await get_stable_tag_versions(fetcher))
    return versions


async def known_public_crate_owners(
    fetcher: JsonSource, *, owner_id: int = DEFAULT_CRATE_OWNER_ID
) -> frozenset[str]:
    """Return the names of every crate owned by ``owner_id`` on crates.io."""
    names: set[str] = set()
    page = 1
    while True:
        query = f"user_id={owner_id}&per_page={PAGE_SIZE}&page={page}"
        payload = await fetcher.fetch_json(f"{CRATES_IO_API}?{query}")
        if not isinstance(payload, dict) or not isinstance(payload.get("crates"), list):
            reason = "expected an object with a 'crates' array"
            raise MalformedInputError("crates.io listing", reason)

        crates = payload["crates"]
        names.update(
            crate["name"]
            for crate in crates
            if isinstance(crate, dict) and isinstance(crate.get("name"), str)
        )
        meta = payload.get("meta")
        next_page = meta.get("next_page") if isinstance(meta, dict) else None
        if not crates or not next_page:
            LOGGER.debug("found %d crates owned by user %s", len(names), owner_id)
            return frozenset(names)
        page += 1


async def _github_names(fetcher: JsonSource, endpoint: str) -> list[str]:
    """Collect the ``name`` field of every entry in a paginated listing."""
    names: list[str] = []
    page = 1
    while True:
        locator = f"{GITHUB_API}/{endpoint}?per_page={PAGE_SIZE}&page={page}"
        batch = await fetcher.fetch_json(locator)
        if not isinstance(batch, list):
            reason = f"expected a JSON array from {endpoint}"
            raise MalformedInputError("GitHub listing", reason)

        names.extend(
            entry["name"]
            for entry in batch
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        )
        if len(batch) < PAGE_SIZE:
            return names
        page += 1
