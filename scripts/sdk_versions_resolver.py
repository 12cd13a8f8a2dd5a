"""Resolve the crate versions belonging to an SDK release or stable tag.

Resolution prefers the release plan (``Plan.toml``) and falls back to the
release branch's ``Cargo.lock`` only when the plan cannot be fetched. The
secondary ORML namespace can be merged on top of the primary mapping.

Examples
--------
>>> version_to_url("https://git.test", "1.6.0", "Plan.toml")
'https://git.test/paritytech/polkadot-sdk/release-crates-io-v1.6.0/Plan.toml'
"""

from __future__ import annotations

import dataclasses as dc
import logging
import types
import typing as typ

from sdk_versions_errors import FetchError, UnsupportedSourceError
from sdk_versions_listing import POLKADOT_SDK, STABLE_TAG_PATTERN
from sdk_versions_orml import (
    get_orml_crates_and_version,
    include_orml_crates_in_version_mapping,
)
from sdk_versions_sources import (
    SourceKind,
    coerce_source_kind,
    parse,
    parse_plan_entries,
    plan_requires_owner_lookup,
    select_plan_versions,
)

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from sdk_versions_transport import TextSource

__all__ = [
    "DEFAULT_GIT_SERVER",
    "REMOTE_SOURCES",
    "ResolverContext",
    "VersionMapping",
    "freeze_mapping",
    "get_version_mapping",
    "get_version_mapping_with_fallback",
    "merge_orml_versions",
    "release_ref",
    "resolve",
    "version_to_url",
]

LOGGER = logging.getLogger(__name__)

DEFAULT_GIT_SERVER: typ.Final[str] = "https://raw.githubusercontent.com"
STABLE_RELEASE_PREFIX: typ.Final[str] = "stable"
STABLE_TAG_NAMESPACE: typ.Final[str] = "polkadot-"
REMOTE_SOURCES: typ.Final[tuple[SourceKind, ...]] = (SourceKind.PLAN, SourceKind.LOCK)

VersionMapping = typ.Mapping[str, str]
OwnerProvider = typ.Callable[[], typ.Awaitable["cabc.Set[str]"]]
VersionLister = typ.Callable[[], typ.Awaitable["cabc.Sequence[str]"]]


@dc.dataclass(frozen=True)
class ResolverContext:
    """Collaborators used while resolving a release.

    Parameters
    ----------
    fetcher : TextSource
        Retrieves the raw text of remote manifests.
    base_url : str
        Raw-content server hosting the release branches and tags.
    known_owners : OwnerProvider | None
        Returns crates owned by the release publisher on crates.io. Without it
        plan entries marked ``publish = false`` are always skipped.
    orml_versions : VersionLister | None
        Returns the releases published by ORML. Required when ORML crates are
        requested.
    """

    fetcher: TextSource
    base_url: str = DEFAULT_GIT_SERVER
    known_owners: OwnerProvider | None = None
    orml_versions: VersionLister | None = None


def release_ref(version: str) -> str:
    """Return the branch or tag that carries the manifests of ``version``.

    Examples
    --------
    >>> release_ref("1.6.0")
    'release-crates-io-v1.6.0'
    >>> release_ref("stable2409")
    'polkadot-stable2409'
    >>> release_ref("polkadot-stable2409-1")
    'polkadot-stable2409-1'
    """
    if version.startswith(STABLE_RELEASE_PREFIX):
        return f"{STABLE_TAG_NAMESPACE}{version}"
    if STABLE_TAG_PATTERN.match(version):
        return version
    return f"{POLKADOT_SDK.branch_prefix}{version}"


def version_to_url(base_url: str, version: str, source: SourceKind | str) -> str:
    """Return the locator of ``source`` for ``version`` under ``base_url``."""
    kind = coerce_source_kind(source)
    return f"{base_url}/{POLKADOT_SDK.slug}/{release_ref(version)}/{kind}"


async def get_version_mapping(
    version: str, source: SourceKind | str, context: ResolverContext
) -> dict[str, str]:
    """Fetch and parse a single remote ``source`` for ``version``.

    Raises
    ------
    UnsupportedSourceError
        Raised when ``source`` is not published alongside releases.
    FetchError
        Raised when the resource cannot be fetched.
    MalformedInputError
        Raised when the fetched text does not match the format of ``source``.
    """
    kind = coerce_source_kind(source)
    if kind not in REMOTE_SOURCES:
        message = f"{kind} is not published alongside releases"
        raise UnsupportedSourceError(message)

    locator = version_to_url(context.base_url, version, kind)
    LOGGER.debug("fetching %s for %s from %s", kind, version, locator)
    text = await context.fetcher.fetch_text(locator)
    if kind is SourceKind.LOCK:
        return parse(text, kind)

    entries = parse_plan_entries(text)
    owners: cabc.Set[str] = frozenset()
    if plan_requires_owner_lookup(entries) and context.known_owners is not None:
        owners = await context.known_owners()
    return select_plan_versions(entries, owners)


async def get_version_mapping_with_fallback(
    version: str, context: ResolverContext
) -> dict[str, str]:
    """Resolve ``version`` from its plan, falling back to its lock file.

    Only a failure to fetch the plan triggers the fallback; a plan that was
    fetched but cannot be parsed is reported as is.
    """
    try:
        return await get_version_mapping(version, SourceKind.PLAN, context)
    except FetchError as error:
        LOGGER.warning(
            "%s unavailable for %s (%s); falling back to %s",
            SourceKind.PLAN,
            version,
            error.reason,
            SourceKind.LOCK,
        )
        plan_error = error

    try:
        return await get_version_mapping(version, SourceKind.LOCK, context)
    except FetchError as error:
        raise error from plan_error


async def resolve(
    version: str, context: ResolverContext, *, include_orml: bool = False
) -> VersionMapping:
    """Return the read-only crate version mapping for ``version``.

    Parameters
    ----------
    version : str
        Release version (``1.6.0``), stable release (``stable2409``) or stable
        tag (``polkadot-stable2409-1``).
    context : ResolverContext
        Collaborators used to fetch and interpret remote manifests.
    include_orml : bool, default False
        Merge the ORML crates released for the same version, when one exists.
        ORML entries replace primary entries of the same name.

    Returns
    -------
    Mapping[str, str]
        Crate names mapped to versions, sorted by crate name.
    """
    crates_versions = await get_version_mapping_with_fallback(version, context)
    if include_orml:
        await merge_orml_versions(crates_versions, version, context)

    LOGGER.debug("resolved %d crate versions for %s", len(crates_versions), version)
    return freeze_mapping(crates_versions)


async def merge_orml_versions(
    crates_versions: dict[str, str], version: str, context: ResolverContext
) -> None:
    """Merge the ORML crates released for ``version`` into ``crates_versions``.

    Nothing is merged when ORML has no release of that version.

    Raises
    ------
    ValueError
        Raised when ``context`` carries no ORML release listing.
    """
    if context.orml_versions is None:
        message = "ORML resolution requires an ORML release listing"
        raise ValueError(message)
    orml = await get_orml_crates_and_version(
        version,
        context.fetcher,
        base_url=context.base_url,
        release_versions=context.orml_versions,
    )
    include_orml_crates_in_version_mapping(crates_versions, orml)


def freeze_mapping(crates_versions: cabc.Mapping[str, str]) -> VersionMapping:
    """Return a read-only copy of ``crates_versions`` sorted by crate name."""
    return types.MappingProxyType(dict(sorted(crates_versions.items())))
