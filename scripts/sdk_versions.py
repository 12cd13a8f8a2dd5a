"""Facade module for SDK version resolution and manifest rewriting.

The implementation lives in focused ``sdk_versions_*`` helper modules; this
module gathers the public surface so callers need a single import. File-level
helpers here combine the pure rewrite with manifest loading and saving.
"""

from __future__ import annotations

import typing as typ

import sdk_versions_check as _check
import sdk_versions_rewrite as _rewrite
import sdk_versions_serialise as _serialise
from sdk_versions_cache import (
    VersionCache,
    default_cache_file,
    load_versions_from_cache,
    update_cache,
)
from sdk_versions_errors import (
    CheckFailedError,
    FetchError,
    MalformedInputError,
    ResolutionError,
    RewriteError,
    UnsupportedSourceError,
    VersionManagerError,
)
from sdk_versions_listing import (
    DEFAULT_CRATE_OWNER_ID,
    ORML,
    POLKADOT_SDK,
    Repository,
    get_polkadot_sdk_versions,
    get_release_branches_versions,
    get_stable_tag_versions,
    known_public_crate_owners,
)
from sdk_versions_orml import (
    OrmlWorkspace,
    get_orml_crates_and_version,
    include_orml_crates_in_version_mapping,
    parse_orml_manifest,
)
from sdk_versions_registry import VersionRegistry
from sdk_versions_resolver import (
    DEFAULT_GIT_SERVER,
    ResolverContext,
    VersionMapping,
    freeze_mapping,
    get_version_mapping,
    get_version_mapping_with_fallback,
    merge_orml_versions,
    resolve,
    version_to_url,
)
from sdk_versions_sources import SourceKind, parse
from sdk_versions_transport import FetchConfig, TextFetcher, open_client

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

DependencyMismatch = _check.DependencyMismatch
RewriteOutcome = _rewrite.RewriteOutcome
UNCHANGED = _rewrite.UNCHANGED
find_mismatches = _check.find_mismatches
parse_manifest = _serialise.parse_manifest
rewrite_manifest = _rewrite.rewrite_manifest


def rewrite_manifest_file(
    manifest: Path,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
    dry_run: bool = False,
) -> RewriteOutcome:
    """Rewrite ``manifest`` on disk, writing only when its content changes.

    With ``dry_run`` the outcome is computed but the manifest is never written.
    """
    outcome = _rewrite.rewrite_manifest(
        _serialise.read_manifest(manifest),
        crates_versions,
        overwrite_local_paths=overwrite_local_paths,
        manifest=manifest,
    )
    if outcome.content is not None and not dry_run:
        _serialise.write_manifest(manifest, outcome.content)
    return outcome


def manifest_mismatches(
    manifest: Path,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
) -> list[DependencyMismatch]:
    """Return the outdated declarations of ``manifest`` without modifying it."""
    document = _serialise.parse_manifest(_serialise.read_manifest(manifest), manifest)
    return _check.find_mismatches(
        document, crates_versions, overwrite_local_paths=overwrite_local_paths
    )


__all__ = [
    "DEFAULT_CRATE_OWNER_ID",
    "DEFAULT_GIT_SERVER",
    "ORML",
    "POLKADOT_SDK",
    "UNCHANGED",
    "CheckFailedError",
    "DependencyMismatch",
    "FetchConfig",
    "FetchError",
    "MalformedInputError",
    "OrmlWorkspace",
    "Repository",
    "ResolutionError",
    "ResolverContext",
    "RewriteError",
    "RewriteOutcome",
    "SourceKind",
    "TextFetcher",
    "UnsupportedSourceError",
    "VersionCache",
    "VersionManagerError",
    "VersionMapping",
    "VersionRegistry",
    "default_cache_file",
    "find_mismatches",
    "freeze_mapping",
    "get_orml_crates_and_version",
    "get_polkadot_sdk_versions",
    "get_release_branches_versions",
    "get_stable_tag_versions",
    "get_version_mapping",
    "get_version_mapping_with_fallback",
    "include_orml_crates_in_version_mapping",
    "known_public_crate_owners",
    "load_versions_from_cache",
    "manifest_mismatches",
    "merge_orml_versions",
    "open_client",
    "parse",
    "parse_manifest",
    "parse_orml_manifest",
    "resolve",
    "rewrite_manifest",
    "rewrite_manifest_file",
    "update_cache",
    "version_to_url",
]
