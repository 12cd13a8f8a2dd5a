#!/usr/bin/env -S uv run python
"""Command-line entry point that pins a crate to a Polkadot SDK release.

The command resolves the crate versions published with an SDK release (or a
stable tag), rewrites the dependency tables of a ``Cargo.toml`` to match, and
leaves every other byte of the manifest untouched. It can also list the
releases that can be resolved and keep a local cache of that list.

Every option may be supplied through a ``PSVM_``-prefixed environment
variable; command-line values take precedence. ``GITHUB_TOKEN`` authenticates
GitHub API requests and ``PSVM_FETCH_TIMEOUT_SECS`` bounds each request.

Examples
--------
Update the manifest in the current directory to the 1.6.0 release::

    python scripts/run_sdk_versions.py --version 1.6.0

Fail when a workspace manifest is not pinned to a stable tag::

    python scripts/run_sdk_versions.py -p crates/runtime -v stable2409 --check
"""

# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "cyclopts>=3,<4",
#     "httpx",
#     "plumbum",
#     "tomlkit",
# ]
# ///
from __future__ import annotations

import asyncio
import dataclasses as dc
import functools
import logging
import typing as typ
from pathlib import Path

import cyclopts
from cyclopts import App, Parameter
from sdk_versions import (
    DEFAULT_CRATE_OWNER_ID,
    ORML,
    CheckFailedError,
    FetchConfig,
    ResolverContext,
    TextFetcher,
    VersionCache,
    VersionManagerError,
    VersionMapping,
    VersionRegistry,
    freeze_mapping,
    get_polkadot_sdk_versions,
    get_release_branches_versions,
    known_public_crate_owners,
    load_versions_from_cache,
    manifest_mismatches,
    merge_orml_versions,
    open_client,
    resolve,
    rewrite_manifest_file,
    update_cache,
)

LOGGER = logging.getLogger(__name__)

MANIFEST_NAME: typ.Final[str] = "Cargo.toml"
DEFAULT_LOG_LEVEL: typ.Final[str] = "INFO"
LOG_FORMAT: typ.Final[str] = "[%(levelname)s] %(message)s"

app = App(config=cyclopts.config.Env("PSVM_", command=False), version_flags=[])


@dc.dataclass(frozen=True)
class UpdateOptions:
    """Settings for a single manifest update.

    Parameters
    ----------
    manifest : Path
        ``Cargo.toml`` to rewrite.
    version : str
        Release version, stable release or stable tag to resolve.
    overwrite : bool
        Rewrite dependencies that point at a local ``path`` as well.
    check : bool
        Report outdated dependencies instead of writing the manifest.
    orml : bool
        Merge the ORML crates released for the same version.
    crate_owner_id : int
        crates.io user whose crates are treated as already public.
    registry : VersionRegistry | None
        Bundled snapshots used instead of remote release manifests.
    """

    manifest: Path
    version: str
    overwrite: bool = False
    check: bool = False
    orml: bool = False
    crate_owner_id: int = DEFAULT_CRATE_OWNER_ID
    registry: VersionRegistry | None = None


def configure_logging(level: str) -> None:
    """Configure the root logger for command-line use."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        message = f"unknown log level: {level!r}"
        raise SystemExit(message)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)


def validate_workspace_path(path: Path) -> Path:
    """Return the manifest designated by ``path``.

    A directory designates the ``Cargo.toml`` it contains.

    Examples
    --------
    >>> validate_workspace_path(Path("crates/runtime"))  # doctest: +SKIP
    PosixPath('crates/runtime/Cargo.toml')
    """
    manifest = path / MANIFEST_NAME if path.is_dir() else path
    if not manifest.is_file():
        message = f"{MANIFEST_NAME} not found at {manifest}"
        raise SystemExit(message)
    return manifest


def build_resolver_context(
    fetcher: TextFetcher, *, crate_owner_id: int = DEFAULT_CRATE_OWNER_ID
) -> ResolverContext:
    """Wire ``fetcher`` into the listings the resolver consults."""
    return ResolverContext(
        fetcher=fetcher,
        known_owners=functools.partial(
            known_public_crate_owners, fetcher, owner_id=crate_owner_id
        ),
        orml_versions=functools.partial(
            get_release_branches_versions, fetcher, ORML
        ),
    )


async def resolve_versions(
    options: UpdateOptions, fetcher: TextFetcher
) -> VersionMapping:
    """Return the crate versions the manifest should be pinned to."""
    context = build_resolver_context(fetcher, crate_owner_id=options.crate_owner_id)
    if options.registry is None:
        return await resolve(options.version, context, include_orml=options.orml)

    crates_versions = dict(options.registry.mapping(options.version))
    if options.orml:
        await merge_orml_versions(crates_versions, options.version, context)
    return freeze_mapping(crates_versions)


def update_manifest(
    manifest: Path, crates_versions: VersionMapping, *, overwrite: bool, check: bool
) -> bool:
    """Rewrite ``manifest`` and report the result.

    Returns
    -------
    bool
        ``True`` when the manifest was written.

    Raises
    ------
    CheckFailedError
        Raised in check mode when the manifest is out of date. The manifest is
        not written in that case.
    """
    outcome = rewrite_manifest_file(
        manifest, crates_versions, overwrite_local_paths=overwrite, dry_run=check
    )
    if not outcome.changed:
        print(f"Dependencies in {manifest} are already up to date")
        return False

    if check:
        for mismatch in manifest_mismatches(
            manifest, crates_versions, overwrite_local_paths=overwrite
        ):
            LOGGER.error("outdated dependency %s", mismatch.describe())
        raise CheckFailedError

    print(f"Updated dependencies in {manifest}")
    return True


async def run_version_update(options: UpdateOptions) -> bool:
    """Resolve ``options.version`` and apply it to ``options.manifest``."""
    config = FetchConfig.from_environment()
    async with open_client(config) as client:
        fetcher = TextFetcher(client, config)
        crates_versions = await resolve_versions(options, fetcher)
    LOGGER.info(
        "Resolved %d crate versions for %s", len(crates_versions), options.version
    )
    return update_manifest(
        options.manifest,
        crates_versions,
        overwrite=options.overwrite,
        check=options.check,
    )


async def run_list(
    *, orml: bool, use_cache: bool, cache: VersionCache | None = None
) -> list[str]:
    """Return the versions that can be resolved.

    ORML releases are always listed live; SDK releases come from the cache
    when ``use_cache`` is set.
    """
    config = FetchConfig.from_environment()
    async with open_client(config) as client:
        fetcher = TextFetcher(client, config)
        if orml:
            return await get_release_branches_versions(fetcher, ORML)
        fetch_versions = functools.partial(get_polkadot_sdk_versions, fetcher)
        if use_cache:
            return await load_versions_from_cache(fetch_versions, cache)
        return await fetch_versions()


async def run_update_cache(cache: VersionCache | None = None) -> list[str]:
    """Refresh the cached list of SDK versions."""
    config = FetchConfig.from_environment()
    async with open_client(config) as client:
        fetcher = TextFetcher(client, config)
        return await update_cache(
            functools.partial(get_polkadot_sdk_versions, fetcher), cache
        )


def print_versions(versions: typ.Iterable[str]) -> None:
    """Print ``versions`` as a bulleted list."""
    print("Available versions:")
    for version in versions:
        print(f"- {version}")


def _stage_failure(error: VersionManagerError) -> SystemExit:
    if isinstance(error, CheckFailedError):
        return SystemExit(str(error))
    return SystemExit(f"{error.stage} failed: {error}")


@app.default
def main(
    *,
    path: typ.Annotated[
        Path,
        Parameter(name=("--path", "-p"), env_var="PSVM_PATH"),
    ] = Path(MANIFEST_NAME),
    version: typ.Annotated[
        str | None,
        Parameter(name=("--version", "-v"), env_var="PSVM_VERSION"),
    ] = None,
    overwrite: typ.Annotated[
        bool,
        Parameter(name=("--overwrite", "-o"), env_var="PSVM_OVERWRITE"),
    ] = False,
    list_versions: typ.Annotated[
        bool,
        Parameter(name=("--list", "-l"), env_var="PSVM_LIST"),
    ] = False,
    check: typ.Annotated[
        bool,
        Parameter(name=("--check", "-c"), env_var="PSVM_CHECK"),
    ] = False,
    orml: typ.Annotated[
        bool,
        Parameter(name=("--orml", "-O"), env_var="PSVM_ORML"),
    ] = False,
    cache: typ.Annotated[
        bool,
        Parameter(name=("--cache", "-C"), env_var="PSVM_CACHE"),
    ] = False,
    update_cache: typ.Annotated[
        bool,
        Parameter(name=("--update-cache", "-u"), env_var="PSVM_UPDATE_CACHE"),
    ] = False,
    bundled_dir: typ.Annotated[
        Path | None,
        Parameter(env_var="PSVM_BUNDLED_DIR"),
    ] = None,
    crate_owner_id: typ.Annotated[
        int,
        Parameter(env_var="PSVM_CRATE_OWNER_ID"),
    ] = DEFAULT_CRATE_OWNER_ID,
    log_level: typ.Annotated[
        str,
        Parameter(env_var="PSVM_LOG_LEVEL"),
    ] = DEFAULT_LOG_LEVEL,
) -> None:
    """Update, check or list Polkadot SDK dependency versions.

    Parameters
    ----------
    path : Path, optional
        Crate folder or ``Cargo.toml`` to update. Defaults to ``Cargo.toml``.
    version : str, optional
        Release version, stable release or stable tag to pin to. Required
        unless listing versions or updating the cache.
    overwrite : bool, optional
        Also rewrite dependencies that use a local ``path``.
    list_versions : bool, optional
        List the available versions instead of updating the manifest.
    check : bool, optional
        Fail when the manifest is out of date instead of rewriting it.
    orml : bool, optional
        Include ORML crates, or list ORML versions with ``--list``.
    cache : bool, optional
        List versions from the local cache, refreshing it when unusable.
    update_cache : bool, optional
        Refresh the local cache of versions and exit.
    bundled_dir : Path, optional
        Directory of ``release-crates-io-v<version>.json`` snapshots used
        instead of remote release manifests.
    crate_owner_id : int, optional
        crates.io user id whose crates stay pinned even when a release plan
        does not republish them.
    log_level : str, optional
        Logging threshold. Defaults to ``INFO``.
    """
    configure_logging(log_level)

    try:
        if update_cache:
            versions = asyncio.run(run_update_cache())
            LOGGER.info("Version cache holds %d entries", len(versions))
            return

        if list_versions:
            print_versions(asyncio.run(run_list(orml=orml, use_cache=cache)))
            return

        if version is None:
            message = "--version is required unless --list or --update-cache is set"
            raise SystemExit(message)

        registry = (
            VersionRegistry.from_directory(bundled_dir)
            if bundled_dir is not None
            else None
        )
        options = UpdateOptions(
            manifest=validate_workspace_path(path),
            version=version,
            overwrite=overwrite,
            check=check,
            orml=orml,
            crate_owner_id=crate_owner_id,
            registry=registry,
        )
        asyncio.run(run_version_update(options))
    except VersionManagerError as error:
        LOGGER.debug("%s stage failed", error.stage, exc_info=error)
        raise _stage_failure(error) from error


if __name__ == "__main__":
    app()
