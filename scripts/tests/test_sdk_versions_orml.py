"""Tests for the ORML manifest scanner and merge."""

from __future__ import annotations

import asyncio
import typing as typ

import pytest
from sdk_fakes import ORML_RAW_BASE
from sdk_versions_errors import MalformedInputError
from sdk_versions_orml import (
    OrmlWorkspace,
    get_orml_crates_and_version,
    include_orml_crates_in_version_mapping,
    orml_manifest_url,
    parse_orml_manifest,
)

if typ.TYPE_CHECKING:
    from sdk_fakes import FakeRemote

CARGO_DEV_TOML = """\
[workspace]
resolver = "2"
members = [
\t"asset-registry",
\t"auction",
\t# "disabled",
\t"xcm-support/", # trailing slash
\t"tokens",
]

[profile.dev]
split-debuginfo = "unpacked"

[workspace.package]
version = "0.7.0"

[workspace.dependencies]
serde = { version = "1.0.189" }
"""


def test_parses_members_and_shared_version() -> None:
    """Comments are ignored and member paths reduce to their last component."""
    workspace = parse_orml_manifest(CARGO_DEV_TOML)

    assert workspace == OrmlWorkspace(
        members=("asset-registry", "auction", "xcm-support", "tokens"),
        version="0.7.0",
    )


def test_accepts_single_line_members_and_crates_version() -> None:
    """Older manifests name the version ``crates_version``."""
    text = 'members = ["tokens", "xtokens"]\ncrates_version = "0.4.1-dev"\n'

    workspace = parse_orml_manifest(text)

    assert workspace.crate_versions() == {
        "orml-tokens": "0.4.1-dev",
        "orml-xtokens": "0.4.1-dev",
    }


@pytest.mark.parametrize(
    ("text", "reason"),
    [
        ('version = "0.7.0"\n', "no workspace members"),
        ('members = ["tokens"]\n', "no crate version"),
    ],
)
def test_missing_fields_are_malformed(text: str, reason: str) -> None:
    """Both the members and the version are required."""
    with pytest.raises(MalformedInputError, match=reason):
        parse_orml_manifest(text)


def test_merge_overwrites_existing_entries() -> None:
    """ORML entries replace same-named primary entries."""
    crates_versions = {"orml-tokens": "0.6.0", "sp-core": "28.0.0"}

    include_orml_crates_in_version_mapping(
        crates_versions, OrmlWorkspace(("tokens",), "0.7.0")
    )
    include_orml_crates_in_version_mapping(crates_versions, None)

    assert crates_versions == {"orml-tokens": "0.7.0", "sp-core": "28.0.0"}


def test_fetches_manifest_for_released_version(remote: FakeRemote) -> None:
    """The manifest of the matching ``polkadot-v`` branch is fetched."""
    url = orml_manifest_url("https://raw.githubusercontent.com", "1.6.0")
    remote.routes[url] = CARGO_DEV_TOML

    async def releases() -> list[str]:
        return ["1.6.0"]

    workspace = asyncio.run(
        get_orml_crates_and_version(
            "1.6.0",
            remote.fetcher(),
            base_url="https://raw.githubusercontent.com",
            release_versions=releases,
        )
    )

    assert url == f"{ORML_RAW_BASE}/polkadot-v1.6.0/Cargo.dev.toml"
    assert workspace is not None
    assert workspace.version == "0.7.0"


def test_missing_release_returns_none(remote: FakeRemote) -> None:
    """No ORML release for the version is not an error."""

    async def releases() -> list[str]:
        return ["1.5.0"]

    workspace = asyncio.run(
        get_orml_crates_and_version(
            "1.6.0",
            remote.fetcher(),
            base_url="https://raw.githubusercontent.com",
            release_versions=releases,
        )
    )

    assert workspace is None
    assert remote.requests == []
