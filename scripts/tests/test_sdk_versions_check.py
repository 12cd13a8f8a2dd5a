"""Tests for the outdated dependency report used by check mode."""

from __future__ import annotations

from sdk_versions_check import DependencyMismatch, find_mismatches
from tomlkit import parse

MANIFEST = """\
[dependencies]
sp-core = { version = "27.0.0", default-features = false }
frame-support = "28.0.0"
sp-io = { git = "https://github.com/paritytech/polkadot-sdk" }
codec = { package = "parity-scale-codec", version = "3.6.0" }

[dev-dependencies]
sp-tracing = { version = "15.0.0", path = "../sp-tracing" }
"""

MAPPING = {
    "sp-core": "28.0.0",
    "frame-support": "28.0.0",
    "sp-io": "30.0.0",
    "parity-scale-codec": "3.6.12",
    "sp-tracing": "16.0.0",
}


def test_reports_each_outdated_dependency() -> None:
    """Only declarations that differ from the mapping are reported."""
    mismatches = find_mismatches(parse(MANIFEST), MAPPING)

    assert mismatches == [
        DependencyMismatch("dependencies", "sp-core", "28.0.0", "27.0.0"),
        DependencyMismatch("dependencies", "sp-io", "30.0.0", None),
        DependencyMismatch("dependencies", "codec", "3.6.12", "3.6.0"),
    ]


def test_local_paths_follow_overwrite_flag() -> None:
    """Path dependencies are reported only when they would be overwritten."""
    mismatches = find_mismatches(
        parse(MANIFEST), {"sp-tracing": "16.0.0"}, overwrite_local_paths=True
    )

    assert mismatches == [
        DependencyMismatch("dev-dependencies", "sp-tracing", "16.0.0", "15.0.0")
    ]
    assert find_mismatches(parse(MANIFEST), {"sp-tracing": "16.0.0"}) == []


def test_describe_mentions_both_versions() -> None:
    """Log lines name the table, crate and both versions."""
    mismatch = DependencyMismatch("dependencies", "sp-io", "30.0.0", None)

    assert mismatch.describe() == "[dependencies] sp-io: no version -> 30.0.0"


def test_workspace_split_by_subtable_is_checked() -> None:
    """A ``[workspace]`` declared after ``[workspace.package]`` is in scope."""
    document = parse(
        "[workspace.package]\n"
        'edition = "2021"\n'
        "\n"
        "[workspace]\n"
        'members = ["runtime"]\n'
        "\n"
        "[workspace.dependencies]\n"
        'sp-core = { version = "27.0.0", default-features = false }\n'
        "\n"
        "[profile.release]\n"
        'panic = "unwind"\n'
    )

    assert find_mismatches(document, MAPPING) == [
        DependencyMismatch("dependencies", "sp-core", "28.0.0", "27.0.0")
    ]


def test_split_dependencies_and_dotted_keys_are_checked() -> None:
    """Split tables and dotted-key records report their declared versions."""
    document = parse(
        "[dependencies]\n"
        'sp-core.version = "27.0.0"\n'
        'sp-core.git = "https://github.com/paritytech/polkadot-sdk"\n'
        "\n"
        "[dev-dependencies]\n"
        'sp-io = "29.0.0"\n'
        "\n"
        "[dependencies.frame-support]\n"
        'version = "27.0.0"\n'
    )

    assert find_mismatches(document, MAPPING) == [
        DependencyMismatch("dependencies", "sp-core", "28.0.0", "27.0.0"),
        DependencyMismatch("dependencies", "frame-support", "28.0.0", "27.0.0"),
        DependencyMismatch("dev-dependencies", "sp-io", "30.0.0", "29.0.0"),
    ]
