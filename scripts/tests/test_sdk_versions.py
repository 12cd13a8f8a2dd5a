"""Tests for the file-level helpers exposed by the facade module."""

from __future__ import annotations

import typing as typ

import pytest
import sdk_versions
import sdk_versions_serialise

if typ.TYPE_CHECKING:
    from pathlib import Path

MANIFEST = """\
[package]
name = "pallet-demo"

[dependencies]
sp-core = { version = "27.0.0", default-features = false } # primitives
serde = "1.0"
"""

MAPPING = {"sp-core": "28.0.0"}

ManifestFactory = typ.Callable[[str], "Path"]


@pytest.fixture
def writes(monkeypatch: pytest.MonkeyPatch) -> list[Path]:
    """Record the manifests written through the serialise module."""
    written: list[Path] = []
    write_manifest = sdk_versions_serialise.write_manifest

    def record(manifest: Path, rendered: str) -> None:
        written.append(manifest)
        write_manifest(manifest, rendered)

    monkeypatch.setattr(sdk_versions_serialise, "write_manifest", record)
    return written


def test_rewrite_manifest_file_writes_changes(
    manifest_factory: ManifestFactory, writes: list[Path]
) -> None:
    """A changed manifest is written back with the new versions."""
    manifest = manifest_factory(MANIFEST)

    outcome = sdk_versions.rewrite_manifest_file(manifest, MAPPING)

    assert outcome.changed
    assert manifest.read_text(encoding="utf-8") == outcome.content
    assert outcome.content == MANIFEST.replace("27.0.0", "28.0.0")
    assert writes == [manifest]


def test_rewrite_manifest_file_skips_unchanged(
    manifest_factory: ManifestFactory, writes: list[Path]
) -> None:
    """An up-to-date manifest is never written."""
    manifest = manifest_factory(MANIFEST)

    outcome = sdk_versions.rewrite_manifest_file(manifest, {"serde": "1.0"})

    assert outcome is sdk_versions.UNCHANGED
    assert writes == []
    assert manifest.read_text(encoding="utf-8") == MANIFEST


def test_rewrite_manifest_file_dry_run(
    manifest_factory: ManifestFactory, writes: list[Path]
) -> None:
    """``dry_run`` reports the new content without touching the file."""
    manifest = manifest_factory(MANIFEST)

    outcome = sdk_versions.rewrite_manifest_file(manifest, MAPPING, dry_run=True)

    assert outcome.changed
    assert writes == []
    assert manifest.read_text(encoding="utf-8") == MANIFEST


def test_manifest_mismatches_reads_without_writing(
    manifest_factory: ManifestFactory, writes: list[Path]
) -> None:
    """Mismatches are computed from the file on disk."""
    manifest = manifest_factory(MANIFEST)

    mismatches = sdk_versions.manifest_mismatches(manifest, MAPPING)

    assert mismatches == [
        sdk_versions.DependencyMismatch("dependencies", "sp-core", "28.0.0", "27.0.0")
    ]
    assert writes == []


def test_manifest_mismatches_reports_parse_errors(
    manifest_factory: ManifestFactory,
) -> None:
    """Unparsable manifests raise the rewrite error with the file location."""
    manifest = manifest_factory("[dependencies\n")

    with pytest.raises(sdk_versions.RewriteError, match="could not parse"):
        sdk_versions.manifest_mismatches(manifest, MAPPING)
