"""Shared fixtures for the SDK version manager tests."""

from __future__ import annotations

import sys
import typing as typ
from pathlib import Path

import pytest

SCRIPTS_DIR = Path(__file__).resolve().parents[1]
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))

from sdk_fakes import FakeLocal, FakeRemote  # noqa: E402

if typ.TYPE_CHECKING:
    from sdk_fakes import RunCallable


@pytest.fixture
def remote() -> FakeRemote:
    """Provide an empty set of canned HTTP responses."""
    return FakeRemote()


@pytest.fixture
def patch_gh(
    monkeypatch: pytest.MonkeyPatch,
) -> typ.Callable[[RunCallable], FakeLocal]:
    """Return a helper that replaces ``plumbum.local`` in the transport."""
    import sdk_versions_transport

    def _patch(run_callable: RunCallable) -> FakeLocal:
        fake_local = FakeLocal(run_callable)
        monkeypatch.setattr(sdk_versions_transport, "local", fake_local)
        return fake_local

    return _patch


@pytest.fixture
def manifest_factory(tmp_path: Path) -> typ.Callable[[str], Path]:
    """Return a helper that writes a ``Cargo.toml`` into a fresh crate folder."""

    def _write(text: str) -> Path:
        crate_dir = tmp_path / "crate"
        crate_dir.mkdir(exist_ok=True)
        manifest = crate_dir / "Cargo.toml"
        manifest.write_text(text, encoding="utf-8")
        return manifest

    return _write
