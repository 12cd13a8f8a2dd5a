"""Manifest loading and persistence shared by the rewrite workflows.

Manifests are read and written as exact text so an unchanged rendering can be
detected byte for byte, and parse failures are reported with an excerpt of the
offending lines.
"""

from __future__ import annotations

import typing as typ
from pathlib import Path

from sdk_versions_errors import RewriteError
from tomlkit import parse
from tomlkit.exceptions import ParseError, TOMLKitError

if typ.TYPE_CHECKING:
    from tomlkit.toml_document import TOMLDocument

__all__ = [
    "_error_excerpt",
    "parse_manifest",
    "read_manifest",
    "write_manifest",
]

EXCERPT_CONTEXT_LINES: typ.Final[int] = 2


def read_manifest(manifest: Path) -> str:
    """Return the text of ``manifest`` with its line endings untouched."""
    return Path(manifest).read_bytes().decode("utf-8")


def write_manifest(manifest: Path, rendered: str) -> None:
    """Persist ``rendered`` to ``manifest`` exactly as given."""
    Path(manifest).write_text(rendered, encoding="utf-8", newline="")


def parse_manifest(text: str, manifest: Path | str | None = None) -> TOMLDocument:
    """Parse ``text`` into a layout-preserving document.

    Raises
    ------
    RewriteError
        Raised when ``text`` is not valid TOML.
    """
    try:
        return parse(text)
    except TOMLKitError as error:
        location = manifest if manifest is not None else "manifest"
        excerpt = None
        if isinstance(error, ParseError):
            excerpt = _error_excerpt(text, error.line)
        message = f"could not parse {location}: {error}"
        raise RewriteError(message, excerpt=excerpt) from error


def _error_excerpt(text: str, line: int) -> list[str]:
    """Return the lines surrounding 1-based ``line`` for diagnostics."""
    lines = text.splitlines()
    if not lines or line < 1:
        return []

    index = min(line, len(lines)) - 1
    start = max(index - EXCERPT_CONTEXT_LINES, 0)
    end = min(index + EXCERPT_CONTEXT_LINES + 1, len(lines))
    return [
        f"{'>' if number == index else ' '} {number + 1:>4} | {lines[number]}"
        for number in range(start, end)
    ]
