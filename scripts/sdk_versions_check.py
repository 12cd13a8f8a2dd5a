"""Report the managed dependencies whose declared version is out of date."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import typing as typ

from sdk_versions_rewrite import iter_dependency_tables, lookup_name
from tomlkit.container import OutOfOrderTableProxy
from tomlkit.items import InlineTable, Table

if typ.TYPE_CHECKING:
    from tomlkit.toml_document import TOMLDocument

__all__ = ["DependencyMismatch", "find_mismatches"]


@dc.dataclass(frozen=True)
class DependencyMismatch:
    """A dependency declared at ``found`` while ``expected`` was resolved."""

    table: str
    name: str
    expected: str
    found: str | None

    def describe(self) -> str:
        """Return a one-line summary suitable for logging."""
        found = self.found if self.found is not None else "no version"
        return f"[{self.table}] {self.name}: {found} -> {self.expected}"


def find_mismatches(
    document: TOMLDocument,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
) -> list[DependencyMismatch]:
    """Return the managed declarations of ``document`` that need rewriting.

    The same tables, lookup names and ``path`` rule as the rewrite apply, so
    an empty result means a rewrite would only touch formatting.
    """
    mismatches: list[DependencyMismatch] = []
    for table_name, table in iter_dependency_tables(document):
        for key, value in table.items():
            expected = crates_versions.get(lookup_name(key, value))
            if expected is None:
                continue

            match value:
                case InlineTable() | Table() | OutOfOrderTableProxy():
                    if not overwrite_local_paths and "path" in value:
                        continue
                    declared = value.get("version")
                    found = str(declared) if isinstance(declared, str) else None
                case str():
                    found = str(value)
                case _:
                    continue

            if found != expected:
                mismatches.append(DependencyMismatch(table_name, key, expected, found))
    return mismatches
