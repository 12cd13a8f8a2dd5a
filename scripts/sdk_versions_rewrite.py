"""Rewrite dependency declarations to match a resolved version mapping.

The rewrite works on a layout-preserving ``tomlkit`` document so entries that
are not managed by the mapping keep their exact bytes, comments included.
Managed entries are replaced by a canonical inline table that starts with the
new ``version`` and drops every version-control key.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import logging
import typing as typ

import tomlkit
from sdk_versions_serialise import parse_manifest
from tomlkit.container import OutOfOrderTableProxy
from tomlkit.items import AoT, Array, InlineTable, Item, Table

if typ.TYPE_CHECKING:
    from pathlib import Path

    from tomlkit.toml_document import TOMLDocument

__all__ = [
    "DEPENDENCY_TABLES",
    "RECORD_TYPES",
    "TABLE_TYPES",
    "UNCHANGED",
    "VERSION_CONTROL_KEYS",
    "RewriteOutcome",
    "build_canonical_dependency",
    "dependency_scope",
    "iter_dependency_tables",
    "lookup_name",
    "rewrite_manifest",
    "update_dependency_tables",
    "update_table_dependencies",
]

LOGGER = logging.getLogger(__name__)

DEPENDENCY_TABLES: typ.Final[tuple[str, ...]] = (
    "dependencies",
    "dev-dependencies",
    "build-dependencies",
)
VERSION_CONTROL_KEYS: typ.Final[frozenset[str]] = frozenset(
    {"git", "rev", "branch", "tag", "path"}
)

# Tables split by other headers, or dotted keys sharing a prefix, are exposed
# by tomlkit as out-of-order proxies that write through to the real tables.
TableLike = Table | OutOfOrderTableProxy
TABLE_TYPES: typ.Final = (Table, OutOfOrderTableProxy)
RECORD_TYPES: typ.Final = (InlineTable, Table, OutOfOrderTableProxy)


@dc.dataclass(frozen=True)
class RewriteOutcome:
    """Result of a rewrite: ``content`` is ``None`` when nothing changed."""

    content: str | None = None

    @property
    def changed(self) -> bool:
        """Return ``True`` when the rendered manifest differs from the input."""
        return self.content is not None


UNCHANGED: typ.Final[RewriteOutcome] = RewriteOutcome()


def rewrite_manifest(
    text: str,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
    manifest: Path | str | None = None,
) -> RewriteOutcome:
    r"""Return ``text`` with its managed dependencies set to ``crates_versions``.

    Parameters
    ----------
    text : str
        Manifest contents as read from disk.
    crates_versions : Mapping[str, str]
        Crate names mapped to the versions they should be pinned to.
    overwrite_local_paths : bool, default False
        Rewrite dependencies declared with a ``path`` too. By default they are
        treated as intentional local overrides and left alone.
    manifest : Path | str | None, optional
        Location of the manifest, used in error messages only.

    Returns
    -------
    RewriteOutcome
        :data:`UNCHANGED` when the rendering is byte-identical to ``text``,
        otherwise an outcome carrying the complete new manifest.

    Raises
    ------
    RewriteError
        Raised when ``text`` is not valid TOML.

    Examples
    --------
    >>> outcome = rewrite_manifest('[dependencies]\nfoo = "1.0.0"\n', {"foo": "2.0.0"})
    >>> outcome.content
    '[dependencies]\nfoo = "2.0.0"\n'
    """
    document = parse_manifest(text, manifest)
    update_dependency_tables(
        document, crates_versions, overwrite_local_paths=overwrite_local_paths
    )
    rendered = tomlkit.dumps(document)
    if rendered == text:
        return UNCHANGED
    return RewriteOutcome(rendered)


def dependency_scope(document: TOMLDocument) -> cabc.MutableMapping[str, typ.Any]:
    """Return ``[workspace]`` when it is a table, otherwise the document root."""
    workspace = document.get("workspace")
    if isinstance(workspace, TABLE_TYPES):
        return workspace
    return document


def iter_dependency_tables(
    document: TOMLDocument,
) -> cabc.Iterator[tuple[str, TableLike]]:
    """Yield the dependency tables in scope, in declaration-kind order."""
    scope = dependency_scope(document)
    for name in DEPENDENCY_TABLES:
        table = scope.get(name)
        if isinstance(table, TABLE_TYPES):
            yield name, table


def update_dependency_tables(
    document: TOMLDocument,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
) -> None:
    """Rewrite every in-scope dependency table of ``document`` in place."""
    for _, table in iter_dependency_tables(document):
        update_table_dependencies(
            table, crates_versions, overwrite_local_paths=overwrite_local_paths
        )


def lookup_name(key: str, value: object) -> str:
    """Return the crate a declaration refers to, honouring ``package`` renames."""
    if isinstance(value, RECORD_TYPES):
        package = value.get("package")
        if isinstance(package, str):
            return str(package)
    return key


def update_table_dependencies(
    table: TableLike,
    crates_versions: cabc.Mapping[str, str],
    *,
    overwrite_local_paths: bool = False,
) -> None:
    """Rewrite the declarations of ``table`` that ``crates_versions`` manages.

    Declarations without a mapping entry are skipped, as are declarations of an
    unexpected shape. Tables with a ``path`` are skipped unless
    ``overwrite_local_paths`` is set.
    """
    for key, value in list(table.items()):
        name = lookup_name(key, value)
        version = crates_versions.get(name)
        if version is None:
            LOGGER.debug("Could not find version for %s", name)
            continue

        match value:
            case InlineTable() | Table() | OutOfOrderTableProxy():
                if not overwrite_local_paths and "path" in value:
                    continue
                table[key] = build_canonical_dependency(value, version)
            case str():
                table[key] = version
            case _:
                LOGGER.error("Unexpected dependency value type for %s", key)
                continue

        LOGGER.debug("Setting %s to %s", key, version)


def build_canonical_dependency(
    record: cabc.Mapping[str, typ.Any], version: str
) -> InlineTable:
    """Return ``record`` as a single-line inline table pinned to ``version``.

    ``version`` comes first, followed by the remaining keys in their original
    order. Version-control keys and nested tables are dropped.

    Examples
    --------
    >>> record = {"git": "https://example.com", "default-features": False}
    >>> build_canonical_dependency(record, "1.0.0").as_string()
    '{ version = "1.0.0", default-features = false }'
    """
    fields = [f"version = {tomlkit.string(version).as_string()}"]
    for key, value in record.items():
        if key == "version" or key in VERSION_CONTROL_KEYS:
            continue
        if not _is_plain_value(value):
            continue
        fields.append(f"{tomlkit.key(key).as_string()} = {_render_value(value)}")

    rendered = "{ " + ", ".join(fields) + " }"
    return typ.cast("InlineTable", tomlkit.value(rendered))


def _is_plain_value(value: object) -> bool:
    """Return ``False`` for nested tables, which inline tables cannot hold."""
    if isinstance(value, (Table, AoT)):
        return False
    return isinstance(value, InlineTable) or not isinstance(value, cabc.Mapping)


def _render_value(value: object) -> str:
    """Render ``value`` on a single line, keeping its original notation."""
    item = value if isinstance(value, Item) else tomlkit.item(value)
    rendered = item.as_string()
    if isinstance(item, Array) and "\n" in rendered:
        return "[" + ", ".join(_render_value(element) for element in item) + "]"
    return rendered
