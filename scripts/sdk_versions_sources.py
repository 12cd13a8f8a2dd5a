"""Parsers for the remote manifests that describe an SDK release.

Two release formats are understood: the ``Cargo.lock`` snapshot of a
``release-crates-io`` branch and the ``Plan.toml`` release plan that newer
branches and stable tags carry. Bundled JSON snapshots share the same
``name -> version`` output so every caller receives a single mapping shape.

Examples
--------
>>> parse('[[package]]\\nname = "demo"\\nversion = "1.0.0"\\n', SourceKind.LOCK)
{'demo': '1.0.0'}
"""

from __future__ import annotations

import dataclasses as dc
import enum
import json
import typing as typ

import tomllib
from sdk_versions_errors import MalformedInputError, UnsupportedSourceError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

__all__ = [
    "PLACEHOLDER_VERSION",
    "LockEntry",
    "PlanEntry",
    "SourceKind",
    "coerce_source_kind",
    "parse",
    "parse_lock_entries",
    "parse_plan_entries",
    "plan_requires_owner_lookup",
    "select_lock_versions",
    "select_plan_versions",
]

PLACEHOLDER_VERSION: typ.Final[str] = "0.0.0"


class SourceKind(enum.StrEnum):
    """Remote resource formats, named after the file that carries them."""

    PLAN = "Plan.toml"
    LOCK = "Cargo.lock"
    SNAPSHOT = "versions.json"


@dc.dataclass(frozen=True)
class LockEntry:
    """A resolved package listed in ``Cargo.lock``."""

    name: str
    version: str
    source: str | None = None


@dc.dataclass(frozen=True)
class PlanEntry:
    """A crate transition listed in ``Plan.toml``."""

    name: str
    from_version: str
    to_version: str
    publish: bool | None = None

    @property
    def is_placeholder(self) -> bool:
        """Return ``True`` when both sides of the transition are unset."""
        return self.from_version == self.to_version == PLACEHOLDER_VERSION


def parse(
    raw_text: str,
    source: SourceKind | str,
    *,
    known_owners: cabc.Set[str] = frozenset(),
) -> dict[str, str]:
    """Return the ``name -> version`` mapping described by ``raw_text``.

    Parameters
    ----------
    raw_text : str
        Text fetched for ``source``.
    source : SourceKind | str
        Format of ``raw_text``.
    known_owners : Set[str], optional
        Crates owned by the release publisher on crates.io. Only consulted for
        plan entries marked ``publish = false``.

    Returns
    -------
    dict[str, str]
        Mapping from crate name to the version that should be depended on.

    Raises
    ------
    UnsupportedSourceError
        Raised when ``source`` is not a known format.
    MalformedInputError
        Raised when ``raw_text`` does not have the shape ``source`` requires.
    """
    kind = coerce_source_kind(source)
    if kind is SourceKind.LOCK:
        return select_lock_versions(parse_lock_entries(raw_text))
    if kind is SourceKind.PLAN:
        return select_plan_versions(parse_plan_entries(raw_text), known_owners)
    return _parse_snapshot(raw_text)


def coerce_source_kind(source: SourceKind | str) -> SourceKind:
    """Return ``source`` as a :class:`SourceKind` or fail loudly."""
    try:
        return SourceKind(source)
    except ValueError as error:
        message = f"Unknown source: {source}"
        raise UnsupportedSourceError(message) from error


def parse_lock_entries(raw_text: str) -> tuple[LockEntry, ...]:
    """Deserialise the ``[[package]]`` records of a ``Cargo.lock`` file."""
    records = _load_records(raw_text, SourceKind.LOCK, "package")
    return tuple(
        LockEntry(
            name=_required_str(record, "name", SourceKind.LOCK),
            version=_required_str(record, "version", SourceKind.LOCK),
            source=_optional(record, "source", str, SourceKind.LOCK),
        )
        for record in records
    )


def parse_plan_entries(raw_text: str) -> tuple[PlanEntry, ...]:
    """Deserialise the ``[[crate]]`` records of a ``Plan.toml`` file."""
    records = _load_records(raw_text, SourceKind.PLAN, "crate")
    return tuple(
        PlanEntry(
            name=_required_str(record, "name", SourceKind.PLAN),
            from_version=_required_str(record, "from", SourceKind.PLAN),
            to_version=_required_str(record, "to", SourceKind.PLAN),
            publish=_optional(record, "publish", bool, SourceKind.PLAN),
        )
        for record in records
    )


def select_lock_versions(entries: cabc.Iterable[LockEntry]) -> dict[str, str]:
    """Keep packages without a ``source`` marker, i.e. workspace members."""
    return {entry.name: entry.version for entry in entries if entry.source is None}


def plan_requires_owner_lookup(entries: cabc.Iterable[PlanEntry]) -> bool:
    """Return ``True`` when any entry opts out of publishing explicitly."""
    return any(entry.publish is False for entry in entries)


def select_plan_versions(
    entries: cabc.Iterable[PlanEntry], known_owners: cabc.Set[str] = frozenset()
) -> dict[str, str]:
    """Return target versions for the plan entries consuming projects need.

    Entries are published unless marked otherwise. Crates marked
    ``publish = false`` are still kept when they are already public under the
    release owner and the entry is not a ``0.0.0 -> 0.0.0`` placeholder.
    """
    return {
        entry.name: entry.to_version
        for entry in entries
        if entry.publish is not False
        or (entry.name in known_owners and not entry.is_placeholder)
    }


def _parse_snapshot(raw_text: str) -> dict[str, str]:
    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as error:
        raise MalformedInputError(SourceKind.SNAPSHOT, str(error)) from error
    if not isinstance(data, dict):
        reason = "expected a JSON object of crate versions"
        raise MalformedInputError(SourceKind.SNAPSHOT, reason)
    for name, version in data.items():
        if not isinstance(version, str) or not version:
            reason = f"crate {name!r} has no version string"
            raise MalformedInputError(SourceKind.SNAPSHOT, reason)
    return dict(data)


def _load_records(
    raw_text: str, kind: SourceKind, table: str
) -> list[dict[str, typ.Any]]:
    try:
        data = tomllib.loads(raw_text)
    except tomllib.TOMLDecodeError as error:
        raise MalformedInputError(kind, str(error)) from error
    records = data.get(table)
    if not isinstance(records, list):
        reason = f"expected an array of [[{table}]] tables"
        raise MalformedInputError(kind, reason)
    if not all(isinstance(record, dict) for record in records):
        reason = f"every [[{table}]] entry must be a table"
        raise MalformedInputError(kind, reason)
    return records


def _required_str(record: dict[str, typ.Any], key: str, kind: SourceKind) -> str:
    value = record.get(key)
    if not isinstance(value, str) or not value:
        name = record.get("name", "<unnamed>")
        reason = f"entry {name!r} is missing a {key!r} string"
        raise MalformedInputError(kind, reason)
    return value


def _optional(
    record: dict[str, typ.Any], key: str, expected: type, kind: SourceKind
) -> typ.Any:
    value = record.get(key)
    if value is None or isinstance(value, expected):
        return value
    name = record.get("name", "<unnamed>")
    reason = f"entry {name!r} has an invalid {key!r} value: {value!r}"
    raise MalformedInputError(kind, reason)
