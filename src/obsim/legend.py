"""Legend description table and reconciliation.

A renderer draws every series with the encoding of its legend entry and
lists the entry only when it is visible. Observed and simulated series keep
distinct labels; reconciliation copies encodings between entries by name
and hides duplicate rows after the initial legend has been built.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional, Tuple

import pandas as pd

from .contracts.errors import UnknownSeriesError
from .contracts.types import SeriesKind

if TYPE_CHECKING:
    from .config.model import PlotConfiguration
    from .mapping import DataMapping

ENCODING_FIELDS = ("color", "shape", "linetype", "fill")
_RECONCILE_KEYS = set(ENCODING_FIELDS) | {"label", "visible", "copy_from"}


@dataclass(frozen=True)
class LegendEntry:
    """One legend row."""

    name: str
    label: str
    color: str
    shape: str = ""
    linetype: str = ""
    fill: bool = True
    visible: bool = True


class LegendTable:
    """Immutable, ordered collection of legend entries keyed by name."""

    def __init__(self, entries: Tuple[LegendEntry, ...] = ()):
        names = [e.name for e in entries]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate legend entry names: {duplicates}")
        self._entries = tuple(entries)

    def __iter__(self) -> Iterator[LegendEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return any(e.name == name for e in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LegendTable):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"LegendTable({list(self.names)})"

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(e.name for e in self._entries)

    def get(self, name: str) -> LegendEntry:
        for entry in self._entries:
            if entry.name == name:
                return entry
        raise UnknownSeriesError(f"No legend entry named {name!r}", {"known": list(self.names)})

    def find(self, name: str) -> Optional[LegendEntry]:
        for entry in self._entries:
            if entry.name == name:
                return entry
        return None

    def to_frame(self) -> pd.DataFrame:
        """Legend as a DataFrame with one row per entry."""
        columns = [f.name for f in fields(LegendEntry)]
        return pd.DataFrame([asdict(e) for e in self._entries], columns=columns)

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "LegendTable":
        """Rebuild a legend table from :meth:`to_frame` output."""
        return cls(tuple(
            LegendEntry(
                name=str(row["name"]),
                label=str(row["label"]),
                color=str(row["color"]),
                shape=str(row["shape"]),
                linetype=str(row["linetype"]),
                fill=bool(row["fill"]),
                visible=bool(row["visible"]),
            )
            for row in df.to_dict("records")
        ))


def build_legend(mapping: "DataMapping", config: Optional["PlotConfiguration"] = None) -> LegendTable:
    """Build the initial legend of a data mapping.

    Observed series are drawn as markers and simulated series as lines, both
    in the colour of their group.
    """
    entries = []
    for series in mapping.series():
        encoding = mapping.encoding_for_group(series.group, config)
        if series.kind == SeriesKind.OBSERVED:
            shape, linetype = encoding.shape, ""
        else:
            shape, linetype = "", encoding.linetype
        entries.append(LegendEntry(
            name=series.label,
            label=series.label,
            color=encoding.color,
            shape=shape,
            linetype=linetype,
            fill=encoding.fill,
        ))
    return LegendTable(tuple(entries))


def reconcile_legend(legend: LegendTable, mapping: Mapping[str, Mapping[str, Any]]) -> LegendTable:
    """Apply encoding and visibility overrides to a legend.

    ``mapping`` maps an entry name to overrides. Keys may be any encoding
    field (``color``, ``shape``, ``linetype``, ``fill``), ``label``,
    ``visible``, or ``copy_from`` naming the entry whose encoding fields are
    copied first. Copies read the source entry after its own explicit
    overrides, so applying the same mapping twice gives the same table.

    Raises:
        UnknownSeriesError: An entry or ``copy_from`` source does not exist
        ValueError: Unknown override keys or chained ``copy_from``
    """
    for name, overrides in mapping.items():
        legend.get(name)
        unknown = set(overrides) - _RECONCILE_KEYS
        if unknown:
            raise ValueError(f"Unknown legend override keys for {name!r}: {sorted(unknown)}")
        source = overrides.get("copy_from")
        if source is not None:
            legend.get(source)
            if source != name and "copy_from" in mapping.get(source, {}):
                raise ValueError(
                    f"Legend entry {name!r} copies from {source!r}, which itself copies an encoding"
                )

    def explicit(entry: LegendEntry) -> LegendEntry:
        overrides = mapping.get(entry.name, {})
        updates: Dict[str, Any] = {k: v for k, v in overrides.items() if k != "copy_from"}
        return replace(entry, **updates) if updates else entry

    explicit_entries = {e.name: explicit(e) for e in legend}

    reconciled = []
    for entry in legend:
        overrides = mapping.get(entry.name, {})
        source = overrides.get("copy_from")
        if source is not None and source != entry.name:
            copied = {f: getattr(explicit_entries[source], f) for f in ENCODING_FIELDS}
            entry = replace(entry, **copied)
        reconciled.append(explicit(entry))
    return LegendTable(tuple(reconciled))
