"""
Generator Weights: LHAPDF Set Lookup
====================================

The PDF-set id database is an external, read-only service. Classification
only needs three questions answered:

- set name -> LHA id of the set's central member
- LHA id -> (set name, member offset inside the set)
- does an LHA id exist

``LhapdfLookup`` is the protocol; ``LhapdfTable`` is an in-memory
implementation indexed with a sorted numpy array of set boundaries, used
for injection and testing.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, runtime_checkable

import numpy as np
import polars as pl


@runtime_checkable
class LhapdfLookup(Protocol):
    """Read-only PDF-set id lookup service."""

    def by_name(self, name: str) -> Optional[int]: ...

    def by_id(self, lhaid: int) -> Optional[Tuple[str, int]]: ...

    def exists(self, lhaid: int) -> bool: ...


@dataclass(frozen=True)
class PdfSetEntry:
    """One PDF set: its name, first LHA id and number of members."""
    name: str
    first_id: int
    n_members: int

    @property
    def last_id(self) -> int:
        return self.first_id + self.n_members - 1

    def contains(self, lhaid: int) -> bool:
        return self.first_id <= lhaid <= self.last_id


class LhapdfTable:
    """
    In-memory PDF set table.

    Sets are kept sorted by first id so that ``by_id`` is a single
    ``np.searchsorted`` over the set boundaries. Overlapping id ranges
    are rejected at construction.
    """

    def __init__(self, sets: Iterable[PdfSetEntry] = ()):
        entries = sorted(sets, key=lambda s: s.first_id)

        for entry in entries:
            if entry.n_members <= 0:
                raise ValueError(f"PDF set {entry.name} has no members")
            if entry.first_id < 0:
                raise ValueError(f"PDF set {entry.name} has negative LHA id {entry.first_id}")
        for previous, current in zip(entries, entries[1:]):
            if current.first_id <= previous.last_id:
                raise ValueError(
                    f"PDF sets {previous.name} and {current.name} overlap in LHA id range"
                )

        self._entries: List[PdfSetEntry] = entries
        self._first_ids = np.array([e.first_id for e in entries], dtype=np.int64)
        self._by_name: Dict[str, PdfSetEntry] = {e.name: e for e in entries}
        self._lookup_stats = defaultdict(int)

    @classmethod
    def from_sets(cls, sets: Iterable[Tuple[str, int, int]]) -> LhapdfTable:
        """Build from ``(name, first_id, n_members)`` tuples."""
        return cls(PdfSetEntry(name, int(first_id), int(n_members))
                   for name, first_id, n_members in sets)

    @classmethod
    def from_frame(cls, frame: pl.DataFrame) -> LhapdfTable:
        """Build from a polars frame with ``name``, ``lhaid`` and ``n_members`` columns."""
        missing = {'name', 'lhaid', 'n_members'} - set(frame.columns)
        if missing:
            raise ValueError(f"PDF set frame is missing columns: {sorted(missing)}")
        rows = frame.select(['name', 'lhaid', 'n_members']).iter_rows()
        return cls.from_sets(rows)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    @property
    def sets(self) -> Tuple[PdfSetEntry, ...]:
        return tuple(self._entries)

    def by_name(self, name: str) -> Optional[int]:
        self._lookup_stats['by_name'] += 1
        entry = self._by_name.get(name)
        return entry.first_id if entry is not None else None

    def by_id(self, lhaid: int) -> Optional[Tuple[str, int]]:
        self._lookup_stats['by_id'] += 1
        entry = self._find_entry(lhaid)
        if entry is None:
            return None
        return entry.name, lhaid - entry.first_id

    def exists(self, lhaid: int) -> bool:
        return self._find_entry(lhaid) is not None

    def _find_entry(self, lhaid: int) -> Optional[PdfSetEntry]:
        if not self._entries or lhaid < 0:
            return None
        position = int(np.searchsorted(self._first_ids, lhaid, side='right')) - 1
        if position < 0:
            return None
        entry = self._entries[position]
        return entry if entry.contains(lhaid) else None

    def to_frame(self) -> pl.DataFrame:
        return pl.DataFrame({
            'name': [e.name for e in self._entries],
            'lhaid': [e.first_id for e in self._entries],
            'n_members': [e.n_members for e in self._entries],
        })

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'n_sets': len(self._entries),
            'lookups': dict(self._lookup_stats),
        }
