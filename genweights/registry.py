"""
Generator Weights: Group Registry
=================================

Ordered collection of weight groups. The position of a group is its
identity: per-event products store that position as ``group_index``.

The registry is appended to during classification, repaired once by
``cleanup_orphan_central_weights`` and then frozen. Frozen registries are
read-only and may be shared between event-processing threads without
locking.
"""

from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

import polars as pl

from .core_types import RegistryFrozenError, WeightType
from .groups import PdfWeightGroupInfo, ScaleWeightGroupInfo, WeightGroupInfo


class GroupRegistry:
    """Append-only (until frozen) ordered list of weight groups."""

    def __init__(self, groups: Optional[List[WeightGroupInfo]] = None):
        self._groups: List[WeightGroupInfo] = list(groups or [])
        self._frozen = False
        self._merged = False

    def __len__(self) -> int:
        return len(self._groups)

    def __getitem__(self, index: int) -> WeightGroupInfo:
        return self._groups[index]

    def __iter__(self) -> Iterator[WeightGroupInfo]:
        return iter(self._groups)

    def __repr__(self) -> str:
        return f"GroupRegistry(groups={len(self._groups)}, frozen={self._frozen})"

    # ---------------- build phase ----------------

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def _check_mutable(self, operation: str) -> None:
        if self._frozen:
            raise RegistryFrozenError(f"Cannot {operation}: weight group registry is frozen")

    def append(self, group: WeightGroupInfo) -> int:
        """Append a group and return its index."""
        self._check_mutable("append a group")
        self._groups.append(group)
        return len(self._groups) - 1

    @property
    def last(self) -> Optional[WeightGroupInfo]:
        return self._groups[-1] if self._groups else None

    def cleanup_orphan_central_weights(self) -> Dict[int, int]:
        """
        Fold singleton PDF groups back into the scale group they are the
        central weight of.

        Some generators emit the nominal weight as a bare one-member PDF
        group ahead of the scale variations it belongs to. A scale group
        without a central entry absorbs the first earlier, unclaimed PDF
        singleton whose parent LHA id equals the scale group's LHA id.

        Returns a map from every pre-merge group index to its post-merge
        index; absorbed groups map to the index of the scale group that
        took their member.
        """
        self._check_mutable("merge orphan groups")
        if self._merged:
            raise RegistryFrozenError("Orphan central weights were already merged")

        absorbed_by: Dict[int, int] = {}
        for position, group in enumerate(self._groups):
            if group.weight_type != WeightType.SCALE:
                continue
            scale_group: ScaleWeightGroupInfo = group
            if scale_group.contains_central or scale_group.lhaid < 0:
                continue

            for sub_position in range(position):
                if sub_position in absorbed_by:
                    continue
                candidate = self._groups[sub_position]
                if candidate.weight_type != WeightType.PDF:
                    continue
                pdf_group: PdfWeightGroupInfo = candidate
                if pdf_group.n_ids_contained == 1 and pdf_group.parent_lhapdf_id == scale_group.lhaid:
                    info = pdf_group.members[0]
                    scale_group.add_central_weight(info.global_index, info.id, info.label)
                    absorbed_by[sub_position] = position
                    break

        remove_list = sorted(absorbed_by, reverse=True)
        for index in remove_list:
            del self._groups[index]
        self._merged = True

        removed: Set[int] = set(remove_list)
        index_map: Dict[int, int] = {}
        shift = 0
        for old_index in range(len(self._groups) + len(removed)):
            if old_index in removed:
                shift += 1
                continue
            index_map[old_index] = old_index - shift
        for old_index, owner in absorbed_by.items():
            index_map[old_index] = index_map[owner]
        return index_map

    # ---------------- read-only views ----------------

    @property
    def groups(self) -> Tuple[WeightGroupInfo, ...]:
        return tuple(self._groups)

    def ordered_group(self, index: int) -> Optional[WeightGroupInfo]:
        if 0 <= index < len(self._groups):
            return self._groups[index]
        return None

    def groups_by_type(self, weight_type: WeightType) -> List[WeightGroupInfo]:
        return [g for g in self._groups if g.weight_type == weight_type]

    def group_indices_by_type(self, weight_type: WeightType) -> List[int]:
        return [i for i, g in enumerate(self._groups) if g.weight_type == weight_type]

    def containing_group(self, global_index: int) -> Optional[WeightGroupInfo]:
        """First group holding a member at ``global_index``."""
        for group in self._groups:
            if group.contains_weight("", global_index):
                return group
        return None

    def total_members(self) -> int:
        return sum(g.n_ids_contained for g in self._groups)

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [g.to_dict() for g in self._groups]

    def summary(self) -> pl.DataFrame:
        """One row per group, in registry order."""
        return pl.DataFrame(
            {
                'group_index': list(range(len(self._groups))),
                'name': [g.name for g in self._groups],
                'type': [g.weight_type.name for g in self._groups],
                'n_members': [g.n_ids_contained for g in self._groups],
                'first_index': [g.index_range[0] for g in self._groups],
                'last_index': [g.index_range[1] for g in self._groups],
                'is_well_formed': [g.is_well_formed for g in self._groups],
            },
            schema={
                'group_index': pl.Int64,
                'name': pl.Utf8,
                'type': pl.Utf8,
                'n_members': pl.Int64,
                'first_index': pl.Int64,
                'last_index': pl.Int64,
                'is_well_formed': pl.Boolean,
            },
        )
