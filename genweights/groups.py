"""
Generator Weights: Weight Group Descriptors
===========================================

Weight groups form a closed variant set keyed by ``WeightType``:

- ScaleWeightGroupInfo: renormalization / factorization scale variations
- PdfWeightGroupInfo: members of one PDF uncertainty set
- MEParamWeightGroupInfo: matrix-element reweighting
- UnknownWeightGroupInfo: everything else

Members are append-only and never reordered; the slot of a weight in the
per-event product is its position in ``members``. Well-formedness can
only ever be downgraded.
"""

from __future__ import annotations
import warnings
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from .core_types import (
    LHAID_UNSET, MalformedGroupWarning, PdfUncertaintyType,
    ScaleVariation, WeightRecord, WeightType,
)

# ==============================================================================
# BASE GROUP
# ==============================================================================

class WeightGroupInfo:
    """Common state of every weight group."""

    weight_type: ClassVar[WeightType] = WeightType.UNKNOWN

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._is_well_formed = True
        self._malformed_reasons: List[str] = []
        self._members: List[WeightRecord] = []
        self._slot_by_index: Dict[int, List[int]] = {}
        self._slot_by_id: Dict[str, int] = {}
        self._first_index = -1
        self._last_index = -1

    def __repr__(self) -> str:
        return (f"{type(self).__name__}(name={self.name!r}, members={len(self._members)}, "
                f"range={self.index_range}, well_formed={self._is_well_formed})")

    # ---------------- well-formedness ----------------

    @property
    def is_well_formed(self) -> bool:
        return self._is_well_formed

    @property
    def malformed_reasons(self) -> Tuple[str, ...]:
        return tuple(self._malformed_reasons)

    def mark_malformed(self, reason: str) -> None:
        """Downgrade the group; warns once, on the first downgrade."""
        self._malformed_reasons.append(reason)
        if self._is_well_formed:
            self._is_well_formed = False
            warnings.warn(
                f"Weight group '{self.name}' is not well formed: {reason}",
                MalformedGroupWarning,
                stacklevel=3,
            )

    # ---------------- membership ----------------

    @property
    def members(self) -> Tuple[WeightRecord, ...]:
        return tuple(self._members)

    @property
    def n_ids_contained(self) -> int:
        return len(self._members)

    @property
    def index_range(self) -> Tuple[int, int]:
        return self._first_index, self._last_index

    def add_contained_id(self, global_index: int, weight_id: str, label: str = "") -> WeightRecord:
        record = WeightRecord(
            global_index=global_index,
            local_index=len(self._members),
            id=weight_id,
            label=label,
        )
        self._members.append(record)
        self._slot_by_index.setdefault(global_index, []).append(record.local_index)
        if weight_id:
            self._slot_by_id.setdefault(weight_id, record.local_index)

        if self._first_index < 0 or global_index < self._first_index:
            self._first_index = global_index
        if global_index > self._last_index:
            self._last_index = global_index
        return record

    def index_in_range(self, index: int) -> bool:
        return self._first_index <= index <= self._last_index and self._first_index >= 0

    def weight_vector_entry(self, weight_id: str, index: int) -> Optional[int]:
        """
        Slot of the member matching ``(weight_id, index)``, or None.

        A member matches on its global index when ``weight_id`` is empty or
        equal to the member id; a non-empty id with no index match falls
        back to the first member carrying that id.
        """
        for slot in self._slot_by_index.get(index, ()):
            if not weight_id or self._members[slot].id == weight_id:
                return slot
        if weight_id:
            return self._slot_by_id.get(weight_id)
        return None

    def contains_weight(self, weight_id: str, index: int) -> bool:
        return self.weight_vector_entry(weight_id, index) is not None

    # ---------------- serialization ----------------

    def to_dict(self) -> Dict[str, Any]:
        first, last = self.index_range
        return {
            'name': self.name,
            'type': self.weight_type.name,
            'description': self.description,
            'is_well_formed': self._is_well_formed,
            'first_index': first,
            'last_index': last,
            'members': [m.to_dict() for m in self._members],
        }

# ==============================================================================
# VARIANTS
# ==============================================================================

class ScaleWeightGroupInfo(WeightGroupInfo):
    """muR / muF scale variations, optionally per dynamical scale choice."""

    weight_type: ClassVar[WeightType] = WeightType.SCALE

    def __init__(self, name: str, description: str = ""):
        super().__init__(name, description)
        self.mu_r_mu_f_by_index: Dict[int, ScaleVariation] = {}
        self.lhaid = LHAID_UNSET
        self._central_index: Optional[int] = None
        self._dyn_names: List[str] = []

    @property
    def contains_central(self) -> bool:
        return self._central_index is not None

    @property
    def central_index(self) -> Optional[int]:
        return self._central_index

    @property
    def dyn_names(self) -> Tuple[str, ...]:
        return tuple(self._dyn_names)

    def set_mu_r_mu_f_index(self, global_index: int, weight_id: str, mu_r: float, mu_f: float,
                            dyn_num: Optional[int] = None, dyn_label: Optional[str] = None) -> None:
        """Register the scale pair of an existing member."""
        slot = self.weight_vector_entry(weight_id, global_index)
        if slot is None:
            raise KeyError(f"No member with id '{weight_id}' at index {global_index} in {self.name}")

        variation = ScaleVariation(mu_r=mu_r, mu_f=mu_f, dyn_num=dyn_num, dyn_label=dyn_label)
        self.mu_r_mu_f_by_index[global_index] = variation
        if dyn_label and dyn_label not in self._dyn_names:
            self._dyn_names.append(dyn_label)
        if variation.is_central and self._central_index is None:
            self._central_index = slot

    def add_central_weight(self, global_index: int, weight_id: str, label: str = "") -> WeightRecord:
        """Append a member and register it as the (1, 1) central entry."""
        record = self.add_contained_id(global_index, weight_id, label)
        self.mu_r_mu_f_by_index[global_index] = ScaleVariation(mu_r=1.0, mu_f=1.0)
        if self._central_index is None:
            self._central_index = record.local_index
        return record

    def scale_variation_index(self, mu_r: float, mu_f: float,
                              dyn_num: Optional[int] = None) -> Optional[int]:
        for global_index, variation in self.mu_r_mu_f_by_index.items():
            if variation.mu_r != mu_r or variation.mu_f != mu_f:
                continue
            if dyn_num is not None and variation.dyn_num != dyn_num:
                continue
            return self.weight_vector_entry("", global_index)
        return None

    def to_dict(self) -> Dict[str, Any]:
        info = super().to_dict()
        info.update({
            'lhaid': self.lhaid,
            'contains_central': self.contains_central,
            'central_index': self._central_index,
            'dyn_names': list(self._dyn_names),
            'scale_variations': {
                index: {'mu_r': v.mu_r, 'mu_f': v.mu_f, 'dyn_num': v.dyn_num, 'dyn_label': v.dyn_label}
                for index, v in self.mu_r_mu_f_by_index.items()
            },
        })
        return info


class PdfWeightGroupInfo(WeightGroupInfo):
    """Members of one PDF uncertainty set, tracked by LHA id."""

    weight_type: ClassVar[WeightType] = WeightType.PDF

    def __init__(self, name: str, description: str = ""):
        super().__init__(name, description)
        self.parent_lhapdf_id = LHAID_UNSET
        self.uncertainty_type = PdfUncertaintyType.UNKNOWN
        self._lha_ids: List[int] = []

    @property
    def lha_ids(self) -> Tuple[int, ...]:
        return tuple(self._lha_ids)

    def add_lhaid(self, lhaid: int) -> None:
        if self._lha_ids and 0 <= lhaid < self._lha_ids[-1]:
            self.mark_malformed(f"LHA id {lhaid} follows {self._lha_ids[-1]}")
        self._lha_ids.append(lhaid)

    def contains_lhapdf_id(self, lhaid: int) -> bool:
        return lhaid in self._lha_ids

    def index_of_lhapdf_id(self, lhaid: int) -> Optional[int]:
        try:
            return self._lha_ids.index(lhaid)
        except ValueError:
            return None

    def append_description(self, text: str) -> None:
        self.description += text

    def to_dict(self) -> Dict[str, Any]:
        info = super().to_dict()
        info.update({
            'parent_lhapdf_id': self.parent_lhapdf_id,
            'uncertainty_type': self.uncertainty_type.key,
            'lha_ids': list(self._lha_ids),
        })
        return info


class MEParamWeightGroupInfo(WeightGroupInfo):
    weight_type: ClassVar[WeightType] = WeightType.ME_PARAM


class UnknownWeightGroupInfo(WeightGroupInfo):
    weight_type: ClassVar[WeightType] = WeightType.UNKNOWN


GROUP_CLASSES: Dict[WeightType, type] = {
    WeightType.SCALE: ScaleWeightGroupInfo,
    WeightType.PDF: PdfWeightGroupInfo,
    WeightType.ME_PARAM: MEParamWeightGroupInfo,
    WeightType.UNKNOWN: UnknownWeightGroupInfo,
}


def create_weight_group(weight_type: WeightType, name: str, description: str = "") -> WeightGroupInfo:
    """Factory for the group variant matching ``weight_type``."""
    return GROUP_CLASSES[weight_type](name, description)
