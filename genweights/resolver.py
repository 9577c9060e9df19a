"""
Generator Weights: Per-Event Resolution
=======================================

Maps every weight value of an event to ``(group_index, slot_index)`` in a
frozen ``GroupRegistry`` and assembles the event's ``GenWeightProduct``.

Lookup is two-phase: a single probe of the group that claimed the
previous weight (event weights are usually ordered by group), then a
full scan of the registry in order. A weight no group claims is an
``UnmatchedWeightError``; the unmatched-weight policy decides whether
that aborts the event or skips the weight.
"""

from __future__ import annotations
import warnings
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import polars as pl
import pyarrow as pa

from .config import WeightHelperConfig
from .core_types import (
    EventWeight, RegistryFrozenError, UnmatchedWeightError, UnmatchedWeightPolicy,
    UnmatchedWeightWarning, WeightEntry,
)
from .registry import GroupRegistry

WeightInput = Union[EventWeight, Tuple[float, str], Tuple[float, str, int]]

# ==============================================================================
# OUTPUT PRODUCT
# ==============================================================================

class GenWeightProduct:
    """Weights of one event as ``(value, group_index, slot_index)`` entries."""

    def __init__(self, central_weight: float = 1.0, num_weight_sets: int = 0):
        self.central_weight = float(central_weight)
        self.num_weight_sets = num_weight_sets
        self.n_skipped = 0
        self._entries: List[WeightEntry] = []
        self._sealed = False

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[WeightEntry]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return (f"GenWeightProduct(central_weight={self.central_weight}, "
                f"entries={len(self._entries)}, weight_sets={self.num_weight_sets})")

    @property
    def entries(self) -> Tuple[WeightEntry, ...]:
        return tuple(self._entries)

    @property
    def is_sealed(self) -> bool:
        return self._sealed

    def add_weight(self, value: float, group_index: int, slot_index: int) -> None:
        if self._sealed:
            raise RegistryFrozenError("Cannot add weights to a sealed GenWeightProduct")
        self._entries.append(WeightEntry(float(value), group_index, slot_index))

    def seal(self) -> None:
        self._sealed = True

    def weights_for_group(self, group_index: int, n_slots: Optional[int] = None) -> np.ndarray:
        """Values of one group ordered by slot; missing slots are ``nan``."""
        selected = [e for e in self._entries if e.group_index == group_index]
        if n_slots is None:
            n_slots = max((e.slot_index for e in selected), default=-1) + 1
        values = np.full(n_slots, np.nan, dtype=np.float64)
        for entry in selected:
            if entry.slot_index < n_slots:
                values[entry.slot_index] = entry.value
        return values

    def to_polars(self) -> pl.DataFrame:
        return pl.DataFrame(
            {
                'value': [e.value for e in self._entries],
                'group_index': [e.group_index for e in self._entries],
                'slot_index': [e.slot_index for e in self._entries],
            },
            schema={'value': pl.Float64, 'group_index': pl.Int32, 'slot_index': pl.Int32},
        )

    def to_arrow(self) -> pa.Table:
        table = pa.table({
            'value': pa.array([e.value for e in self._entries], type=pa.float64()),
            'group_index': pa.array([e.group_index for e in self._entries], type=pa.int32()),
            'slot_index': pa.array([e.slot_index for e in self._entries], type=pa.int32()),
        })
        return table.replace_schema_metadata({
            'central_weight': repr(self.central_weight),
            'num_weight_sets': str(self.num_weight_sets),
        })

# ==============================================================================
# RESOLVER
# ==============================================================================

def _as_event_weight(weight: WeightInput) -> EventWeight:
    if isinstance(weight, EventWeight):
        return weight
    return EventWeight(*weight)


class WeightResolver:
    """Resolve event weights against a frozen registry."""

    def __init__(self, registry: GroupRegistry, config: Optional[WeightHelperConfig] = None):
        if not registry.is_frozen:
            raise ValueError("WeightResolver requires a frozen GroupRegistry")
        self.registry = registry
        self.config = config or WeightHelperConfig()

    def find_containing_group(self, weight_id: str, index: int, previous_group_index: int = 0) -> int:
        """Index of the group holding ``(weight_id, index)``."""
        registry = self.registry
        probe = previous_group_index if previous_group_index >= 0 else 0
        if probe < len(registry):
            group = registry[probe]
            if group.index_in_range(index) and group.contains_weight(weight_id, index):
                return probe

        # fall back to an unordered search
        for group_index, group in enumerate(registry):
            if group.contains_weight(weight_id, index):
                return group_index

        raise UnmatchedWeightError(weight_id, index, len(registry))

    def build_product(self,
                      weights: Iterable[WeightInput],
                      central_weight: float = 1.0,
                      policy: Optional[UnmatchedWeightPolicy] = None) -> GenWeightProduct:
        """
        Build the product for one event.

        ``previous_group_index`` is carried from weight to weight and is
        local to this call, so concurrent events never share it.
        """
        policy = policy or self.config.unmatched_policy
        product = GenWeightProduct(central_weight, num_weight_sets=len(self.registry))

        # a pure central-weight sample carries no group structure
        if len(self.registry) < 2:
            product.seal()
            return product

        previous_group_index = 0
        for position, raw in enumerate(weights):
            weight = _as_event_weight(raw)
            index = position if weight.index is None else weight.index
            try:
                group_index = self.find_containing_group(weight.id, index, previous_group_index)
            except UnmatchedWeightError as error:
                if policy == UnmatchedWeightPolicy.RAISE:
                    raise
                warnings.warn(str(error), UnmatchedWeightWarning, stacklevel=2)
                product.n_skipped += 1
                continue

            slot_index = self.registry[group_index].weight_vector_entry(weight.id, index)
            product.add_weight(weight.value, group_index, slot_index)
            previous_group_index = group_index

        product.seal()
        return product

    def build_product_from_values(self,
                                  values: Sequence[float],
                                  central_weight: float = 1.0,
                                  policy: Optional[UnmatchedWeightPolicy] = None) -> GenWeightProduct:
        """Build the product for an event given only its ordered weight values."""
        return self.build_product(
            (EventWeight(float(value), "", position) for position, value in enumerate(values)),
            central_weight=central_weight,
            policy=policy,
        )

