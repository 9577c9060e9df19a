"""
Generator Weights: Helper Facade
================================

``WeightHelper`` ties the pieces together for one run:

1. ``parse_weight_groups_from_names`` classifies the run's weight labels
   once and freezes the resulting registry
2. ``weight_product`` / ``weight_product_from_values`` resolve the
   weights of each event against that registry

The build step is guarded by a lock and happens at most once; afterwards
the helper only reads the frozen registry and may serve events from
several threads.
"""

from __future__ import annotations
import threading
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from .classifier import GroupClassifier, Label
from .config import WeightHelperConfig
from .core_types import (
    ParsedWeight, UnmatchedWeightPolicy, WeightGroupError, WeightType,
)
from .groups import WeightGroupInfo
from .lhapdf_lookup import LhapdfLookup, LhapdfTable
from .registry import GroupRegistry
from .resolver import GenWeightProduct, WeightInput, WeightResolver


class WeightHelper:
    """Classify the weight groups of a run and build per-event weight products."""

    def __init__(self, lhapdf: LhapdfLookup, config: Optional[WeightHelperConfig] = None, **overrides):
        if not isinstance(lhapdf, LhapdfLookup):
            raise TypeError(f"lhapdf must provide by_name/by_id/exists, got {type(lhapdf).__name__}")

        config = config or WeightHelperConfig()
        self.config = config.with_overrides(**overrides) if overrides else config
        self.lhapdf = lhapdf
        self._classifier = GroupClassifier(lhapdf, self.config)

        self._build_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._registry: Optional[GroupRegistry] = None
        self._resolver: Optional[WeightResolver] = None
        self._stats = defaultdict(int)

    # ---------------- run setup ----------------

    def parse_weight_groups_from_names(self, labels: Iterable[Label]) -> GroupRegistry:
        """
        Classify the run's weight labels into a frozen registry.

        Only the first call builds; later calls return the same registry
        and ignore their argument.
        """
        if self._registry is not None:
            return self._registry

        with self._build_lock:
            if self._registry is None:
                registry = self._classifier.classify_labels(labels)
                self._resolver = WeightResolver(registry, self.config)
                self._registry = registry
                if self.config.verbose:
                    self._report(registry)
        return self._registry

    def _report(self, registry: GroupRegistry) -> None:
        print("🏷️  Generator weight groups classified")
        print(f"   Groups: {len(registry)}")
        print(f"   Weights: {registry.total_members()}")
        for weight_type in WeightType:
            n_groups = len(registry.group_indices_by_type(weight_type))
            if n_groups:
                print(f"   {weight_type.name}: {n_groups}")
        malformed = [g.name for g in registry if not g.is_well_formed]
        if malformed:
            print(f"⚠️  Malformed groups: {', '.join(malformed)}")

    @property
    def is_built(self) -> bool:
        return self._registry is not None

    @property
    def registry(self) -> GroupRegistry:
        if self._registry is None:
            raise WeightGroupError("Weight groups have not been parsed for this run")
        return self._registry

    @property
    def weight_groups(self) -> Tuple[WeightGroupInfo, ...]:
        return self.registry.groups

    @property
    def parsed_weights(self) -> Tuple[ParsedWeight, ...]:
        return self._classifier.parsed_weights

    # ---------------- per-event products ----------------

    def _require_resolver(self) -> WeightResolver:
        if self._resolver is None:
            raise WeightGroupError("Cannot build weight products before parse_weight_groups_from_names")
        return self._resolver

    def weight_product(self,
                       weights: Iterable[WeightInput],
                       central_weight: float = 1.0,
                       policy: Optional[UnmatchedWeightPolicy] = None) -> GenWeightProduct:
        """Product for one event given its weights with ids (and optional indices)."""
        product = self._require_resolver().build_product(weights, central_weight, policy)
        self._count(product)
        return product

    def weight_product_from_values(self,
                                   values: Sequence[float],
                                   central_weight: float = 1.0,
                                   policy: Optional[UnmatchedWeightPolicy] = None) -> GenWeightProduct:
        """Product for one event given only its ordered weight values."""
        product = self._require_resolver().build_product_from_values(values, central_weight, policy)
        self._count(product)
        return product

    def _count(self, product: GenWeightProduct) -> None:
        with self._stats_lock:
            self._stats['products_built'] += 1
            self._stats['unmatched_skipped'] += product.n_skipped

    # ---------------- statistics ----------------

    def get_statistics(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats: Dict[str, Any] = dict(self._stats)
        stats.setdefault('products_built', 0)
        stats.setdefault('unmatched_skipped', 0)

        if self._registry is None:
            stats.update({'built': False, 'n_groups': 0, 'groups_by_type': {}, 'malformed_groups': 0})
            return stats

        registry = self._registry
        stats.update({
            'built': True,
            'n_groups': len(registry),
            'n_weights': registry.total_members(),
            'groups_by_type': {
                t.name: len(registry.group_indices_by_type(t)) for t in WeightType
            },
            'malformed_groups': sum(1 for g in registry if not g.is_well_formed),
        })
        return stats


def create_weight_helper(lhapdf: Optional[LhapdfLookup] = None,
                         config: Optional[WeightHelperConfig] = None,
                         **overrides) -> WeightHelper:
    """Create a helper; without a PDF lookup an empty ``LhapdfTable`` is used."""
    return WeightHelper(lhapdf if lhapdf is not None else LhapdfTable(), config, **overrides)
