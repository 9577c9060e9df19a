"""
Generator Weights: Configuration
================================

Run configuration for weight-group classification: the marker strings
that identify group variants, the attribute alias table, and the policy
applied to event weights that no group claims.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, Optional, Tuple

from .core_types import PdfUncertaintyType, UnmatchedWeightPolicy

# Possible names for the same thing, in lookup order
DEFAULT_ATTRIBUTE_ALIASES: Dict[str, Tuple[str, ...]] = {
    'muf': ('muF', 'MUF', 'muf', 'facscfact'),
    'mur': ('muR', 'MUR', 'mur', 'renscfact'),
    'pdf': ('PDF', 'PDF set', 'lhapdf', 'pdf', 'pdf set', 'pdfset'),
    'dyn': ('DYN_SCALE',),
    'dyn_name': ('dyn_scale_choice',),
}


@dataclass
class WeightHelperConfig:
    """
    Configuration shared by the classifier, registry and resolver.

    Validated on initialization; use ``with_overrides`` to derive a
    modified copy rather than mutating a config in use.
    """
    scale_markers: Tuple[str, ...] = ("scale_variation", "Central scale variation")
    pdf_markers: Tuple[str, ...] = ("PDF_variation",)
    me_param_markers: Tuple[str, ...] = ("mg_reweighting",)
    attribute_aliases: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_ATTRIBUTE_ALIASES)
    )
    unmatched_policy: UnmatchedWeightPolicy = UnmatchedWeightPolicy.RAISE
    uncertainty_classifier: Optional[Callable[[int], PdfUncertaintyType]] = None
    verbose: bool = False

    def __post_init__(self):
        """Normalize sequences and validate the configuration."""
        self.scale_markers = tuple(self.scale_markers)
        self.pdf_markers = tuple(self.pdf_markers)
        self.me_param_markers = tuple(self.me_param_markers)
        self.attribute_aliases = {
            name: tuple(aliases) for name, aliases in self.attribute_aliases.items()
        }

        for name in ('scale_markers', 'pdf_markers', 'me_param_markers'):
            markers = getattr(self, name)
            if not markers or any(not isinstance(m, str) or not m for m in markers):
                raise ValueError(f"Invalid {name}: {markers!r}")

        for required in DEFAULT_ATTRIBUTE_ALIASES:
            if required not in self.attribute_aliases:
                raise ValueError(f"Missing attribute aliases for '{required}'")
        for name, aliases in self.attribute_aliases.items():
            if not aliases:
                raise ValueError(f"Empty alias list for attribute '{name}'")

        if not isinstance(self.unmatched_policy, UnmatchedWeightPolicy):
            raise ValueError(f"Invalid unmatched weight policy: {self.unmatched_policy!r}")

        if self.uncertainty_classifier is not None and not callable(self.uncertainty_classifier):
            raise ValueError("uncertainty_classifier must be callable")

    @property
    def all_markers(self) -> Tuple[str, ...]:
        return self.scale_markers + self.pdf_markers + self.me_param_markers

    def with_overrides(self, **overrides) -> WeightHelperConfig:
        """Return a validated copy with the given fields replaced."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration options: {sorted(unknown)}")
        return replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scale_markers': list(self.scale_markers),
            'pdf_markers': list(self.pdf_markers),
            'me_param_markers': list(self.me_param_markers),
            'attribute_aliases': {k: list(v) for k, v in self.attribute_aliases.items()},
            'unmatched_policy': self.unmatched_policy.name,
            'uncertainty_classifier': self.uncertainty_classifier is not None,
            'verbose': self.verbose,
        }
