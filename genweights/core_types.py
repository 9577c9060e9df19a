"""
Generator Weights: Core Types
=============================

Shared enumerations, sentinels, records and error types used by every
stage of weight-group classification and per-event resolution.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Mapping, NamedTuple, Optional

# ==============================================================================
# SENTINELS
# ==============================================================================

LHAID_UNSET = -1
LHAID_UNRESOLVED = -2

# ==============================================================================
# CORE ENUMERATIONS
# ==============================================================================

class WeightType(Enum):
    """Closed set of weight group variants."""
    SCALE = auto()
    PDF = auto()
    ME_PARAM = auto()
    UNKNOWN = auto()


class PdfUncertaintyType(Enum):
    """PDF uncertainty prescription with its description prefix."""
    HESSIAN = ("hessian", "Hessian ")
    MONTE_CARLO = ("monte_carlo", "Monte Carlo ")
    UNKNOWN = ("unknown", "")

    def __init__(self, key: str, description_prefix: str):
        self.key = key
        self.description_prefix = description_prefix


class UnmatchedWeightPolicy(Enum):
    """What per-event resolution does with a weight no group claims."""
    RAISE = auto()
    SKIP = auto()

# ==============================================================================
# RECORDS
# ==============================================================================

@dataclass(frozen=True)
class ParsedWeight:
    """One weight-name label after parsing, before it joins a group."""
    id: str
    index: int
    group_hint: str
    content: str = ""
    attributes: Mapping[str, str] = field(default_factory=dict)
    pending_group_index: int = -1


@dataclass(frozen=True)
class WeightRecord:
    """Membership entry of a weight inside its group."""
    global_index: int
    local_index: int
    id: str
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'global_index': self.global_index,
            'local_index': self.local_index,
            'id': self.id,
            'label': self.label,
        }


@dataclass(frozen=True)
class ScaleVariation:
    mu_r: float
    mu_f: float
    dyn_num: Optional[int] = None
    dyn_label: Optional[str] = None

    @property
    def is_central(self) -> bool:
        return self.mu_r == 1.0 and self.mu_f == 1.0


class EventWeight(NamedTuple):
    """Per-event weight value; ``index`` defaults to the position in the event."""
    value: float
    id: str = ""
    index: Optional[int] = None


class WeightEntry(NamedTuple):
    value: float
    group_index: int
    slot_index: int

# ==============================================================================
# EXCEPTIONS
# ==============================================================================

class WeightGroupError(Exception):
    """Base error for weight group handling, with optional context."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class UnmatchedWeightError(WeightGroupError, LookupError):
    """Raised when no weight group claims an event weight."""

    def __init__(self, weight_id: str, weight_index: int, n_groups: int):
        super().__init__(
            f"Unmatched generator weight! ID was '{weight_id}', index was {weight_index}. "
            f"Not found in any of {n_groups} weight groups.",
            context={'weight_id': weight_id, 'weight_index': weight_index, 'n_groups': n_groups}
        )
        self.weight_id = weight_id
        self.weight_index = weight_index
        self.n_groups = n_groups


class RegistryFrozenError(WeightGroupError, RuntimeError):
    """Raised on mutation of a frozen registry or a sealed product."""

# ==============================================================================
# WARNING CATEGORIES
# ==============================================================================

class MalformedGroupWarning(UserWarning):
    """A group lost its well-formedness while being built."""


class UnresolvedIdentifierWarning(UserWarning):
    """A PDF id or set name could not be resolved; a sentinel was stored."""


class UnmatchedWeightWarning(UserWarning):
    """An event weight was skipped because no group claims it."""
