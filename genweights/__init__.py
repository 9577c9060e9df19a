# genweights/__init__.py
from __future__ import annotations
from .core_types import (
    LHAID_UNSET, LHAID_UNRESOLVED,
    WeightType, PdfUncertaintyType, UnmatchedWeightPolicy,
    ParsedWeight, WeightRecord, ScaleVariation, EventWeight, WeightEntry,
    WeightGroupError, UnmatchedWeightError, RegistryFrozenError,
    MalformedGroupWarning, UnresolvedIdentifierWarning, UnmatchedWeightWarning,
)
from .config import WeightHelperConfig, DEFAULT_ATTRIBUTE_ALIASES
from .attributes import AttributeResolver, parse_leading_int, parse_leading_float
from .lhapdf_lookup import LhapdfLookup, LhapdfTable, PdfSetEntry
from .groups import (
    WeightGroupInfo, ScaleWeightGroupInfo, PdfWeightGroupInfo,
    MEParamWeightGroupInfo, UnknownWeightGroupInfo, create_weight_group,
)
from .registry import GroupRegistry
from .classifier import GroupClassifier, parse_weight_label, parse_weight_labels
from .resolver import GenWeightProduct, WeightResolver
from .helper import WeightHelper, create_weight_helper

__all__ = [
    'LHAID_UNSET',
    'LHAID_UNRESOLVED',
    'WeightType',
    'PdfUncertaintyType',
    'UnmatchedWeightPolicy',
    'ParsedWeight',
    'WeightRecord',
    'ScaleVariation',
    'EventWeight',
    'WeightEntry',
    'WeightGroupError',
    'UnmatchedWeightError',
    'RegistryFrozenError',
    'MalformedGroupWarning',
    'UnresolvedIdentifierWarning',
    'UnmatchedWeightWarning',
    'WeightHelperConfig',
    'DEFAULT_ATTRIBUTE_ALIASES',
    'AttributeResolver',
    'parse_leading_int',
    'parse_leading_float',
    'LhapdfLookup',
    'LhapdfTable',
    'PdfSetEntry',
    'WeightGroupInfo',
    'ScaleWeightGroupInfo',
    'PdfWeightGroupInfo',
    'MEParamWeightGroupInfo',
    'UnknownWeightGroupInfo',
    'create_weight_group',
    'GroupRegistry',
    'GroupClassifier',
    'parse_weight_label',
    'parse_weight_labels',
    'GenWeightProduct',
    'WeightResolver',
    'WeightHelper',
    'create_weight_helper',
]
