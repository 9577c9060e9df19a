"""
Generator Weights: Group Classification
=======================================

Turns the ordered weight-name labels of a run into an ordered registry
of weight groups.

Classification of a single weight, first match wins:

1. Scale marker in the group hint                  -> Scale
2. PDF marker, or the hint names a known PDF set   -> Pdf
3. Matrix-element reweighting marker               -> MEParam
4. ``pdf`` attribute naming the central member of
   a known PDF set (orphan central weight)         -> new singleton Pdf
5. Anything else                                   -> Unknown

Consecutive weights with the same variant and hint share a group.
"""

from __future__ import annotations
import re
import warnings
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .attributes import AttributeResolver, parse_leading_float, parse_leading_int
from .config import WeightHelperConfig
from .core_types import (
    LHAID_UNRESOLVED, LHAID_UNSET, ParsedWeight, PdfUncertaintyType,
    UnresolvedIdentifierWarning, WeightType,
)
from .groups import (
    PdfWeightGroupInfo, ScaleWeightGroupInfo, WeightGroupInfo, create_weight_group,
)
from .lhapdf_lookup import LhapdfLookup
from .registry import GroupRegistry

Label = Union[str, Tuple[str, str], ParsedWeight]

_TAG_PATTERN = re.compile(r'(\w+)\s*=\s*"([^"]*)"')
_LEADING_TOKEN = re.compile(r'\s*([^\s,]+)')
_ORDINAL_SUFFIX = re.compile(r'_\d+$')

# ==============================================================================
# LABEL PARSING
# ==============================================================================

def _leading_token(text: str) -> str:
    match = _LEADING_TOKEN.match(text)
    return match.group(1) if match else ""


def _strip_ordinal(token: str) -> str:
    return _ORDINAL_SUFFIX.sub('', token)


def parse_weight_label(label: Label, index: int,
                       config: Optional[WeightHelperConfig] = None) -> ParsedWeight:
    """
    Parse one weight-name label.

    ``tag="value"`` pairs become attributes; the rest of the text is only
    reachable through the content regex fallback. The group hint is the
    ``group`` attribute when present, otherwise the leading token, with a
    trailing ``_<n>`` ordinal dropped when the stem carries a known marker.
    """
    if isinstance(label, ParsedWeight):
        return label

    config = config or WeightHelperConfig()
    if isinstance(label, str):
        supplied_id, content = "", label
    else:
        supplied_id, content = label
        supplied_id = supplied_id or ""
        content = content or ""

    attributes = {name: value for name, value in _TAG_PATTERN.findall(content)}
    head = _leading_token(_TAG_PATTERN.sub(' ', content))

    weight_id = attributes.get('id') or supplied_id or head or str(index)

    if attributes.get('group'):
        group_hint = attributes['group']
    else:
        token = head or weight_id
        stem = _strip_ordinal(token)
        if stem != token and any(marker in stem for marker in config.all_markers):
            group_hint = stem
        else:
            group_hint = token

    return ParsedWeight(
        id=weight_id,
        index=index,
        group_hint=group_hint,
        content=content,
        attributes=attributes,
    )


def parse_weight_labels(labels: Iterable[Label],
                        config: Optional[WeightHelperConfig] = None) -> List[ParsedWeight]:
    config = config or WeightHelperConfig()
    return [parse_weight_label(label, index, config) for index, label in enumerate(labels)]

# ==============================================================================
# CLASSIFIER
# ==============================================================================

class GroupClassifier:
    """Classify parsed weights into an ordered, frozen ``GroupRegistry``."""

    def __init__(self,
                 lhapdf: LhapdfLookup,
                 config: Optional[WeightHelperConfig] = None,
                 attribute_resolver: Optional[AttributeResolver] = None):
        self.config = config or WeightHelperConfig()
        self._lhapdf = lhapdf
        self._attributes = attribute_resolver or AttributeResolver(self.config.attribute_aliases)
        self._parsed_weights: List[ParsedWeight] = []

        self._updaters: Dict[WeightType, Callable[[WeightGroupInfo, ParsedWeight], None]] = {
            WeightType.SCALE: self._update_scale_info,
            WeightType.PDF: self._update_pdf_info,
            WeightType.ME_PARAM: self._update_nothing,
            WeightType.UNKNOWN: self._update_nothing,
        }

    @property
    def parsed_weights(self) -> Tuple[ParsedWeight, ...]:
        """Weights of the last run with their final group index."""
        return tuple(self._parsed_weights)

    def classify_labels(self, labels: Iterable[Label]) -> GroupRegistry:
        return self.classify(parse_weight_labels(labels, self.config))

    def classify(self, weights: Sequence[ParsedWeight]) -> GroupRegistry:
        """Build, repair and freeze the registry for one run."""
        registry = GroupRegistry()
        classified: List[ParsedWeight] = []

        for weight in weights:
            weight_type, weight, force_new = self._classify_weight(weight)

            last = registry.last
            if (force_new or last is None or last.weight_type != weight_type
                    or last.name != weight.group_hint):
                group_index = registry.append(self._build_group(weight_type, weight))
            else:
                group_index = len(registry) - 1

            group = registry[group_index]
            group.add_contained_id(weight.index, weight.id, weight.content)
            self._updaters[weight_type](group, weight)
            classified.append(replace(weight, pending_group_index=group_index))

        index_map = registry.cleanup_orphan_central_weights()
        self._parsed_weights = [
            replace(w, pending_group_index=index_map[w.pending_group_index]) for w in classified
        ]
        registry.freeze()
        return registry

    # ---------------- variant detection ----------------

    def _classify_weight(self, weight: ParsedWeight) -> Tuple[WeightType, ParsedWeight, bool]:
        hint = weight.group_hint

        if self._has_marker(hint, self.config.scale_markers):
            return WeightType.SCALE, weight, False

        if self._has_marker(hint, self.config.pdf_markers):
            return WeightType.PDF, weight, False
        set_name = self._pdf_set_from_hint(hint)
        if set_name is not None:
            return WeightType.PDF, replace(weight, group_hint=set_name), False

        if self._has_marker(hint, self.config.me_param_markers):
            return WeightType.ME_PARAM, weight, False

        orphan_set = self._orphan_pdf_set(weight)
        if orphan_set is not None:
            return WeightType.PDF, replace(weight, group_hint=orphan_set), True

        return WeightType.UNKNOWN, weight, False

    @staticmethod
    def _has_marker(hint: str, markers: Sequence[str]) -> bool:
        return any(marker in hint for marker in markers)

    def _pdf_set_from_hint(self, hint: str) -> Optional[str]:
        """Set name the hint refers to, allowing a trailing member ordinal."""
        if not hint:
            return None
        if self._lhapdf.by_name(hint) is not None:
            return hint
        stem = _strip_ordinal(hint)
        if stem != hint and self._lhapdf.by_name(stem) is not None:
            return stem
        return None

    def _orphan_pdf_set(self, weight: ParsedWeight) -> Optional[str]:
        # only the central member (offset 0) of an existing set qualifies
        lhaid = parse_leading_int(self._attributes.resolve('pdf', weight))
        if lhaid is None or not self._lhapdf.exists(lhaid):
            return None
        located = self._lhapdf.by_id(lhaid)
        if located is not None and located[1] == 0:
            return located[0]
        return None

    def _build_group(self, weight_type: WeightType, weight: ParsedWeight) -> WeightGroupInfo:
        description = weight.content if weight_type == WeightType.UNKNOWN else ""
        return create_weight_group(weight_type, weight.group_hint, description)

    # ---------------- variant updates ----------------

    def _update_nothing(self, group: WeightGroupInfo, weight: ParsedWeight) -> None:
        return None

    def _update_scale_info(self, group: ScaleWeightGroupInfo, weight: ParsedWeight) -> None:
        mu_r_text = self._attributes.resolve('mur', weight)
        mu_f_text = self._attributes.resolve('muf', weight)
        if not mu_r_text or not mu_f_text:
            group.mark_malformed(f"weight '{weight.id}' carries no muR/muF values")
            return

        mu_r = parse_leading_float(mu_r_text)
        mu_f = parse_leading_float(mu_f_text)
        dyn_num = None
        parsed = mu_r is not None and mu_f is not None

        dyn_text = self._attributes.resolve('dyn', weight)
        if parsed and dyn_text:
            dyn_num = parse_leading_int(dyn_text)
            parsed = dyn_num is not None

        if parsed:
            dyn_label = self._attributes.resolve('dyn_name', weight) if dyn_num is not None else None
            group.set_mu_r_mu_f_index(weight.index, weight.id, mu_r, mu_f, dyn_num, dyn_label)
        else:
            group.mark_malformed(
                f"non-numeric scale values for weight '{weight.id}' "
                f"(muR={mu_r_text!r}, muF={mu_f_text!r}, dyn={dyn_text!r})"
            )

        if group.lhaid == LHAID_UNSET:
            group.lhaid = self._scale_lhaid(weight)

    def _scale_lhaid(self, weight: ParsedWeight) -> int:
        text = self._attributes.resolve('pdf', weight)
        if not text:
            return LHAID_UNRESOLVED
        lhaid = parse_leading_int(text)
        if lhaid is None:
            warnings.warn(
                f"Unparseable PDF id {text!r} on scale weight '{weight.id}'",
                UnresolvedIdentifierWarning,
                stacklevel=2,
            )
            return LHAID_UNRESOLVED
        return lhaid

    def _update_pdf_info(self, group: PdfWeightGroupInfo, weight: ParsedWeight) -> None:
        lhaid = self._pdf_member_lhaid(group, weight)
        if not group.lha_ids:
            self._set_parent_info(group, lhaid)
        group.add_lhaid(lhaid)

    def _pdf_member_lhaid(self, group: PdfWeightGroupInfo, weight: ParsedWeight) -> int:
        text = self._attributes.resolve('pdf', weight)
        if text:
            lhaid = parse_leading_int(text)
            if lhaid is None:
                group.mark_malformed(f"unparseable LHA id {text!r} for weight '{weight.id}'")
                return LHAID_UNRESOLVED
            return lhaid

        # assume sequential numbering inside the set
        lha_ids = group.lha_ids
        if lha_ids and lha_ids[-1] >= 0:
            return lha_ids[-1] + 1

        lhaid = self._lhapdf.by_name(group.name)
        if lhaid is None:
            warnings.warn(
                f"Cannot resolve an LHA id for weight '{weight.id}' in PDF group '{group.name}'",
                UnresolvedIdentifierWarning,
                stacklevel=2,
            )
            return LHAID_UNRESOLVED
        return lhaid

    def _set_parent_info(self, group: PdfWeightGroupInfo, lhaid: int) -> None:
        located = self._lhapdf.by_id(lhaid) if lhaid >= 0 else None
        if located is None:
            if lhaid >= 0:
                warnings.warn(
                    f"LHA id {lhaid} of PDF group '{group.name}' is not a known PDF member",
                    UnresolvedIdentifierWarning,
                    stacklevel=2,
                )
            set_name, parent_id = group.name, LHAID_UNRESOLVED
        else:
            set_name, offset = located
            parent_id = lhaid - offset

        group.parent_lhapdf_id = parent_id
        group.uncertainty_type = self._uncertainty_type(parent_id)
        group.append_description(
            f"{group.uncertainty_type.description_prefix}Uncertainty sets for LHAPDF set "
            f"{set_name} with LHAID={parent_id}"
        )

    def _uncertainty_type(self, parent_id: int) -> PdfUncertaintyType:
        classifier = self.config.uncertainty_classifier
        if classifier is None or parent_id < 0:
            return PdfUncertaintyType.UNKNOWN
        result = classifier(parent_id)
        if not isinstance(result, PdfUncertaintyType):
            raise TypeError(
                f"uncertainty_classifier returned {result!r} for LHAID={parent_id}, "
                f"expected a PdfUncertaintyType"
            )
        return result
