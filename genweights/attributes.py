"""
Generator Weights: Attribute Resolution
=======================================

Generators emit the same semantic field under inconsistent names, and
sometimes only inside the free text of a weight label. Resolution is
two-tier:

1. Tagged attributes, trying every alias of the canonical field
2. Regex search of the content, per alias a numeric pattern first and
   then a generic ``alias = <anything up to the next '='>`` pattern
"""

from __future__ import annotations
import re
from functools import lru_cache
from typing import Dict, Optional, Sequence, Tuple

from .config import DEFAULT_ATTRIBUTE_ALIASES
from .core_types import ParsedWeight

_LEADING_INT = re.compile(r'\s*([+-]?\d+)')
_LEADING_FLOAT = re.compile(r'\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


@lru_cache(maxsize=256)
def _alias_patterns(alias: str) -> Tuple[re.Pattern, re.Pattern]:
    """Compile the numeric and generic content patterns for one alias."""
    escaped = re.escape(alias)
    numeric = re.compile(escaped + r'\s*=\s*([0-9.]+(?:[eE][+-]?[0-9]+)?)')
    generic = re.compile(escaped + r'\s*=\s*([^=]+)')
    return numeric, generic


def parse_leading_int(text: Optional[str]) -> Optional[int]:
    """Parse the integer literal at the start of ``text``, or None."""
    if not text:
        return None
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else None


def parse_leading_float(text: Optional[str]) -> Optional[float]:
    """Parse the floating point literal at the start of ``text``, or None."""
    if not text:
        return None
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else None


class AttributeResolver:
    """Look up canonical weight fields by tag, falling back to the content."""

    def __init__(self, aliases: Optional[Dict[str, Sequence[str]]] = None):
        source = aliases if aliases is not None else DEFAULT_ATTRIBUTE_ALIASES
        self._aliases = {name: tuple(names) for name, names in source.items()}

    @property
    def fields(self) -> Tuple[str, ...]:
        return tuple(self._aliases)

    def aliases_for(self, field_name: str) -> Tuple[str, ...]:
        try:
            return self._aliases[field_name]
        except KeyError:
            raise KeyError(f"Unknown weight attribute field '{field_name}'") from None

    def resolve(self, field_name: str, weight: ParsedWeight) -> Optional[str]:
        """Return the value of ``field_name`` for ``weight``, or None."""
        value = self.resolve_by_tag(field_name, weight)
        if value:
            return value
        return self.resolve_by_regex(field_name, weight)

    def resolve_by_tag(self, field_name: str, weight: ParsedWeight) -> Optional[str]:
        attributes = weight.attributes
        for alias in self.aliases_for(field_name):
            if alias in attributes:
                return attributes[alias].strip('"')
        return None

    def resolve_by_regex(self, field_name: str, weight: ParsedWeight) -> Optional[str]:
        content = weight.content
        if not content:
            return None
        for alias in self.aliases_for(field_name):
            numeric, generic = _alias_patterns(alias)
            match = numeric.search(content) or generic.search(content)
            if match:
                return match.group(1).strip()
        return None
