# ============================================================================
# src/lab_ingestion/matching/matcher.py
# ============================================================================
"""
Dictionary Matcher

Resolves an extracted biomarker name to a dictionary definition.

1. Exact lookup (name or alias, case-insensitive) plus a unit check:
   the unit must be one the definition accepts, or convertible to the
   canonical unit. Both hold -> exact match.
2. Otherwise fuzzy lookup over spelling variants of the name
   ("LDL-Cholesterol" -> "LDL Cholesterol") -> suggested match.
3. Otherwise unmatched. Unmatched biomarkers are kept, never dropped,
   so they can be assigned by hand during review.
"""

import logging
import re
from dataclasses import fields
from typing import Any, Dict, List, Optional, Protocol

from ..constants.biomarker_dictionary import BiomarkerDefinition, get_biomarker_dictionary
from ..core.context.biomarker import ExtractedBiomarker, MatchedBiomarker
from ..units.conversion import can_convert
from ..units.normalizer import normalize_unit, unit_key

logger = logging.getLogger(__name__)


class DictionaryLookup(Protocol):
    def find(self, name: str) -> Optional[BiomarkerDefinition]:
        ...


_EXTRACTED_FIELDS = tuple(f.name for f in fields(ExtractedBiomarker))


def _compact(name: str) -> str:
    """Lowercase alphanumerics only: 'LDL-Cholesterol' -> 'ldlcholesterol'"""
    return re.sub(r'[^a-z0-9]', '', name.lower())


def name_variants(name: str) -> List[str]:
    """Spelling variants tried during fuzzy matching, in order."""
    variants = [
        name,
        re.sub(r'\s+', '', name),
        re.sub(r'[^\w\s]', '', name),
        _compact(name),
    ]
    seen = []
    for variant in variants:
        variant = variant.strip()
        if variant and variant not in seen:
            seen.append(variant)
    return seen


class DictionaryMatcher:
    """
    Matches extracted biomarkers against a dictionary lookup service.

    Config options:
        compact_matching: also compare lowercase-alphanumeric forms of every
                          dictionary name and alias (default: True)
    """

    def __init__(
        self,
        dictionary: Optional[DictionaryLookup] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        self.config = config or {}
        self.dictionary = dictionary if dictionary is not None else get_biomarker_dictionary()
        self.logger = logging.getLogger(__name__)

        self._compact_index: Dict[str, BiomarkerDefinition] = {}
        if self.config.get('compact_matching', True) and hasattr(self.dictionary, '__iter__'):
            for definition in self.dictionary:
                for candidate in (definition.name, *definition.aliases):
                    self._compact_index.setdefault(_compact(candidate), definition)

    # ========================================================================
    # MATCHING
    # ========================================================================

    def match(self, extracted: ExtractedBiomarker) -> MatchedBiomarker:
        normalized_unit = normalize_unit(extracted.unit)
        values = {name: getattr(extracted, name) for name in _EXTRACTED_FIELDS}

        definition = self.dictionary.find(extracted.name)
        if definition and self.is_unit_compatible(definition, normalized_unit):
            return MatchedBiomarker(
                **values,
                dictionary_match=definition,
                is_exact_match=True,
                normalized_unit=normalized_unit,
            )

        if definition:
            self.logger.debug(
                f"'{extracted.name}' found but unit '{extracted.unit}' is not compatible "
                f"with {definition.canonical_unit}"
            )

        suggestion = self.find_fuzzy_match(extracted.name)
        if suggestion:
            return MatchedBiomarker(
                **values,
                suggested_match=suggestion,
                is_exact_match=False,
                normalized_unit=normalized_unit,
            )

        self.logger.debug(f"No dictionary match for '{extracted.name}'")
        return MatchedBiomarker(**values, normalized_unit=normalized_unit)

    def match_all(self, biomarkers: List[ExtractedBiomarker]) -> List[MatchedBiomarker]:
        return [self.match(b) for b in biomarkers]

    def is_unit_compatible(self, definition: BiomarkerDefinition, unit: str) -> bool:
        """Accepted unit of the definition, or convertible to its canonical unit."""
        key = unit_key(unit)
        if any(unit_key(accepted) == key for accepted in definition.accepted_units):
            return True
        if not definition.canonical_unit:
            return False
        return can_convert(definition.name, unit, definition.canonical_unit)

    def find_fuzzy_match(self, name: str) -> Optional[BiomarkerDefinition]:
        if not name:
            return None

        for variant in name_variants(name):
            definition = self.dictionary.find(variant)
            if definition:
                return definition

        return self._compact_index.get(_compact(name))


# ============================================================================
# HELPERS
# ============================================================================

def unmatched_count(biomarkers: List[MatchedBiomarker]) -> int:
    return sum(1 for b in biomarkers if not b.is_matched)


def fallback_unmatched(biomarkers: List[ExtractedBiomarker]) -> List[MatchedBiomarker]:
    """Every biomarker unmatched, units normalized. Used when matching fails."""
    return [
        MatchedBiomarker(
            **{name: getattr(b, name) for name in _EXTRACTED_FIELDS},
            normalized_unit=normalize_unit(b.unit),
        )
        for b in biomarkers
    ]
