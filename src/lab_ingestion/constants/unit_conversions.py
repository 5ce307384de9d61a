# ============================================================================
# src/lab_ingestion/constants/unit_conversions.py
# ============================================================================
"""
Unit Conversion Tables
- Biomarker-specific conversion factors between unit systems
- Loaded from base_settings.get_conversions_path() (knowledge/unit_conversions.json)

Factors are per biomarker, not global: mg/dL -> mmol/L is 0.0555 for
glucose but 0.0259 for cholesterol (different molar mass). Each table is
reachable by its canonical name or any alias, case-insensitively.

"equivalent_units" groups in the JSON expand to factor-1 conversions
between every pair in the group (mIU/L == µIU/mL == mU/L for TSH).
"""

import json
import logging
from dataclasses import dataclass
from itertools import permutations
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config import base_settings
from ..units.normalizer import normalize_unit, unit_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitConversion:
    from_unit: str
    to_unit: str
    factor: float


@dataclass(frozen=True)
class BiomarkerConversions:
    biomarker: str
    aliases: Tuple[str, ...]
    conversions: Tuple[UnitConversion, ...]

    def find(self, from_unit: str, to_unit: str) -> Optional[UnitConversion]:
        """Conversion for a unit pair, compared on normalized unit keys."""
        from_key = unit_key(from_unit)
        to_key = unit_key(to_unit)
        for conversion in self.conversions:
            if unit_key(conversion.from_unit) == from_key and unit_key(conversion.to_unit) == to_key:
                return conversion
        return None

    def units(self) -> List[str]:
        """All units this table knows, in first-seen order."""
        seen = {}
        for conversion in self.conversions:
            for unit in (conversion.from_unit, conversion.to_unit):
                seen.setdefault(unit_key(unit), unit)
        return list(seen.values())


def _build_entry(raw: Dict) -> BiomarkerConversions:
    conversions = [
        UnitConversion(normalize_unit(src), normalize_unit(dst), float(factor))
        for src, dst, factor in raw.get('conversions', [])
    ]
    for group in raw.get('equivalent_units', []):
        for src, dst in permutations(group, 2):
            conversions.append(UnitConversion(normalize_unit(src), normalize_unit(dst), 1.0))

    return BiomarkerConversions(
        biomarker=raw['biomarker'],
        aliases=tuple(raw.get('aliases', [])),
        conversions=tuple(conversions),
    )


def load_conversion_tables(path: Optional[Path] = None) -> List[BiomarkerConversions]:
    path = path or base_settings.get_conversions_path()
    with open(path, encoding='utf-8') as f:
        return [_build_entry(raw) for raw in json.load(f)]


def _build_index(tables: List[BiomarkerConversions]) -> Dict[str, BiomarkerConversions]:
    index: Dict[str, BiomarkerConversions] = {}
    for table in tables:
        for name in (table.biomarker, *table.aliases):
            key = name.strip().lower()
            if key in index:
                logger.debug(f"Conversion alias '{name}' already maps to {index[key].biomarker}")
                continue
            index[key] = table
    return index


BIOMARKER_CONVERSIONS: List[BiomarkerConversions] = load_conversion_tables()
_CONVERSION_INDEX = _build_index(BIOMARKER_CONVERSIONS)


def find_conversion_table(biomarker_name: str) -> Optional[BiomarkerConversions]:
    """Conversion table for a biomarker name or alias (case-insensitive)."""
    if not biomarker_name:
        return None
    return _CONVERSION_INDEX.get(biomarker_name.strip().lower())


def get_conversion_factor(biomarker_name: str, from_unit: str, to_unit: str) -> Optional[float]:
    table = find_conversion_table(biomarker_name)
    if table is None:
        return None
    conversion = table.find(from_unit, to_unit)
    return conversion.factor if conversion else None
