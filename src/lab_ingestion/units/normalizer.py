# ============================================================================
# src/lab_ingestion/units/normalizer.py
# ============================================================================
"""
Unit Normalizer

Canonicalizes unit spellings found in lab reports and AI responses.
Everything here is table-driven: an ordered list of rewrite rules
followed by a canonical-spelling lookup. Add new spellings to the
tables, not to the functions.

Also repairs AI responses that leak reference-range text into the unit
field ("UL Da5a34", "mg/dL (70-100)", "< 5.0 U/L").
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union


_SUPERSCRIPT_DIGITS = str.maketrans('⁰¹²³⁴⁵⁶⁷⁸⁹', '0123456789')

Replacement = Union[str, Callable[[re.Match], str]]

# ============================================================================
# REWRITE RULES (applied in order)
# ============================================================================

UNIT_REWRITE_RULES: List[Tuple[re.Pattern, Replacement]] = [
    # Greek small mu -> micro sign
    (re.compile('μ'), 'µ'),
    # mcg -> µg
    (re.compile(r'mcg', re.IGNORECASE), 'µg'),
    # Spaces around the slash
    (re.compile(r'\s*/\s*'), '/'),
    # Superscript exponents: 10⁹/L -> 10^9/L
    (re.compile(r'10([⁰¹²³⁴⁵⁶⁷⁸⁹]+)'), lambda m: '10^' + m.group(1).translate(_SUPERSCRIPT_DIGITS)),
    # Multiplier prefix: x10^9/L, ×10^9/L, *10^9/L -> 10^9/L
    (re.compile(r'^[x×*]\s*(?=10)', re.IGNORECASE), ''),
    # Exponent notation: 10E9/L, 10e9/L, 10*9/L -> 10^9/L
    (re.compile(r'10\s*(?:[eE]|\*)\s*(\d+)'), r'10^\1'),
    # Ratio qualifiers: mg/mmolcreat., mg/g creatinine -> mg/mmol, mg/g
    (re.compile(r'\s*creat(?:inine|inina|\.)?$', re.IGNORECASE), ''),
    # Italian/French UI -> IU: UI/L, µUI/mL, mUI/L
    (re.compile(r'UI(?=/|$)'), 'IU'),
    # Bare "UL" (any case) on Italian reports means U/L; runs before the micro rule
    (re.compile(r'^UL$', re.IGNORECASE), 'U/L'),
    # ASCII u as micro prefix: umol/L, ug/dL, uIU/mL, K/uL
    (re.compile(r'(?<![A-Za-z])u(?=(?:mol|g|IU|iu|L|l)(?:/|$))'), 'µ'),
    # Collapse remaining whitespace
    (re.compile(r'\s+'), ' '),
]

# ============================================================================
# CANONICAL SPELLINGS (keyed by lowercase form)
# ============================================================================

CANONICAL_UNIT_SPELLINGS = {
    'mg/dl': 'mg/dL',
    'g/dl': 'g/dL',
    'g/l': 'g/L',
    'mg/l': 'mg/L',
    'ng/ml': 'ng/mL',
    'ng/dl': 'ng/dL',
    'ng/l': 'ng/L',
    'pg/ml': 'pg/mL',
    'µg/dl': 'µg/dL',
    'µg/l': 'µg/L',
    'mmol/l': 'mmol/L',
    'µmol/l': 'µmol/L',
    'nmol/l': 'nmol/L',
    'pmol/l': 'pmol/L',
    'mmol/mol': 'mmol/mol',
    'meq/l': 'mEq/L',
    'miu/l': 'mIU/L',
    'miu/ml': 'mIU/mL',
    'µiu/ml': 'µIU/mL',
    'iu/ml': 'IU/mL',
    'mu/l': 'mU/L',
    'ku/l': 'kU/L',
    'u/l': 'U/L',
    'iu/l': 'IU/L',
    'mg/mmol': 'mg/mmol',
    'mg/g': 'mg/g',
    '10^3/µl': '10^3/µL',
    '10^6/µl': '10^6/µL',
    '10^9/l': '10^9/L',
    '10^12/l': '10^12/L',
    'k/µl': 'K/µL',
    'm/µl': 'M/µL',
    'cells/µl': 'cells/µL',
    'million/µl': 'million/µL',
    'µl': 'µL',
    'fl': 'fL',
    'l/l': 'L/L',
    'mm/hr': 'mm/hr',
    'mm/h': 'mm/h',
}


def normalize_unit(unit: Optional[str]) -> str:
    """
    Canonicalize a unit spelling.

    'mg/dl' -> 'mg/dL', 'umol/L' -> 'µmol/L', 'x10E9/L' -> '10^9/L'.
    Unknown units come back trimmed, otherwise unchanged.
    """
    if not unit:
        return ''

    result = unit.strip()
    for pattern, replacement in UNIT_REWRITE_RULES:
        result = pattern.sub(replacement, result)
    result = result.strip()

    return CANONICAL_UNIT_SPELLINGS.get(result.lower(), result)


def unit_key(unit: Optional[str]) -> str:
    """Comparison key: case-insensitive normalized unit."""
    return normalize_unit(unit).lower()


def units_equal(unit_a: Optional[str], unit_b: Optional[str]) -> bool:
    return unit_key(unit_a) == unit_key(unit_b)


# ============================================================================
# UNIT FIELD CLEANUP (reference range leaked into unit)
# ============================================================================

_NUMBER = r'(\d+(?:[.,]\d+)?)'


@dataclass(frozen=True)
class RangeInUnitRule:
    """
    One way a reference range can hide inside a unit string.

    unit_groups are tried in order; the first non-empty one is the unit.
    """
    name: str
    pattern: re.Pattern
    unit_groups: Tuple[int, ...]
    low_group: Optional[int] = None
    high_group: Optional[int] = None


RANGE_IN_UNIT_RULES: List[RangeInUnitRule] = [
    # Italian "Da X a Y": "UL Da5a34", "mg/dL da 70 a 100"
    RangeInUnitRule(
        name='italian_da_a',
        pattern=re.compile(rf'^(.*?)\s*\bda\s*{_NUMBER}\s*a\s*{_NUMBER}\s*(.*)$', re.IGNORECASE),
        unit_groups=(1, 4), low_group=2, high_group=3,
    ),
    # Parenthesized: "mg/dL (70-100)"
    RangeInUnitRule(
        name='parenthesized',
        pattern=re.compile(rf'^(.*?)\s*\(\s*{_NUMBER}\s*[-–—]\s*{_NUMBER}\s*\)\s*$'),
        unit_groups=(1,), low_group=2, high_group=3,
    ),
    # Range right after the unit: "U/L 5-34"
    RangeInUnitRule(
        name='trailing_range',
        pattern=re.compile(rf'^(\S+)\s+{_NUMBER}\s*[-–—]\s*{_NUMBER}$'),
        unit_groups=(1,), low_group=2, high_group=3,
    ),
    # Upper limit: "< 5.0 U/L"
    RangeInUnitRule(
        name='less_than',
        pattern=re.compile(rf'^<\s*{_NUMBER}\s*(.*)$'),
        unit_groups=(2,), high_group=1,
    ),
    # Lower limit: "> 10 U/L"
    RangeInUnitRule(
        name='greater_than',
        pattern=re.compile(rf'^>\s*{_NUMBER}\s*(.*)$'),
        unit_groups=(2,), low_group=1,
    ),
    # Italian upper limit: "U/L fino a 34"
    RangeInUnitRule(
        name='italian_fino_a',
        pattern=re.compile(rf'^(.*?)\s*\bfino\s+a\s*{_NUMBER}\s*$', re.IGNORECASE),
        unit_groups=(1,), high_group=2,
    ),
    # Italian lower limit: "ng/mL oltre 10"
    RangeInUnitRule(
        name='italian_oltre',
        pattern=re.compile(rf'^(.*?)\s*\boltre\s*{_NUMBER}\s*$', re.IGNORECASE),
        unit_groups=(1,), low_group=2,
    ),
]


@dataclass
class CleanedUnit:
    unit: str
    range_low: Optional[float] = None
    range_high: Optional[float] = None

    @property
    def has_range(self) -> bool:
        return self.range_low is not None or self.range_high is not None


def clean_unit_and_extract_range(raw_unit: Optional[str]) -> CleanedUnit:
    """
    Split a unit field into a clean unit and any embedded reference range.

    'UL Da5a34'      -> U/L, 5-34
    'mg/dL (70-100)' -> mg/dL, 70-100
    '< 5.0 U/L'      -> U/L, high 5.0
    """
    if not raw_unit:
        return CleanedUnit(unit='')

    text = raw_unit.strip()

    for rule in RANGE_IN_UNIT_RULES:
        match = rule.pattern.match(text)
        if not match:
            continue

        unit_text = ''
        for group in rule.unit_groups:
            candidate = (match.group(group) or '').strip()
            if candidate:
                unit_text = candidate
                break

        return CleanedUnit(
            unit=normalize_unit(unit_text),
            range_low=_group_float(match, rule.low_group),
            range_high=_group_float(match, rule.high_group),
        )

    return CleanedUnit(unit=normalize_unit(text))


def _group_float(match: re.Match, group: Optional[int]) -> Optional[float]:
    if group is None:
        return None
    return float(match.group(group).replace(',', '.'))
