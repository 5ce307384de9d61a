# ============================================================================
# src/lab_ingestion/units/conversion.py
# ============================================================================
"""
Unit Converter

Converts biomarker values and reference ranges between unit systems
using the biomarker-specific tables in constants.unit_conversions.

Rounding is round-half-away-from-zero at the target unit's display
precision unless the caller asks for a different precision.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from ..constants.unit_conversions import find_conversion_table
from ..core.context.biomarker import ReferenceRange
from ..utils.exceptions import ConversionError
from .normalizer import normalize_unit, unit_key

logger = logging.getLogger(__name__)


# Display precision (decimal places) per unit, keyed by unit_key()
DEFAULT_PRECISION = {
    'mmol/l': 2,
    'mg/dl': 0,
    'g/dl': 1,
    'g/l': 0,
    '%': 1,
    'µmol/l': 1,
    'nmol/l': 1,
    'pmol/l': 1,
    'ng/ml': 1,
    'pg/ml': 0,
    'miu/l': 2,
    'µiu/ml': 2,
    'u/l': 0,
    'iu/l': 0,
    'meq/l': 1,
}

FALLBACK_PRECISION = 2

_VALUE_WITH_UNIT_PATTERN = re.compile(r'^(\d+(?:[.,]\d+)?)\s*([a-zA-Z/%µμ°^].*)$')


@dataclass
class ConversionResult:
    original_value: float
    original_unit: str
    converted_value: float
    target_unit: str
    precision: int


def get_precision_for_unit(unit: str) -> int:
    return DEFAULT_PRECISION.get(unit_key(unit), FALLBACK_PRECISION)


def round_half_away_from_zero(value: float, precision: int) -> float:
    """
    Round using decimal arithmetic so 2.675 -> 2.68 (float round() gives 2.67)
    and -0.5 -> -1.
    """
    quantum = Decimal(1).scaleb(-precision)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def conversion_factor(biomarker_name: str, from_unit: str, to_unit: str) -> float:
    """
    Multiplier taking a value from from_unit to to_unit, unrounded.
    1.0 for the same unit (after normalization), even without a table.

    Raises:
        ConversionError: no table for the biomarker, or no entry for the unit pair
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)

    if unit_key(source) == unit_key(target):
        return 1.0

    table = find_conversion_table(biomarker_name)
    if table is None:
        raise ConversionError(
            f'No conversion definitions found for biomarker "{biomarker_name}"',
            biomarker=biomarker_name, from_unit=source, to_unit=target,
        )

    conversion = table.find(source, target)
    if conversion is None:
        raise ConversionError(
            f'Conversion from "{source}" to "{target}" is not supported for "{biomarker_name}"',
            biomarker=biomarker_name, from_unit=source, to_unit=target,
        )
    return conversion.factor


def convert_value(
    biomarker_name: str,
    value: float,
    from_unit: str,
    to_unit: str,
    precision: Optional[int] = None
) -> ConversionResult:
    """
    Convert a value between units for one biomarker.

    Same-unit requests (after normalization) return the value unchanged
    apart from rounding, even when the biomarker has no table.

    Raises:
        ConversionError: no table for the biomarker, or no entry for the unit pair
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if precision is None:
        precision = get_precision_for_unit(target)

    factor = conversion_factor(biomarker_name, source, target)
    converted = round_half_away_from_zero(value * factor, precision)
    if unit_key(source) != unit_key(target):
        logger.debug(f"{biomarker_name}: {value} {source} -> {converted} {target}")

    return ConversionResult(
        original_value=value,
        original_unit=source,
        converted_value=converted,
        target_unit=target,
        precision=precision,
    )


def convert_reference_range(
    biomarker_name: str,
    reference_range: ReferenceRange,
    to_unit: str,
    precision: Optional[int] = None
) -> ReferenceRange:
    """Convert low/high independently. Missing bounds stay missing."""
    low = None
    high = None
    if reference_range.low is not None:
        low = convert_value(
            biomarker_name, reference_range.low, reference_range.unit, to_unit, precision
        ).converted_value
    if reference_range.high is not None:
        high = convert_value(
            biomarker_name, reference_range.high, reference_range.unit, to_unit, precision
        ).converted_value

    return ReferenceRange(low=low, high=high, unit=normalize_unit(to_unit))


def can_convert(biomarker_name: str, from_unit: str, to_unit: str) -> bool:
    """Whether convert_value would succeed. Never raises."""
    if unit_key(from_unit) == unit_key(to_unit):
        return True
    table = find_conversion_table(biomarker_name)
    if table is None:
        return False
    return table.find(from_unit, to_unit) is not None


def get_supported_units(biomarker_name: str) -> List[str]:
    table = find_conversion_table(biomarker_name)
    return table.units() if table else []


def format_value_with_unit(value: float, unit: str, precision: Optional[int] = None) -> str:
    """'100 mg/dL', '5.55 mmol/L', '45.0%'"""
    unit = normalize_unit(unit)
    if precision is None:
        precision = get_precision_for_unit(unit)
    text = f"{round_half_away_from_zero(value, precision):.{precision}f}"
    if not unit:
        return text
    return f"{text}{unit}" if unit == '%' else f"{text} {unit}"


def parse_value_with_unit(text: str) -> Optional[Tuple[float, str]]:
    """'5.5mmol/L' -> (5.5, 'mmol/L'). None when there is no unit."""
    if not text:
        return None
    match = _VALUE_WITH_UNIT_PATTERN.match(text.strip())
    if not match:
        return None
    return float(match.group(1).replace(',', '.')), normalize_unit(match.group(2))
