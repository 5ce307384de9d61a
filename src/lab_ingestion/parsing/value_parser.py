# ============================================================================
# src/lab_ingestion/parsing/value_parser.py
# ============================================================================
"""
Value Parser

Turns a raw value token from an AI response or lab report into a number.

Handles:
- Native numbers ("5.5" already parsed upstream)
- Localized decimals ("5,5")
- Intervals, common in urine microscopy ("5-10", "2 to 4", "3 a 5")
- Thresholds below/above detection limit ("< 5", "> 100")

Thresholds are NOT intervals: "< 5" becomes value 5 with the raw text
preserved, so downstream consumers can still tell "undetectable" apart
from a true measurement of 5.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional


_NUMBER = r'(\d+(?:[.,]\d+)?)'

# Tried in order; first match wins
INTERVAL_PATTERNS = [
    re.compile(rf'^{_NUMBER}\s*[-–—]\s*{_NUMBER}$'),   # 5-10, 5 – 10, 5—10
    re.compile(rf'^{_NUMBER}\s+to\s+{_NUMBER}$', re.IGNORECASE),  # 5 to 10
    re.compile(rf'^{_NUMBER}\s+a\s+{_NUMBER}$', re.IGNORECASE),   # 5 a 10 (Italian)
]

LESS_THAN_PATTERN = re.compile(rf'^<\s*{_NUMBER}$')
GREATER_THAN_PATTERN = re.compile(rf'^>\s*{_NUMBER}$')

# Leading number, trailing text ignored ("5.5 H" -> 5.5)
PLAIN_NUMBER_PATTERN = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')


@dataclass
class ParsedValue:
    """Normalized numeric form of a raw value token."""
    value: float
    is_interval: bool = False
    interval_low: Optional[float] = None
    interval_high: Optional[float] = None
    raw_value: Optional[str] = None

    @property
    def is_threshold(self) -> bool:
        return (
            not self.is_interval
            and self.raw_value is not None
            and self.raw_value.lstrip()[:1] in ('<', '>')
        )


def _to_float(token: str) -> float:
    return float(token.replace(',', '.'))


def parse_value(raw: Any) -> ParsedValue:
    """
    Parse a raw value into a ParsedValue.

    Rules, in priority order:
    1. Native number -> returned as-is
    2. Interval ("5-10", "5 to 10", "5 a 10") -> midpoint, bounds kept
    3. "< N" -> threshold, value N
    4. "> N" -> threshold, value N
    5. Plain number with '.' or ',' decimal separator
    Anything else yields value 0 with raw_value set, which callers
    should read as "unparseable", not as a measurement of zero.
    """
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return ParsedValue(value=float(raw))

    if not isinstance(raw, str):
        return ParsedValue(value=0.0, raw_value=None if raw is None else str(raw))

    text = raw.strip()
    if not text:
        return ParsedValue(value=0.0)

    for pattern in INTERVAL_PATTERNS:
        match = pattern.match(text)
        if match:
            low = _to_float(match.group(1))
            high = _to_float(match.group(2))
            # Reversed bounds are not an interval
            if low <= high:
                return ParsedValue(
                    value=(low + high) / 2,
                    is_interval=True,
                    interval_low=low,
                    interval_high=high,
                    raw_value=text,
                )

    match = LESS_THAN_PATTERN.match(text) or GREATER_THAN_PATTERN.match(text)
    if match:
        return ParsedValue(value=_to_float(match.group(1)), raw_value=text)

    match = PLAIN_NUMBER_PATTERN.match(text.replace(',', '.'))
    if match:
        return ParsedValue(value=float(match.group(0)))

    return ParsedValue(value=0.0, raw_value=raw)


def format_interval_value(low: float, high: float, unit: Optional[str] = None) -> str:
    """Render an interval for display: '5-10 /HPF'."""
    text = f"{_format_number(low)}-{_format_number(high)}"
    return f"{text} {unit}" if unit else text


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
