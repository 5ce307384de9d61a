# ============================================================================
# src/lab_ingestion/ai/response_parser.py
# ============================================================================
"""
AI Response Normalization

Turns the raw text an AI provider returns into ExtractedBiomarker records:

1. Recover the JSON object (direct parse, markdown fences, brace
   matching, json_repair for single quotes / trailing commas)
2. Parse every value with the value parser (intervals, thresholds,
   decimal commas)
3. Clean the unit field and recover any reference range hidden in it
4. Merge that range with the response's referenceRange (response wins)
5. Clamp confidence to [0, 1], default 0.5
"""

import json
import logging
import re
import statistics
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from json_repair import repair_json

from ..core.context.biomarker import ExtractedBiomarker, ReferenceRange
from ..parsing.value_parser import parse_value
from ..units.normalizer import clean_unit_and_extract_range
from ..utils.exceptions import AIAnalysisError

logger = logging.getLogger(__name__)


DEFAULT_CONFIDENCE = 0.5

_FENCE_PATTERN = re.compile(r'```(?:json)?\s*(.*?)```', re.DOTALL | re.IGNORECASE)


@dataclass
class ParsedAnalysis:
    biomarkers: List[ExtractedBiomarker] = field(default_factory=list)
    lab_date: Optional[str] = None
    lab_name: Optional[str] = None
    patient_name: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def average_confidence(self) -> float:
        if not self.biomarkers:
            return 0.0
        return statistics.fmean(b.confidence for b in self.biomarkers)


def extract_json(response_text: str) -> Optional[Dict]:
    """
    Extract JSON object from generated text.

    LLMs often return JSON wrapped in prose or markdown fences:
    "Here is the analysis: ```json {"key": "value"} ```"
    """
    if not response_text or not response_text.strip():
        logger.warning("Empty response text, no JSON to extract")
        return None

    text = response_text.strip()

    # Try 1: Direct parse
    try:
        data = json.loads(text)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Try 2: Markdown code fence
    fence = _FENCE_PATTERN.search(text)
    if fence:
        try:
            data = json.loads(fence.group(1).strip())
            if isinstance(data, dict):
                return data
        except json.JSONDecodeError:
            text = fence.group(1).strip()

    # Try 3: Brace matching
    start_idx = text.find('{')
    if start_idx == -1:
        logger.warning("No JSON found in response")
        return None

    depth = 0
    end_idx = len(text) - 1
    for i, char in enumerate(text[start_idx:], start=start_idx):
        if char == '{':
            depth += 1
        elif char == '}':
            depth -= 1
            if depth == 0:
                end_idx = i
                break

    json_str = text[start_idx:end_idx + 1]
    try:
        data = json.loads(json_str)
        if isinstance(data, dict):
            return data
    except json.JSONDecodeError:
        pass

    # Try 4: json_repair on the extracted block
    repaired = repair_json(json_str, return_objects=True)
    if isinstance(repaired, dict) and repaired:
        logger.debug("json_repair fixed extracted JSON block")
        return repaired

    logger.warning("Could not recover JSON from response")
    return None


def _first(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _optional_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        parsed = parse_value(value)
        if parsed.raw_value is None:
            return parsed.value
    return None


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if confidence != confidence:  # NaN
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


_TRUE_STRINGS = {'true', 'yes', '1'}
_FALSE_STRINGS = {'false', 'no', '0'}


def _optional_bool(value: Any) -> Optional[bool]:
    """JSON booleans, 0/1 and "true"/"false" strings. Anything else is unknown."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    return None


def normalize_biomarker(raw: Dict[str, Any], warnings: List[str]) -> Optional[ExtractedBiomarker]:
    """One response entry -> ExtractedBiomarker. Entries without a name are dropped."""
    name = _optional_text(raw.get('name'))
    if not name:
        return None

    raw_value = raw.get('value')
    parsed = parse_value(raw_value)
    if parsed.raw_value is not None and not parsed.is_interval and not parsed.is_threshold:
        warnings.append(f"Could not parse value for {name}: '{parsed.raw_value}'")

    cleaned = clean_unit_and_extract_range(_optional_text(raw.get('unit')) or '')

    reference_range = None
    raw_range = _first(raw, 'referenceRange', 'reference_range')
    low = high = None
    range_unit = cleaned.unit
    if isinstance(raw_range, dict):
        low = _optional_float(raw_range.get('low'))
        high = _optional_float(raw_range.get('high'))
        range_unit = _optional_text(raw_range.get('unit')) or cleaned.unit
    if low is None:
        low = cleaned.range_low
    if high is None:
        high = cleaned.range_high
    if low is not None or high is not None:
        reference_range = ReferenceRange(low=low, high=high, unit=range_unit)

    return ExtractedBiomarker(
        name=name,
        value=parsed.value,
        unit=cleaned.unit,
        reference_range=reference_range,
        method=_optional_text(raw.get('method')),
        confidence=_clamp_confidence(raw.get('confidence')),
        notes=_optional_text(raw.get('notes')),
        flagged_abnormal=_optional_bool(_first(raw, 'flaggedAbnormal', 'flagged_abnormal')),
        is_interval=parsed.is_interval,
        interval_low=parsed.interval_low,
        interval_high=parsed.interval_high,
        raw_value=parsed.raw_value,
    )


def parse_analysis_response(content: str, provider: str) -> ParsedAnalysis:
    """
    Parse a provider's raw text.

    Raises:
        AIAnalysisError: no JSON object could be recovered
    """
    data = extract_json(content)
    if data is None:
        raise AIAnalysisError(
            "Failed to parse AI response: no JSON object found",
            provider,
            code="PARSE_ERROR",
        )

    warnings: List[str] = []
    raw_warnings = data.get('warnings')
    if isinstance(raw_warnings, list):
        warnings.extend(str(w) for w in raw_warnings if w)

    biomarkers = []
    raw_biomarkers = data.get('biomarkers') or []
    if not isinstance(raw_biomarkers, list):
        raw_biomarkers = []
    for raw in raw_biomarkers:
        if not isinstance(raw, dict):
            continue
        biomarker = normalize_biomarker(raw, warnings)
        if biomarker:
            biomarkers.append(biomarker)

    return ParsedAnalysis(
        biomarkers=biomarkers,
        lab_date=_optional_text(_first(data, 'labDate', 'lab_date')),
        lab_name=_optional_text(_first(data, 'labName', 'lab_name')),
        patient_name=_optional_text(_first(data, 'patientName', 'patient_name')),
        warnings=warnings,
    )
