# ============================================================================
# src/lab_ingestion/validators/deduplicator.py
# ============================================================================
"""
Duplicate Biomarker Resolver

Lab reports often list the same analyte twice (conventional and SI units,
or a summary table plus the detailed panel). This groups repeated
measurements of one biomarker, converts them to the canonical unit and:

- merges them when they agree within a relative tolerance
- keeps every member and flags a DuplicateConflict when they do not,
  or when agreement cannot be established (no canonical unit, values
  that cannot be converted)

Disagreeing data is never deleted. Only values known to agree are merged.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..config import threshold_settings
from ..core.context.biomarker import ConflictValue, DuplicateConflict, MatchedBiomarker
from ..units.conversion import conversion_factor, format_value_with_unit, round_half_away_from_zero
from ..units.normalizer import unit_key
from ..utils.exceptions import ConversionError

logger = logging.getLogger(__name__)


# Decimal places of the converted values reported in a conflict (comparison is unrounded)
COMPARISON_PRECISION = 4


@dataclass
class DeduplicationResult:
    deduplicated: List[MatchedBiomarker] = field(default_factory=list)
    conflicts: List[DuplicateConflict] = field(default_factory=list)


def values_equal(a: float, b: float, relative_tolerance: float) -> bool:
    """
    |a - b| / mean(|a|, |b|) <= tolerance.

    Identical values are always equal. Zero only equals zero.
    """
    if a == b:
        return True
    if a == 0 or b == 0:
        return False
    average = (abs(a) + abs(b)) / 2
    return abs(a - b) / average <= relative_tolerance


def group_key(biomarker: MatchedBiomarker) -> str:
    """Dictionary name, else suggested name, else lowercase reported name."""
    if biomarker.dictionary_match:
        return biomarker.dictionary_match.name
    if biomarker.suggested_match:
        return biomarker.suggested_match.name
    return biomarker.name.strip().lower()


class Deduplicator:
    """
    Config options:
        relative_tolerance: agreement tolerance (default: DEDUP_RELATIVE_TOLERANCE)
        comparison_precision: decimals of converted values in conflicts (default: 4)
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.relative_tolerance = self.config.get(
            'relative_tolerance', threshold_settings.DEDUP_RELATIVE_TOLERANCE
        )
        self.comparison_precision = self.config.get('comparison_precision', COMPARISON_PRECISION)

    def deduplicate(self, matched: List[MatchedBiomarker]) -> DeduplicationResult:
        groups: "OrderedDict[str, List[MatchedBiomarker]]" = OrderedDict()
        for biomarker in matched:
            groups.setdefault(group_key(biomarker), []).append(biomarker)

        result = DeduplicationResult()

        for name, members in groups.items():
            if len(members) == 1:
                result.deduplicated.extend(members)
                continue

            kept, conflict = self._resolve_group(name, members)
            result.deduplicated.extend(kept)
            if conflict:
                result.conflicts.append(conflict)
                logger.warning(conflict.message)

        if result.conflicts:
            logger.info(
                f"Deduplication: {len(matched)} -> {len(result.deduplicated)} biomarkers, "
                f"{len(result.conflicts)} conflict(s)"
            )

        return result

    # ========================================================================
    # GROUP RESOLUTION
    # ========================================================================

    def _resolve_group(
        self,
        name: str,
        members: List[MatchedBiomarker]
    ) -> Tuple[List[MatchedBiomarker], Optional[DuplicateConflict]]:
        canonical_unit = next((m.canonical_unit for m in members if m.canonical_unit), None)

        if not canonical_unit:
            unconverted = tuple(ConflictValue(value=m.value, unit=self._unit_of(m)) for m in members)
            conflict = DuplicateConflict(
                biomarker_name=name,
                original_values=unconverted,
                values_match=False,
                message=(
                    f"Multiple values for {name} with no common unit to compare them: "
                    f"{self._describe(unconverted, None)}"
                ),
            )
            return self._flag(members, conflict), conflict

        values: List[ConflictValue] = []
        converted: List[Tuple[MatchedBiomarker, float]] = []
        failed: List[MatchedBiomarker] = []

        for member in members:
            try:
                factor = conversion_factor(name, self._unit_of(member), canonical_unit)
            except ConversionError as e:
                logger.debug(f"Cannot compare {name} value {member.value} {member.unit}: {e}")
                values.append(ConflictValue(value=member.value, unit=self._unit_of(member)))
                failed.append(member)
                continue

            # Agreement is checked on the unrounded value; converted_value is for display
            in_canonical = member.value * factor
            values.append(ConflictValue(
                value=member.value,
                unit=self._unit_of(member),
                converted_value=round_half_away_from_zero(in_canonical, self.comparison_precision),
                converted_unit=canonical_unit,
            ))
            converted.append((member, in_canonical))

        if len(converted) < 2:
            conflict = DuplicateConflict(
                biomarker_name=name,
                original_values=tuple(values),
                values_match=False,
                message=(
                    f"Multiple values for {name} could not be converted to {canonical_unit} "
                    f"for comparison: {self._describe(values, canonical_unit)}"
                ),
            )
            return self._flag(members, conflict), conflict

        all_agree = all(
            values_equal(a, b, self.relative_tolerance)
            for i, (_, a) in enumerate(converted)
            for (_, b) in converted[i + 1:]
        )

        if not all_agree:
            conflict = DuplicateConflict(
                biomarker_name=name,
                original_values=tuple(values),
                values_match=False,
                message=(
                    f"Conflicting values for {name}: {self._describe(values, canonical_unit)}. "
                    f"Values differ by more than {self.relative_tolerance:.1%} "
                    f"after conversion to {canonical_unit}"
                ),
            )
            return self._flag(members, conflict), conflict

        representative = self._pick_representative(converted, canonical_unit)
        logger.debug(f"Merged {len(converted)} matching values for {name}")

        if not failed:
            return [representative], None

        # Agreeing values merge; unconvertible ones stay and are flagged with the group
        conflict = DuplicateConflict(
            biomarker_name=name,
            original_values=tuple(values),
            values_match=False,
            message=(
                f"Some values for {name} could not be converted to {canonical_unit}: "
                f"{self._describe(values, canonical_unit)}"
            ),
        )
        kept = [m for m in members if m is representative or any(m is f for f in failed)]
        return self._flag(kept, conflict), conflict

    def _pick_representative(
        self,
        converted: List[Tuple[MatchedBiomarker, float]],
        canonical_unit: str
    ) -> MatchedBiomarker:
        """Member already in the canonical unit, else the first one."""
        canonical = unit_key(canonical_unit)
        for member, _ in converted:
            if unit_key(self._unit_of(member)) == canonical:
                return member
        return converted[0][0]

    @staticmethod
    def _unit_of(member: MatchedBiomarker) -> str:
        return member.normalized_unit or member.unit

    @staticmethod
    def _flag(members: List[MatchedBiomarker], conflict: DuplicateConflict) -> List[MatchedBiomarker]:
        return [
            replace(m, has_duplicate_conflict=True, duplicate_conflict=conflict)
            for m in members
        ]

    @staticmethod
    def _describe(values, canonical_unit: Optional[str]) -> str:
        parts = []
        for v in values:
            original = f"{v.value:g} {v.unit}".strip()
            if v.converted_value is not None and unit_key(v.unit) != unit_key(v.converted_unit):
                parts.append(f"{original} (= {format_value_with_unit(v.converted_value, v.converted_unit)})")
            elif v.converted_value is None and canonical_unit:
                parts.append(f"{original} (not convertible)")
            else:
                parts.append(original)
        return ", ".join(parts)


# ============================================================================
# CONVENIENCE FUNCTION
# ============================================================================

def deduplicate_biomarkers(
    matched: List[MatchedBiomarker],
    relative_tolerance: Optional[float] = None
) -> DeduplicationResult:
    config = {}
    if relative_tolerance is not None:
        config['relative_tolerance'] = relative_tolerance
    return Deduplicator(config).deduplicate(matched)
