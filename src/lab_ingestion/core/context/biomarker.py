# ============================================================================
# src/lab_ingestion/core/context/biomarker.py
# ============================================================================
"""
Biomarker records
- ExtractedBiomarker: one measurement as the AI reported it
- MatchedBiomarker: the same measurement after dictionary matching
- DuplicateConflict: repeated measurements that disagree after conversion
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from ...constants.biomarker_dictionary import BiomarkerDefinition


@dataclass
class ReferenceRange:
    low: Optional[float] = None
    high: Optional[float] = None
    unit: str = ""

    def is_empty(self) -> bool:
        return self.low is None and self.high is None


@dataclass
class ExtractedBiomarker:
    name: str
    value: float
    unit: str = ""
    reference_range: Optional[ReferenceRange] = None
    method: Optional[str] = None
    confidence: float = 0.5
    notes: Optional[str] = None
    flagged_abnormal: Optional[bool] = None

    # Interval values ("5-10" in urine microscopy)
    is_interval: bool = False
    interval_low: Optional[float] = None
    interval_high: Optional[float] = None

    # Original token when the value was not a plain number ("< 5", "5-10")
    raw_value: Optional[str] = None

    def __post_init__(self):
        if self.is_interval:
            if self.interval_low is None or self.interval_high is None:
                raise ValueError(f"Interval biomarker '{self.name}' needs both bounds")
            if self.interval_low > self.interval_high:
                raise ValueError(
                    f"Interval biomarker '{self.name}' has low {self.interval_low} > high {self.interval_high}"
                )


@dataclass(frozen=True)
class ConflictValue:
    value: float
    unit: str
    converted_value: Optional[float] = None
    converted_unit: Optional[str] = None

    @property
    def conversion_failed(self) -> bool:
        return self.converted_value is None


@dataclass(frozen=True)
class DuplicateConflict:
    """Created once per conflicting group; never modified."""
    biomarker_name: str
    original_values: Tuple[ConflictValue, ...]
    values_match: bool
    message: str


@dataclass
class MatchedBiomarker(ExtractedBiomarker):
    dictionary_match: Optional[BiomarkerDefinition] = None
    suggested_match: Optional[BiomarkerDefinition] = None
    is_exact_match: bool = False
    normalized_unit: str = ""

    # Set only by the deduplicator
    has_duplicate_conflict: bool = False
    duplicate_conflict: Optional[DuplicateConflict] = None

    @property
    def canonical_name(self) -> str:
        """Dictionary name, else suggested name, else the reported name."""
        if self.dictionary_match:
            return self.dictionary_match.name
        if self.suggested_match:
            return self.suggested_match.name
        return self.name

    @property
    def canonical_unit(self) -> Optional[str]:
        definition = self.dictionary_match or self.suggested_match
        if definition and definition.canonical_unit:
            return definition.canonical_unit
        return None

    @property
    def is_matched(self) -> bool:
        return self.dictionary_match is not None or self.suggested_match is not None

