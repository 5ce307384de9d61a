# ============================================================================
# src/lab_ingestion/core/context/analysis.py
# ============================================================================
"""
Analysis results
- LabReportAnalysisResult: what an AI provider returns for one report
- AnalysisResult: the final record for one analyzed document
- BatchFailure: placeholder for a document that failed inside a batch
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .biomarker import DuplicateConflict, ExtractedBiomarker, MatchedBiomarker
from .enums import DocumentType, ExtractionMethod
from .stages import AnalysisStage


@dataclass
class LabReportAnalysisResult:
    biomarkers: List[ExtractedBiomarker]
    overall_confidence: float
    analyzed_text: str = ""
    lab_date: Optional[str] = None
    lab_name: Optional[str] = None
    patient_name: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    model_used: str = ""
    processing_time: float = 0.0  # seconds


@dataclass(frozen=True)
class AnalysisResult:
    """Terminal record for one document. Not modified once returned."""
    id: str
    file_name: str
    document_type: DocumentType
    extraction_method: ExtractionMethod
    extracted_text: str
    ai_analysis: LabReportAnalysisResult
    matched_biomarkers: List[MatchedBiomarker]
    duplicate_conflicts: List[DuplicateConflict]
    overall_confidence: float
    warnings: List[str]
    stages: List[AnalysisStage]
    total_processing_time: float  # seconds
    lab_date: Optional[str] = None
    lab_name: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'file_name': self.file_name,
            'document_type': self.document_type.value,
            'extraction_method': self.extraction_method.value,
            'lab_date': self.lab_date,
            'lab_name': self.lab_name,
            'overall_confidence': self.overall_confidence,
            'biomarker_count': len(self.matched_biomarkers),
            'conflict_count': len(self.duplicate_conflicts),
            'warnings': list(self.warnings),
            'stages': [
                {'name': s.name, 'status': s.status.value, 'error': s.error}
                for s in self.stages
            ],
            'total_processing_time': self.total_processing_time,
        }


@dataclass(frozen=True)
class BatchFailure:
    error: str
    file_name: str
    stage: Optional[str] = None
    extracted_text: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return False
