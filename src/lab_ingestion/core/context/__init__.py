# ============================================================================
# src/lab_ingestion/core/context/__init__.py
# ============================================================================

from .enums import DocumentType, ExtractionMethod, StageStatus
from .biomarker import (
    ReferenceRange,
    ExtractedBiomarker,
    MatchedBiomarker,
    ConflictValue,
    DuplicateConflict,
)
from .stages import (
    AnalysisStage,
    PIPELINE_STAGES,
    STAGE_DOCUMENT_DETECTION,
    STAGE_TEXT_EXTRACTION,
    STAGE_AI_ANALYSIS,
    STAGE_BIOMARKER_MATCHING,
    create_pipeline_stages,
)
from .analysis import LabReportAnalysisResult, AnalysisResult, BatchFailure

__all__ = [
    "DocumentType",
    "ExtractionMethod",
    "StageStatus",
    "ReferenceRange",
    "ExtractedBiomarker",
    "MatchedBiomarker",
    "ConflictValue",
    "DuplicateConflict",
    "AnalysisStage",
    "PIPELINE_STAGES",
    "STAGE_DOCUMENT_DETECTION",
    "STAGE_TEXT_EXTRACTION",
    "STAGE_AI_ANALYSIS",
    "STAGE_BIOMARKER_MATCHING",
    "create_pipeline_stages",
    "LabReportAnalysisResult",
    "AnalysisResult",
    "BatchFailure",
]
