# ============================================================================
# src/lab_ingestion/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the lab report ingestion pipeline.
"""

from typing import Optional


class LabIngestionError(Exception):
    """Base exception for all lab ingestion errors."""
    pass


class ConversionError(LabIngestionError):
    """
    Unit conversion is not possible.

    Raised when the biomarker has no conversion table, or the table has
    no entry for the requested unit pair. Always recoverable: callers
    treat the value as unconvertible.
    """
    def __init__(
        self,
        message: str,
        biomarker: Optional[str] = None,
        from_unit: Optional[str] = None,
        to_unit: Optional[str] = None
    ):
        super().__init__(message)
        self.biomarker = biomarker
        self.from_unit = from_unit
        self.to_unit = to_unit


class AnalysisError(LabIngestionError):
    """
    A pipeline stage failed.

    Carries the stage name, the underlying cause and, when extraction got
    that far, the extracted text so it is not lost with the failure.
    """
    def __init__(
        self,
        message: str,
        stage: str,
        cause: Optional[BaseException] = None,
        extracted_text: Optional[str] = None
    ):
        super().__init__(message)
        self.stage = stage
        self.cause = cause
        self.extracted_text = extracted_text


class StageTransitionError(LabIngestionError):
    """Illegal analysis stage lifecycle transition."""
    def __init__(self, message: str, stage: str, status: str):
        super().__init__(message)
        self.stage = stage
        self.status = status


class AIAnalysisError(LabIngestionError):
    """AI provider call failed."""
    def __init__(self, message: str, provider: str, code: Optional[str] = None):
        super().__init__(message)
        self.provider = provider
        self.code = code


class AIConfigurationError(AIAnalysisError):
    """AI provider is misconfigured (missing API key, unknown type)."""
    def __init__(self, message: str, provider: str):
        super().__init__(message, provider, code="CONFIGURATION_ERROR")
