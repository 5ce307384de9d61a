# ============================================================================
# src/lab_ingestion/config/thresholds_config.py
# ============================================================================
"""
Pipeline Thresholds
- Deduplication tolerance
- Readable-text minimums
- OCR confidence warning
- Document size limits
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ThresholdSettings(BaseSettings):
    DEDUP_RELATIVE_TOLERANCE: float = Field(
        default=0.005,
        ge=0.0, le=1.0,
        description="Relative difference under which two converted duplicate values are considered equal (0.005 = 0.5%)"
    )
    MIN_TEXT_LENGTH: int = Field(
        default=20,
        ge=0,
        description="Extracted text shorter than this (after stripping) fails the extraction stage"
    )
    SCANNED_PDF_MIN_TEXT: int = Field(
        default=100,
        ge=0,
        description="Embedded text longer than this is used as-is for a scanned PDF"
    )
    OCR_CONFIDENCE_WARNING: float = Field(
        default=70.0,
        ge=0.0, le=100.0,
        description="OCR confidence (0-100) below which a low-confidence warning is attached"
    )
    TEXT_PDF_MIN_CHARS_PER_PAGE: int = Field(
        default=50,
        ge=0,
        description="Average characters per page needed to classify a PDF as text-based"
    )
    MAX_FILE_SIZE_MB: int = Field(
        default=50,
        gt=0,
        description="Documents larger than this are rejected during detection"
    )


threshold_settings = ThresholdSettings()
