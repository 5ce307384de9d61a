# ============================================================================
# src/lab_ingestion/core/context/enums.py
# ============================================================================
"""
Pipeline Enums
- Document types
- Text extraction methods
- Stage status
"""

from enum import Enum


class DocumentType(str, Enum):
    TEXT_PDF = "text-pdf"        # Embedded text layer
    SCANNED_PDF = "scanned-pdf"  # Images of pages, little or no text
    IMAGE = "image"              # Photo or scan (jpg, png, ...)


class ExtractionMethod(str, Enum):
    PDF_TEXT = "pdf-text"
    OCR = "ocr"


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
