# ============================================================================
# src/lab_ingestion/extractors/__init__.py
# ============================================================================
"""
Document detection and text extraction contracts.
"""

from .base import (
    DocumentClassifier,
    DocumentDetectionResult,
    DocumentMetadata,
    ImageRecognizer,
    OCRResult,
    PDFExtractionResult,
    PDFTextExtractor,
)
from .document_detector import FileTypeDetector

__all__ = [
    'DocumentClassifier',
    'DocumentDetectionResult',
    'DocumentMetadata',
    'ImageRecognizer',
    'OCRResult',
    'PDFExtractionResult',
    'PDFTextExtractor',
    'FileTypeDetector',
]
