# ============================================================================
# src/lab_ingestion/extractors/base.py
# ============================================================================
"""
Collaborator contracts for document handling.

The pipeline does no OCR or PDF parsing itself. It talks to these
interfaces, which callers implement with whatever engine they use
(pdf.js, pdfplumber, Tesseract, a cloud OCR, ...).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Union

from ..core.context.enums import DocumentType


PathLike = Union[str, Path]

# (current_page, total_pages)
PageProgressCallback = Callable[[int, int], None]

# fraction in [0, 1]
FractionProgressCallback = Callable[[float], None]


@dataclass
class DocumentMetadata:
    is_valid: bool
    validation_error: Optional[str] = None


@dataclass
class DocumentDetectionResult:
    type: DocumentType
    metadata: DocumentMetadata
    mime_type: str = ""
    file_name: str = ""
    file_size: int = 0
    needs_ocr: bool = False
    confidence: float = 1.0
    page_count: Optional[int] = None


@dataclass
class PDFExtractionResult:
    full_text: str
    errors: List[str] = field(default_factory=list)
    page_count: int = 0


@dataclass
class OCRResult:
    text: str
    confidence: float  # 0-100


class DocumentClassifier(Protocol):
    async def detect(self, path: PathLike) -> DocumentDetectionResult:
        ...


class PDFTextExtractor(Protocol):
    async def extract(
        self,
        path: PathLike,
        on_progress: Optional[PageProgressCallback] = None
    ) -> PDFExtractionResult:
        ...


class ImageRecognizer(Protocol):
    async def recognize(
        self,
        path: PathLike,
        language: Optional[str] = None,
        on_progress: Optional[FractionProgressCallback] = None
    ) -> OCRResult:
        ...
