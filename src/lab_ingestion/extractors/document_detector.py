# ============================================================================
# src/lab_ingestion/extractors/document_detector.py
# ============================================================================
"""
File Type Detector

Default DocumentClassifier. Validates the file (exists, not empty, not
too large, supported type) and decides whether it is a text PDF, a
scanned PDF or an image.

PDF text density is probed through an optional PDFTextExtractor: an
average of at least TEXT_PDF_MIN_CHARS_PER_PAGE characters per page
means the PDF has a usable text layer. Without an extractor every PDF
is assumed to be text-based.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import threshold_settings
from ..core.context.enums import DocumentType
from .base import (
    DocumentDetectionResult,
    DocumentMetadata,
    PathLike,
    PDFTextExtractor,
)

logger = logging.getLogger(__name__)


MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.webp': 'image/webp',
    '.gif': 'image/gif',
    '.bmp': 'image/bmp',
    '.tiff': 'image/tiff',
    '.tif': 'image/tiff',
}

PDF_MAGIC = b'%PDF'


class FileTypeDetector:
    """
    Config options:
        max_file_size_mb: reject larger files (default: MAX_FILE_SIZE_MB)
        min_chars_per_page: text PDF threshold (default: TEXT_PDF_MIN_CHARS_PER_PAGE)
    """

    def __init__(
        self,
        pdf_extractor: Optional[PDFTextExtractor] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        self.config = config or {}
        self.pdf_extractor = pdf_extractor
        self.max_file_size = (
            self.config.get('max_file_size_mb', threshold_settings.MAX_FILE_SIZE_MB) * 1024 * 1024
        )
        self.min_chars_per_page = self.config.get(
            'min_chars_per_page', threshold_settings.TEXT_PDF_MIN_CHARS_PER_PAGE
        )

    async def detect(self, path: PathLike) -> DocumentDetectionResult:
        path = Path(path)
        mime_type = MIME_TYPES.get(path.suffix.lower(), '')
        default_type = DocumentType.TEXT_PDF if mime_type == 'application/pdf' else DocumentType.IMAGE

        def invalid(reason: str, size: int = 0) -> DocumentDetectionResult:
            logger.warning(f"Rejected {path.name}: {reason}")
            return DocumentDetectionResult(
                type=default_type,
                metadata=DocumentMetadata(is_valid=False, validation_error=reason),
                mime_type=mime_type,
                file_name=path.name,
                file_size=size,
                confidence=0.0,
            )

        if not path.is_file():
            return invalid("File not found")

        size = path.stat().st_size
        if size == 0:
            return invalid("File is empty")
        if size > self.max_file_size:
            return invalid(
                f"File is too large ({size / (1024 * 1024):.1f} MB, "
                f"maximum {self.max_file_size // (1024 * 1024)} MB)",
                size,
            )
        if not mime_type:
            return invalid(f"Unsupported file type '{path.suffix or path.name}'", size)

        if mime_type != 'application/pdf':
            return DocumentDetectionResult(
                type=DocumentType.IMAGE,
                metadata=DocumentMetadata(is_valid=True),
                mime_type=mime_type,
                file_name=path.name,
                file_size=size,
                needs_ocr=True,
                confidence=1.0,
            )

        with open(path, 'rb') as f:
            if f.read(len(PDF_MAGIC)) != PDF_MAGIC:
                return invalid("File is not a valid PDF", size)

        return await self._classify_pdf(path, size)

    async def _classify_pdf(self, path: Path, size: int) -> DocumentDetectionResult:
        if self.pdf_extractor is None:
            return DocumentDetectionResult(
                type=DocumentType.TEXT_PDF,
                metadata=DocumentMetadata(is_valid=True),
                mime_type='application/pdf',
                file_name=path.name,
                file_size=size,
                confidence=0.5,
            )

        extraction = await self.pdf_extractor.extract(path)
        pages = max(extraction.page_count, 1)
        chars_per_page = len(extraction.full_text.strip()) / pages
        is_text = chars_per_page >= self.min_chars_per_page

        logger.debug(f"{path.name}: {chars_per_page:.0f} chars/page over {pages} page(s)")

        return DocumentDetectionResult(
            type=DocumentType.TEXT_PDF if is_text else DocumentType.SCANNED_PDF,
            metadata=DocumentMetadata(is_valid=True),
            mime_type='application/pdf',
            file_name=path.name,
            file_size=size,
            needs_ocr=not is_text,
            confidence=0.9 if is_text else 0.8,
            page_count=extraction.page_count or None,
        )
