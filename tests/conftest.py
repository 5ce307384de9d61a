# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

Collaborators (classifier, PDF extractor, OCR, AI provider) are replaced
by in-memory fakes so no test touches the network or a real PDF engine.
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from lab_ingestion.ai.base import BaseAIProvider, ProviderType
from lab_ingestion.constants.biomarker_dictionary import get_biomarker_dictionary
from lab_ingestion.core.context import DocumentType
from lab_ingestion.extractors.base import (
    DocumentDetectionResult,
    DocumentMetadata,
    OCRResult,
    PDFExtractionResult,
)


SAMPLE_REPORT_TEXT = """
Quest Diagnostics Laboratory Report
Date: 2024-01-15

Test                Result      Units       Reference Range
-----------------------------------------------------------
Glucose             100         mg/dL       70-99
Glucose (SI)        5.55        mmol/L      3.9-5.5
Hemoglobin          14.2        g/dL        13.5-17.5
Zebra Factor        5-10        /HPF
"""


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class FakeProvider(BaseAIProvider):
    """Provider that returns a canned response instead of calling an API."""

    provider_type = ProviderType.OLLAMA
    display_name = "Fake"
    default_model = "fake-model"

    def __init__(self, response: str = "", config=None):
        super().__init__(config)
        self.response = response
        self.prompts: List[str] = []

    async def _complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        self.prompts.append(user_prompt)
        return self.response


class FakeClassifier:
    """Valid text PDF unless a file name is mapped to another result."""

    def __init__(self, results: Optional[Dict[str, DocumentDetectionResult]] = None):
        self.results = results or {}
        self.calls: List[str] = []

    async def detect(self, path) -> DocumentDetectionResult:
        name = Path(path).name
        self.calls.append(name)
        if name in self.results:
            return self.results[name]
        return detection_result(DocumentType.TEXT_PDF)


class FakePDFExtractor:
    def __init__(self, text: str = SAMPLE_REPORT_TEXT, pages: int = 2, errors: Optional[List[str]] = None):
        self.text = text
        self.pages = pages
        self.errors = errors or []

    async def extract(self, path, on_progress=None) -> PDFExtractionResult:
        for page in range(1, self.pages + 1):
            if on_progress:
                on_progress(page, self.pages)
        return PDFExtractionResult(full_text=self.text, errors=list(self.errors), page_count=self.pages)


class FakeImageRecognizer:
    def __init__(self, text: str = SAMPLE_REPORT_TEXT, confidence: float = 92.0):
        self.text = text
        self.confidence = confidence
        self.languages: List[Optional[str]] = []

    async def recognize(self, path, language=None, on_progress=None) -> OCRResult:
        self.languages.append(language)
        for fraction in (0.25, 0.5, 1.0):
            if on_progress:
                on_progress(fraction)
        return OCRResult(text=self.text, confidence=self.confidence)


def detection_result(
    document_type: DocumentType,
    is_valid: bool = True,
    error: Optional[str] = None
) -> DocumentDetectionResult:
    return DocumentDetectionResult(
        type=document_type,
        metadata=DocumentMetadata(is_valid=is_valid, validation_error=error),
        mime_type='image/png' if document_type == DocumentType.IMAGE else 'application/pdf',
        needs_ocr=document_type != DocumentType.TEXT_PDF,
    )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def sample_ai_response():
    """AI response with a duplicated glucose, one interval value and one unknown name"""
    return json.dumps({
        "biomarkers": [
            {
                "name": "Glucose",
                "value": 100,
                "unit": "mg/dL",
                "referenceRange": {"low": 70, "high": 99, "unit": "mg/dL"},
                "confidence": 0.95,
                "flaggedAbnormal": True,
            },
            {"name": "Glucose", "value": "5,55", "unit": "mmol/L", "confidence": 0.9},
            {"name": "Hemoglobin", "value": 14.2, "unit": "g/dL", "confidence": 0.9},
            {"name": "Zebra Factor", "value": "5-10", "unit": "/HPF", "confidence": 0.8},
        ],
        "labDate": "2024-01-15",
        "labName": "Quest Diagnostics",
        "patientName": "John Doe",
        "warnings": [],
    })


@pytest.fixture
def conflicting_ai_response():
    """Same glucose reported in two units that do not agree"""
    return json.dumps({
        "biomarkers": [
            {"name": "Glucose", "value": 100, "unit": "mg/dL", "confidence": 0.9},
            {"name": "Glucose", "value": 7.0, "unit": "mmol/L", "confidence": 0.9},
        ],
    })


@pytest.fixture
def fake_provider(sample_ai_response):
    return FakeProvider(sample_ai_response)


@pytest.fixture
def fake_classifier():
    return FakeClassifier()


@pytest.fixture
def fake_pdf_extractor():
    return FakePDFExtractor()


@pytest.fixture
def fake_image_recognizer():
    return FakeImageRecognizer()


@pytest.fixture
def dictionary():
    return get_biomarker_dictionary()


@pytest.fixture
def sample_pdf(tmp_path):
    """Minimal file that passes the PDF magic-number check"""
    path = tmp_path / "report.pdf"
    path.write_bytes(b"%PDF-1.4\n% lab report\n")
    return path
