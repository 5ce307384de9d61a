# ============================================================================
# FILE: tests/unit/test_orchestrator.py
# ============================================================================
"""
Unit tests for the lab report analyzer (pipeline and batch processing)
"""

import logging
from unittest.mock import Mock

import pytest

from conftest import (
    FakeClassifier,
    FakeImageRecognizer,
    FakePDFExtractor,
    FakeProvider,
    detection_result,
)
from lab_ingestion.core.context import DocumentType, ExtractionMethod, StageStatus
from lab_ingestion.core.orchestrator import (
    AnalyzerOptions,
    LabReportAnalyzer,
    ProgressReporter,
    analyze_lab_report,
    analyze_multiple_reports,
)
from lab_ingestion.utils.exceptions import AnalysisError


LONG_SCANNED_TEXT = "Glucose 100 mg/dL " * 10
SHORT_SCANNED_TEXT = "Glucose 100 mg/dL, Hemoglobin 14"


def make_analyzer(classifier=None, pdf_extractor=None, image_recognizer=None, config=None):
    return LabReportAnalyzer(
        config=config,
        classifier=classifier or FakeClassifier(),
        pdf_extractor=pdf_extractor if pdf_extractor is not None else FakePDFExtractor(),
        image_recognizer=image_recognizer,
    )


class ProgressRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, label, fraction):
        self.events.append((label, fraction))

    @property
    def fractions(self):
        return [fraction for _, fraction in self.events]


# ============================================================================
# SINGLE DOCUMENT
# ============================================================================

@pytest.mark.asyncio
async def test_text_pdf_pipeline(fake_provider):
    progress = ProgressRecorder()
    analyzer = make_analyzer()

    result = await analyzer.analyze_document(
        "cbc.pdf", AnalyzerOptions(provider=fake_provider, on_progress=progress)
    )

    assert result.succeeded
    assert result.id.startswith("analysis_")
    assert result.file_name == "cbc.pdf"
    assert result.document_type == DocumentType.TEXT_PDF
    assert result.extraction_method == ExtractionMethod.PDF_TEXT
    assert "Quest Diagnostics" in result.extracted_text
    assert result.lab_date == "2024-01-15"
    assert result.lab_name == "Quest Diagnostics"
    assert result.total_processing_time >= 0

    # Duplicated glucose merged: Glucose, Hemoglobin, Zebra Factor
    assert [b.canonical_name for b in result.matched_biomarkers] == ["Glucose", "Hemoglobin", "Zebra Factor"]
    assert result.duplicate_conflicts == []
    assert result.warnings == ["1 biomarker(s) could not be matched to the dictionary"]

    expected = 0.3 * 0.8875 + 0.4 * ((0.95 + 0.9 + 0.8) / 3) + 0.3 * (2 / 3)
    assert result.overall_confidence == pytest.approx(expected)

    assert [s.status for s in result.stages] == [StageStatus.COMPLETED] * 4


@pytest.mark.asyncio
async def test_progress_is_monotonic_and_complete(fake_provider):
    progress = ProgressRecorder()
    await make_analyzer(pdf_extractor=FakePDFExtractor(pages=4)).analyze_document(
        "cbc.pdf", AnalyzerOptions(provider=fake_provider, on_progress=progress)
    )

    fractions = progress.fractions
    assert fractions == sorted(fractions)
    assert fractions[0] == 0.1
    assert fractions[-1] == 1.0
    assert progress.events[-1][0] == "Complete"

    labels = [label for label, _ in progress.events]
    assert "Analyzing with AI" in labels
    assert "Matching biomarkers" in labels
    # Page progress lands inside the extraction window
    page_fractions = [f for label, f in progress.events if "page" in label]
    assert len(page_fractions) == 4
    assert all(0.3 < f <= 0.5 for f in page_fractions)


def test_progress_reporter_never_goes_backwards():
    progress = ProgressRecorder()
    reporter = ProgressReporter(progress)
    reporter.report("a", 0.5)
    reporter.report("b", 0.2)
    reporter.report("c", 1.7)
    assert progress.fractions == [0.5, 0.5, 1.0]


@pytest.mark.asyncio
async def test_pdf_errors_become_warnings(fake_provider):
    analyzer = make_analyzer(pdf_extractor=FakePDFExtractor(errors=["Page 3 could not be read"]))
    result = await analyzer.analyze_document("cbc.pdf", AnalyzerOptions(provider=fake_provider))
    assert "Page 3 could not be read" in result.warnings


@pytest.mark.asyncio
async def test_scanned_pdf_with_embedded_text(fake_provider):
    classifier = FakeClassifier({"scan.pdf": detection_result(DocumentType.SCANNED_PDF)})
    analyzer = make_analyzer(classifier, FakePDFExtractor(text=LONG_SCANNED_TEXT))

    result = await analyzer.analyze_document("scan.pdf", AnalyzerOptions(provider=fake_provider))

    assert result.document_type == DocumentType.SCANNED_PDF
    assert result.extraction_method == ExtractionMethod.PDF_TEXT
    assert "This appears to be a scanned PDF. Some text may be missing or inaccurate." in result.warnings


@pytest.mark.asyncio
async def test_scanned_pdf_with_little_text(fake_provider):
    classifier = FakeClassifier({"scan.pdf": detection_result(DocumentType.SCANNED_PDF)})
    analyzer = make_analyzer(classifier, FakePDFExtractor(text=SHORT_SCANNED_TEXT))

    result = await analyzer.analyze_document("scan.pdf", AnalyzerOptions(provider=fake_provider))

    assert "Scanned PDF detected. Full OCR support requires PDF page rendering." in result.warnings
    assert result.extracted_text == SHORT_SCANNED_TEXT


@pytest.mark.asyncio
async def test_image_uses_ocr(fake_provider):
    classifier = FakeClassifier({"cbc.png": detection_result(DocumentType.IMAGE)})
    recognizer = FakeImageRecognizer(confidence=55.4)
    analyzer = make_analyzer(classifier, image_recognizer=recognizer)

    result = await analyzer.analyze_document(
        "cbc.png", AnalyzerOptions(provider=fake_provider, language="Italian")
    )

    assert result.extraction_method == ExtractionMethod.OCR
    assert "Low OCR confidence (55%). Results may be inaccurate." in result.warnings
    assert recognizer.languages == ["Italian"]
    assert "REPORT LANGUAGE: Italian" in fake_provider.prompts[0]


@pytest.mark.asyncio
async def test_confident_ocr_has_no_warning(fake_provider):
    classifier = FakeClassifier({"cbc.png": detection_result(DocumentType.IMAGE)})
    analyzer = make_analyzer(classifier, image_recognizer=FakeImageRecognizer(confidence=95))
    result = await analyzer.analyze_document("cbc.png", AnalyzerOptions(provider=fake_provider))
    assert not any("OCR" in w for w in result.warnings)


@pytest.mark.asyncio
async def test_conflicting_duplicates_are_reported(conflicting_ai_response):
    analyzer = make_analyzer()
    result = await analyzer.analyze_document(
        "cbc.pdf", AnalyzerOptions(provider=FakeProvider(conflicting_ai_response))
    )

    assert len(result.matched_biomarkers) == 2
    assert all(b.has_duplicate_conflict for b in result.matched_biomarkers)
    assert len(result.duplicate_conflicts) == 1
    assert "1 biomarker(s) have conflicting duplicate values and need review" in result.warnings


@pytest.mark.asyncio
async def test_provider_comes_from_factory(fake_provider):
    factory = Mock()
    factory.get_provider.return_value = fake_provider
    analyzer = LabReportAnalyzer(
        classifier=FakeClassifier(), pdf_extractor=FakePDFExtractor(), provider_factory=factory
    )

    await analyzer.analyze_document("cbc.pdf", AnalyzerOptions(ai_provider="openai"))

    factory.get_provider.assert_called_once_with("openai", None)


# ============================================================================
# FAILURES
# ============================================================================

@pytest.mark.asyncio
async def test_invalid_document_fails_detection(fake_provider):
    classifier = FakeClassifier({
        "empty.pdf": detection_result(DocumentType.TEXT_PDF, is_valid=False, error="File is empty")
    })
    with pytest.raises(AnalysisError) as exc_info:
        await make_analyzer(classifier).analyze_document("empty.pdf", AnalyzerOptions(provider=fake_provider))

    assert exc_info.value.stage == "Document Detection"
    assert str(exc_info.value) == "Document detection failed: File is empty"
    assert fake_provider.prompts == []


@pytest.mark.asyncio
async def test_classifier_exception_is_wrapped(fake_provider):
    class BrokenClassifier:
        async def detect(self, path):
            raise OSError("permission denied")

    with pytest.raises(AnalysisError) as exc_info:
        await make_analyzer(BrokenClassifier()).analyze_document(
            "cbc.pdf", AnalyzerOptions(provider=fake_provider)
        )
    assert str(exc_info.value) == "Document detection failed: permission denied"
    assert isinstance(exc_info.value.cause, OSError)


@pytest.mark.asyncio
async def test_no_readable_text(fake_provider):
    analyzer = make_analyzer(pdf_extractor=FakePDFExtractor(text="   \n  "))
    with pytest.raises(AnalysisError) as exc_info:
        await analyzer.analyze_document("blank.pdf", AnalyzerOptions(provider=fake_provider))

    assert exc_info.value.stage == "Text Extraction"
    assert str(exc_info.value) == "No readable text found in document"
    assert fake_provider.prompts == []


@pytest.mark.asyncio
async def test_short_ocr_text_fails_extraction(fake_provider):
    classifier = FakeClassifier({"scan.png": detection_result(DocumentType.IMAGE)})
    analyzer = make_analyzer(classifier, image_recognizer=FakeImageRecognizer(text="Glucose 100"))

    with pytest.raises(AnalysisError) as exc_info:
        await analyzer.analyze_document("scan.png", AnalyzerOptions(provider=fake_provider))

    assert exc_info.value.stage == "Text Extraction"
    assert str(exc_info.value) == "No readable text found in document"
    assert exc_info.value.extracted_text == "Glucose 100"
    assert fake_provider.prompts == []


@pytest.mark.asyncio
async def test_short_scanned_pdf_text_fails_extraction(fake_provider):
    classifier = FakeClassifier({"scan.pdf": detection_result(DocumentType.SCANNED_PDF)})
    analyzer = make_analyzer(classifier, FakePDFExtractor(text="Page 1 of 1"))

    with pytest.raises(AnalysisError) as exc_info:
        await analyzer.analyze_document("scan.pdf", AnalyzerOptions(provider=fake_provider))

    assert exc_info.value.stage == "Text Extraction"
    assert str(exc_info.value) == "No readable text found in document"
    assert fake_provider.prompts == []


@pytest.mark.asyncio
async def test_nineteen_characters_is_too_short(fake_provider):
    """Test surrounding whitespace does not count towards the minimum"""
    analyzer = make_analyzer(pdf_extractor=FakePDFExtractor(text="  " + "x" * 19 + "\n\n"))
    with pytest.raises(AnalysisError, match="No readable text found in document"):
        await analyzer.analyze_document("short.pdf", AnalyzerOptions(provider=fake_provider))


@pytest.mark.asyncio
async def test_twenty_characters_is_enough(fake_provider):
    analyzer = make_analyzer(pdf_extractor=FakePDFExtractor(text="x" * 20))
    result = await analyzer.analyze_document("short.pdf", AnalyzerOptions(provider=fake_provider))

    assert result.succeeded
    assert result.extracted_text == "x" * 20
    assert len(fake_provider.prompts) == 1


@pytest.mark.asyncio
async def test_matching_and_batch_timing_is_logged(fake_provider, caplog):
    with caplog.at_level(logging.INFO, logger="lab_ingestion.core.orchestrator"):
        await make_analyzer().analyze_batch(["cbc.pdf"], AnalyzerOptions(provider=fake_provider))

    assert "Biomarker matching completed in" in caplog.text
    assert "Batch analysis completed in" in caplog.text


@pytest.mark.asyncio
async def test_missing_pdf_extractor(fake_provider):
    analyzer = LabReportAnalyzer(classifier=FakeClassifier())
    with pytest.raises(AnalysisError) as exc_info:
        await analyzer.analyze_document("cbc.pdf", AnalyzerOptions(provider=fake_provider))
    assert str(exc_info.value) == "Text extraction failed: No PDF text extractor configured"


@pytest.mark.asyncio
async def test_ai_failure_keeps_extracted_text():
    with pytest.raises(AnalysisError) as exc_info:
        await make_analyzer().analyze_document("cbc.pdf", AnalyzerOptions(provider=FakeProvider("")))

    error = exc_info.value
    assert error.stage == "AI Analysis"
    assert str(error).startswith("AI analysis failed: Empty response from Fake")
    assert "Quest Diagnostics" in error.extracted_text


@pytest.mark.asyncio
async def test_matching_failure_is_not_fatal(fake_provider):
    analyzer = make_analyzer()
    analyzer.matcher = Mock()
    analyzer.matcher.match_all.side_effect = RuntimeError("dictionary corrupted")

    result = await analyzer.analyze_document("cbc.pdf", AnalyzerOptions(provider=fake_provider))

    assert "Biomarker matching encountered errors" in result.warnings
    assert len(result.matched_biomarkers) == 4
    assert not any(b.is_matched for b in result.matched_biomarkers)
    assert result.duplicate_conflicts == []

    matching_stage = result.stages[-1]
    assert matching_stage.status == StageStatus.FAILED
    assert matching_stage.error == "dictionary corrupted"


# ============================================================================
# BATCH
# ============================================================================

@pytest.mark.asyncio
async def test_batch_continues_after_failure(fake_provider):
    classifier = FakeClassifier({
        "bad.pdf": detection_result(DocumentType.TEXT_PDF, is_valid=False, error="File is not a valid PDF")
    })
    progress = ProgressRecorder()
    finished = []

    outcomes = await make_analyzer(classifier).analyze_batch(
        ["a.pdf", "bad.pdf", "c.pdf"],
        AnalyzerOptions(provider=fake_provider, on_progress=progress),
        on_file_progress=lambda index, total, result, error: finished.append((index, total, result, error)),
    )

    assert [o.succeeded for o in outcomes] == [True, False, True]
    assert [o.file_name for o in outcomes] == ["a.pdf", "bad.pdf", "c.pdf"]

    failure = outcomes[1]
    assert failure.stage == "Document Detection"
    assert failure.error == "Document detection failed: File is not a valid PDF"

    assert [(i, n) for i, n, _, _ in finished] == [(0, 3), (1, 3), (2, 3)]
    assert finished[0][2] is outcomes[0] and finished[0][3] is None
    assert finished[1][2] is None and finished[1][3] is failure

    fractions = progress.fractions
    assert fractions == sorted(fractions)
    assert fractions[-1] == pytest.approx(1.0)
    assert progress.events[0][0].startswith("[1/3]")


@pytest.mark.asyncio
async def test_empty_batch():
    assert await make_analyzer().analyze_batch([]) == []


@pytest.mark.asyncio
async def test_convenience_functions(fake_provider):
    components = dict(classifier=FakeClassifier(), pdf_extractor=FakePDFExtractor())
    options = AnalyzerOptions(provider=fake_provider)

    result = await analyze_lab_report("cbc.pdf", options, **components)
    assert result.succeeded

    outcomes = await analyze_multiple_reports(["a.pdf", "b.pdf"], options, **components)
    assert len(outcomes) == 2
