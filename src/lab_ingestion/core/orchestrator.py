# ============================================================================
# src/lab_ingestion/core/orchestrator.py
# ============================================================================
"""
Lab Report Analyzer

This is the MAIN entry point for lab report analysis.

Flow:
1. Document Detection  - validate the file, text PDF / scanned PDF / image
2. Text Extraction     - PDF text layer or OCR through injected collaborators
3. AI Analysis         - structured biomarker extraction by an AI provider
4. Biomarker Matching  - dictionary matching, then duplicate resolution

Stages 1-3 are fatal: their failure marks the stage failed and raises
AnalysisError. Stage 4 is not: on error every biomarker is kept unmatched
and the result carries a warning.

Batches run one document at a time. A failed document becomes a
BatchFailure in its slot and the batch continues.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..ai.base import AIProviderConfig, AnalysisOptions, BaseAIProvider, ProviderType
from ..ai.factory import ProviderFactory
from ..config import ai_settings, threshold_settings
from ..extractors.base import (
    DocumentClassifier,
    DocumentDetectionResult,
    ImageRecognizer,
    PathLike,
    PDFTextExtractor,
)
from ..extractors.document_detector import FileTypeDetector
from ..matching.matcher import DictionaryLookup, DictionaryMatcher, fallback_unmatched, unmatched_count
from ..utils.exceptions import AnalysisError, LabIngestionError
from ..utils.logging import LogContext, get_logger, log_performance
from ..validators.deduplicator import Deduplicator
from .confidence import aggregate_confidence
from .context import (
    AnalysisResult,
    AnalysisStage,
    BatchFailure,
    DocumentType,
    DuplicateConflict,
    ExtractionMethod,
    LabReportAnalysisResult,
    MatchedBiomarker,
    STAGE_AI_ANALYSIS,
    STAGE_BIOMARKER_MATCHING,
    STAGE_DOCUMENT_DETECTION,
    STAGE_TEXT_EXTRACTION,
    create_pipeline_stages,
)

logger = get_logger(__name__)


# (label, fraction in [0, 1])
ProgressCallback = Callable[[str, float], None]

# (file_index, total_files, result, failure)
FileProgressCallback = Callable[[int, int, Optional[AnalysisResult], Optional[BatchFailure]], None]

BatchOutcome = Union[AnalysisResult, BatchFailure]

# Progress checkpoints
PROGRESS_DETECTION = 0.1
PROGRESS_EXTRACTION = 0.3
PROGRESS_EXTRACTION_SPAN = 0.2
PROGRESS_AI = 0.6
PROGRESS_MATCHING = 0.9
PROGRESS_COMPLETE = 1.0

SCANNED_PDF_PARTIAL_WARNING = "This appears to be a scanned PDF. Some text may be missing or inaccurate."
SCANNED_PDF_NO_TEXT_WARNING = "Scanned PDF detected. Full OCR support requires PDF page rendering."
MATCHING_FAILED_WARNING = "Biomarker matching encountered errors"


@dataclass
class AnalyzerOptions:
    """
    Per-call options.

    ai_provider defaults to AI_PROVIDER. An explicit provider instance
    bypasses the factory (and its cache) entirely.
    """
    ai_provider: Optional[Union[str, ProviderType]] = None
    ai_config: Optional[AIProviderConfig] = None
    provider: Optional[BaseAIProvider] = None
    language: Optional[str] = None
    extract_patient_info: bool = False
    additional_instructions: Optional[str] = None
    on_progress: Optional[ProgressCallback] = None


class ProgressReporter:
    """Forwards progress to a callback, never letting the fraction go backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.last = 0.0

    def report(self, label: str, fraction: float) -> None:
        fraction = min(max(fraction, self.last), 1.0)
        self.last = fraction
        if self.callback:
            self.callback(label, fraction)


class LabReportAnalyzer:
    """
    Runs the four-stage analysis pipeline.

    Collaborators are injected; only the classifier, matcher, deduplicator
    and provider factory have built-in defaults. PDF extraction and OCR
    must be supplied by the caller for the document types that need them.

    Config options:
        min_text_length: shortest usable extracted text (default: MIN_TEXT_LENGTH)
        scanned_pdf_min_text: embedded text needed to use a scanned PDF as-is
                              (default: SCANNED_PDF_MIN_TEXT)
        ocr_confidence_warning: OCR confidence (0-100) below which a warning
                                is attached (default: OCR_CONFIDENCE_WARNING)
        matching: DictionaryMatcher config
        deduplication: Deduplicator config
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        classifier: Optional[DocumentClassifier] = None,
        pdf_extractor: Optional[PDFTextExtractor] = None,
        image_recognizer: Optional[ImageRecognizer] = None,
        dictionary: Optional[DictionaryLookup] = None,
        provider_factory: Optional[ProviderFactory] = None
    ):
        self.config = config or {}
        self.logger = logger

        self.pdf_extractor = pdf_extractor
        self.image_recognizer = image_recognizer
        self.classifier = classifier or FileTypeDetector(pdf_extractor)
        self.matcher = DictionaryMatcher(dictionary, self.config.get('matching'))
        self.deduplicator = Deduplicator(self.config.get('deduplication'))
        self.provider_factory = provider_factory or ProviderFactory()

        self.min_text_length = self.config.get('min_text_length', threshold_settings.MIN_TEXT_LENGTH)
        self.scanned_pdf_min_text = self.config.get(
            'scanned_pdf_min_text', threshold_settings.SCANNED_PDF_MIN_TEXT
        )
        self.ocr_confidence_warning = self.config.get(
            'ocr_confidence_warning', threshold_settings.OCR_CONFIDENCE_WARNING
        )

    # ========================================================================
    # MAIN PROCESSING PIPELINE
    # ========================================================================

    async def analyze_document(
        self,
        path: PathLike,
        options: Optional[AnalyzerOptions] = None
    ) -> AnalysisResult:
        """
        Analyze one lab report.

        Args:
            path: PDF or image file
            options: Provider selection, language and progress callback

        Returns:
            AnalysisResult with matched, deduplicated biomarkers

        Raises:
            AnalysisError: detection, extraction or AI analysis failed

        Example:
            analyzer = LabReportAnalyzer(pdf_extractor=MyPdfExtractor())
            result = await analyzer.analyze_document(
                "cbc.pdf",
                AnalyzerOptions(ai_provider="openai", ai_config=AIProviderConfig(api_key="sk-..."))
            )
            for biomarker in result.matched_biomarkers:
                print(biomarker.canonical_name, biomarker.value, biomarker.unit)
        """
        options = options or AnalyzerOptions()
        path = Path(path)
        start_time = datetime.now()
        progress = ProgressReporter(options.on_progress)
        detection_stage, extraction_stage, ai_stage, matching_stage = stages = create_pipeline_stages()
        warnings: List[str] = []

        with LogContext(self.logger, document=path.name):
            self.logger.info(f"Analyzing document: {path.name}")

            # ================================================================
            # STAGE 1: DOCUMENT DETECTION
            # ================================================================
            progress.report("Detecting document type", PROGRESS_DETECTION)
            detection_stage.start()
            try:
                detection = await self.classifier.detect(path)
            except Exception as e:
                raise self._fail(detection_stage, f"Document detection failed: {e}", e)

            if not detection.metadata.is_valid:
                reason = detection.metadata.validation_error or "Invalid document"
                raise self._fail(detection_stage, f"Document detection failed: {reason}")
            detection_stage.complete()

            self.logger.info(f"Detected {detection.type.value} ({detection.mime_type or 'unknown'})")

            # ================================================================
            # STAGE 2: TEXT EXTRACTION
            # ================================================================
            progress.report("Extracting text", PROGRESS_EXTRACTION)
            extraction_stage.start()
            try:
                text, extraction_method = await self._extract_text(
                    path, detection, options, progress, warnings
                )
            except Exception as e:
                raise self._fail(extraction_stage, f"Text extraction failed: {e}", e)

            if len(text.strip()) < self.min_text_length:
                raise self._fail(
                    extraction_stage, "No readable text found in document", extracted_text=text
                )
            extraction_stage.complete()

            self.logger.info(f"Extracted {len(text)} characters ({extraction_method.value})")

            # ================================================================
            # STAGE 3: AI ANALYSIS
            # ================================================================
            progress.report("Analyzing with AI", PROGRESS_AI)
            ai_stage.start()
            try:
                provider = self._resolve_provider(options)
                ai_analysis = await provider.analyze_lab_report(
                    text,
                    AnalysisOptions(
                        language=options.language or "English",
                        extract_patient_info=options.extract_patient_info,
                        additional_instructions=options.additional_instructions,
                    ),
                )
            except Exception as e:
                raise self._fail(ai_stage, f"AI analysis failed: {e}", e, extracted_text=text)
            ai_stage.complete()
            warnings.extend(ai_analysis.warnings)

            # ================================================================
            # STAGE 4: BIOMARKER MATCHING (non-fatal)
            # ================================================================
            progress.report("Matching biomarkers", PROGRESS_MATCHING)
            matching_stage.start()
            matched, conflicts = self._match_biomarkers(ai_analysis, matching_stage, warnings)

            progress.report("Complete", PROGRESS_COMPLETE)
            total_time = (datetime.now() - start_time).total_seconds()

            result = AnalysisResult(
                id=f"analysis_{uuid.uuid4().hex[:12]}",
                file_name=path.name,
                document_type=detection.type,
                extraction_method=extraction_method,
                extracted_text=text,
                ai_analysis=ai_analysis,
                matched_biomarkers=matched,
                duplicate_conflicts=conflicts,
                overall_confidence=aggregate_confidence(matched, ai_analysis.overall_confidence),
                warnings=warnings,
                stages=stages,
                total_processing_time=total_time,
                lab_date=ai_analysis.lab_date,
                lab_name=ai_analysis.lab_name,
            )

            self.logger.info(
                f"Analysis complete: {len(matched)} biomarkers, "
                f"confidence {result.overall_confidence:.2f}, "
                f"{len(warnings)} warning(s), {total_time:.2f}s"
            )
            return result

    # ========================================================================
    # BATCH PROCESSING
    # ========================================================================

    @log_performance(logger, "Batch analysis")
    async def analyze_batch(
        self,
        paths: Sequence[PathLike],
        options: Optional[AnalyzerOptions] = None,
        on_file_progress: Optional[FileProgressCallback] = None
    ) -> List[BatchOutcome]:
        """
        Analyze documents one after another.

        Output order matches input order. options.on_progress receives the
        overall fraction (i + p) / n, where p is the progress within file i.
        on_file_progress is called once per finished file.

        Returns:
            One AnalysisResult or BatchFailure per input path
        """
        options = options or AnalyzerOptions()
        total = len(paths)
        outcomes: List[BatchOutcome] = []

        self.logger.info(f"Batch analysis of {total} document(s)")

        for index, raw_path in enumerate(paths):
            path = Path(raw_path)
            file_options = replace(
                options,
                on_progress=self._batch_progress(options.on_progress, index, total),
            )

            try:
                result = await self.analyze_document(path, file_options)
            except Exception as e:
                self.logger.error(f"Failed to analyze {path.name}: {e}")
                failure = BatchFailure(
                    error=str(e),
                    file_name=path.name,
                    stage=getattr(e, 'stage', None),
                    extracted_text=getattr(e, 'extracted_text', None),
                )
                outcomes.append(failure)
                if on_file_progress:
                    on_file_progress(index, total, None, failure)
                continue

            outcomes.append(result)
            if on_file_progress:
                on_file_progress(index, total, result, None)

        successes = sum(1 for outcome in outcomes if outcome.succeeded)
        self.logger.info(
            f"Batch analysis complete: {successes} succeeded, {total - successes} failed"
        )
        return outcomes

    async def close(self) -> None:
        """Close every cached AI provider."""
        await self.provider_factory.aclose()

    # ========================================================================
    # STAGE HELPERS
    # ========================================================================

    async def _extract_text(
        self,
        path: Path,
        detection: DocumentDetectionResult,
        options: AnalyzerOptions,
        progress: ProgressReporter,
        warnings: List[str]
    ) -> Tuple[str, ExtractionMethod]:
        if detection.type == DocumentType.IMAGE:
            return await self._recognize_image(path, options, progress, warnings), ExtractionMethod.OCR

        if self.pdf_extractor is None:
            raise LabIngestionError("No PDF text extractor configured")

        def on_page(current: int, total: int) -> None:
            fraction = current / total if total else 1.0
            progress.report(
                f"Extracting text (page {current}/{total})",
                PROGRESS_EXTRACTION + fraction * PROGRESS_EXTRACTION_SPAN,
            )

        extraction = await self.pdf_extractor.extract(path, on_progress=on_page)
        warnings.extend(extraction.errors)
        text = extraction.full_text

        if detection.type == DocumentType.SCANNED_PDF:
            if len(text.strip()) > self.scanned_pdf_min_text:
                warnings.append(SCANNED_PDF_PARTIAL_WARNING)
            else:
                warnings.append(SCANNED_PDF_NO_TEXT_WARNING)

        return text, ExtractionMethod.PDF_TEXT

    async def _recognize_image(
        self,
        path: Path,
        options: AnalyzerOptions,
        progress: ProgressReporter,
        warnings: List[str]
    ) -> str:
        if self.image_recognizer is None:
            raise LabIngestionError("No image recognizer configured")

        def on_ocr(fraction: float) -> None:
            progress.report(
                "Recognizing text",
                PROGRESS_EXTRACTION + fraction * PROGRESS_EXTRACTION_SPAN,
            )

        ocr = await self.image_recognizer.recognize(path, language=options.language, on_progress=on_ocr)
        if ocr.confidence < self.ocr_confidence_warning:
            warnings.append(
                f"Low OCR confidence ({ocr.confidence:.0f}%). Results may be inaccurate."
            )
        return ocr.text

    def _resolve_provider(self, options: AnalyzerOptions) -> BaseAIProvider:
        if options.provider is not None:
            return options.provider
        provider_type = options.ai_provider or ai_settings.AI_PROVIDER
        return self.provider_factory.get_provider(provider_type, options.ai_config)

    @log_performance(logger, "Biomarker matching")
    def _match_biomarkers(
        self,
        ai_analysis: LabReportAnalysisResult,
        stage: AnalysisStage,
        warnings: List[str]
    ) -> Tuple[List[MatchedBiomarker], List[DuplicateConflict]]:
        try:
            matched = self.matcher.match_all(ai_analysis.biomarkers)
            deduplication = self.deduplicator.deduplicate(matched)
        except Exception as e:
            self.logger.error(f"Biomarker matching failed: {e}", exc_info=True)
            stage.fail(str(e))
            warnings.append(MATCHING_FAILED_WARNING)
            return fallback_unmatched(ai_analysis.biomarkers), []

        stage.complete()

        unmatched = unmatched_count(deduplication.deduplicated)
        if unmatched:
            warnings.append(f"{unmatched} biomarker(s) could not be matched to the dictionary")
        if deduplication.conflicts:
            warnings.append(
                f"{len(deduplication.conflicts)} biomarker(s) have conflicting duplicate values "
                f"and need review"
            )

        return deduplication.deduplicated, deduplication.conflicts

    def _fail(
        self,
        stage: AnalysisStage,
        message: str,
        cause: Optional[BaseException] = None,
        extracted_text: Optional[str] = None
    ) -> AnalysisError:
        stage.fail(message)
        self.logger.error(f"{stage.name} failed: {message}")
        return AnalysisError(message, stage.name, cause=cause, extracted_text=extracted_text)

    @staticmethod
    def _batch_progress(
        callback: Optional[ProgressCallback],
        index: int,
        total: int
    ) -> Optional[ProgressCallback]:
        if callback is None:
            return None

        def report(label: str, fraction: float) -> None:
            callback(f"[{index + 1}/{total}] {label}", (index + fraction) / total)

        return report


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

async def analyze_lab_report(
    path: PathLike,
    options: Optional[AnalyzerOptions] = None,
    **components
) -> AnalysisResult:
    """
    One-shot analysis. Keyword arguments are passed to LabReportAnalyzer.

    Example:
        result = await analyze_lab_report("cbc.png", image_recognizer=TesseractRecognizer())
    """
    analyzer = LabReportAnalyzer(**components)
    try:
        return await analyzer.analyze_document(path, options)
    finally:
        await analyzer.close()


async def analyze_multiple_reports(
    paths: Sequence[PathLike],
    options: Optional[AnalyzerOptions] = None,
    on_file_progress: Optional[FileProgressCallback] = None,
    **components
) -> List[BatchOutcome]:
    analyzer = LabReportAnalyzer(**components)
    try:
        return await analyzer.analyze_batch(paths, options, on_file_progress)
    finally:
        await analyzer.close()
