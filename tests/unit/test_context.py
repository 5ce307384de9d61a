# ============================================================================
# FILE: tests/unit/test_context.py
# ============================================================================
"""
Unit tests for the analysis data model and stage lifecycle
"""

import pytest

from lab_ingestion.core.context import (
    PIPELINE_STAGES,
    AnalysisStage,
    BatchFailure,
    ConflictValue,
    ExtractedBiomarker,
    MatchedBiomarker,
    ReferenceRange,
    StageStatus,
    create_pipeline_stages,
)
from lab_ingestion.utils.exceptions import StageTransitionError


def test_pipeline_stages_in_order():
    stages = create_pipeline_stages()
    assert [s.name for s in stages] == list(PIPELINE_STAGES)
    assert PIPELINE_STAGES == ("Document Detection", "Text Extraction", "AI Analysis", "Biomarker Matching")
    assert all(s.status == StageStatus.PENDING for s in stages)


def test_stage_completes():
    stage = AnalysisStage(name="Text Extraction")
    assert stage.duration is None

    stage.start()
    assert stage.status == StageStatus.RUNNING
    assert not stage.is_finished

    stage.complete()
    assert stage.status == StageStatus.COMPLETED
    assert stage.is_finished
    assert stage.duration >= 0
    assert stage.error is None


def test_stage_fails_with_error():
    stage = AnalysisStage(name="AI Analysis")
    stage.start()
    stage.fail("timeout")
    assert stage.status == StageStatus.FAILED
    assert stage.error == "timeout"
    assert stage.end_time is not None


def test_illegal_transitions_raise():
    stage = AnalysisStage(name="AI Analysis")
    with pytest.raises(StageTransitionError):
        stage.complete()
    with pytest.raises(StageTransitionError):
        stage.fail("not started")

    stage.start()
    with pytest.raises(StageTransitionError):
        stage.start()

    stage.complete()
    with pytest.raises(StageTransitionError) as exc_info:
        stage.fail("too late")
    assert exc_info.value.status == "completed"
    assert exc_info.value.stage == "AI Analysis"


def test_interval_biomarker_needs_ordered_bounds():
    ExtractedBiomarker(name="Leukocytes", value=7.5, is_interval=True, interval_low=5, interval_high=10)

    with pytest.raises(ValueError):
        ExtractedBiomarker(name="Leukocytes", value=7.5, is_interval=True, interval_low=5)
    with pytest.raises(ValueError):
        ExtractedBiomarker(name="Leukocytes", value=7.5, is_interval=True, interval_low=10, interval_high=5)


def test_reference_range_is_empty():
    assert ReferenceRange().is_empty()
    assert not ReferenceRange(high=5).is_empty()


def test_matched_biomarker_defaults():
    matched = MatchedBiomarker(name="Zebra Factor", value=1)
    assert not matched.is_matched
    assert not matched.has_duplicate_conflict
    assert matched.canonical_name == "Zebra Factor"
    assert matched.canonical_unit is None


def test_conflict_value_conversion_failed():
    assert ConflictValue(value=1, unit="g/L").conversion_failed
    assert not ConflictValue(value=1, unit="g/L", converted_value=1, converted_unit="g/L").conversion_failed


def test_batch_failure():
    failure = BatchFailure(error="File is empty", file_name="a.pdf", stage="Document Detection")
    assert not failure.succeeded
    assert failure.extracted_text is None
