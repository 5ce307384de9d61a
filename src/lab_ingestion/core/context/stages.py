# ============================================================================
# src/lab_ingestion/core/context/stages.py
# ============================================================================
"""
Analysis stage tracking

A stage moves pending -> running -> completed|failed exactly once.
Anything else is a programming error and raises StageTransitionError.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ...utils.exceptions import StageTransitionError
from .enums import StageStatus


# Pipeline stage names, in execution order
STAGE_DOCUMENT_DETECTION = "Document Detection"
STAGE_TEXT_EXTRACTION = "Text Extraction"
STAGE_AI_ANALYSIS = "AI Analysis"
STAGE_BIOMARKER_MATCHING = "Biomarker Matching"

PIPELINE_STAGES = (
    STAGE_DOCUMENT_DETECTION,
    STAGE_TEXT_EXTRACTION,
    STAGE_AI_ANALYSIS,
    STAGE_BIOMARKER_MATCHING,
)


@dataclass
class AnalysisStage:
    name: str
    status: StageStatus = StageStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error: Optional[str] = None

    def start(self) -> None:
        self._require(StageStatus.PENDING, "start")
        self.status = StageStatus.RUNNING
        self.start_time = datetime.now()

    def complete(self) -> None:
        self._require(StageStatus.RUNNING, "complete")
        self.status = StageStatus.COMPLETED
        self.end_time = datetime.now()

    def fail(self, error: str) -> None:
        self._require(StageStatus.RUNNING, "fail")
        self.status = StageStatus.FAILED
        self.end_time = datetime.now()
        self.error = error

    @property
    def duration(self) -> Optional[float]:
        """Seconds spent in the stage, once finished."""
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    @property
    def is_finished(self) -> bool:
        return self.status in (StageStatus.COMPLETED, StageStatus.FAILED)

    def _require(self, expected: StageStatus, action: str) -> None:
        if self.status != expected:
            raise StageTransitionError(
                f"Cannot {action} stage '{self.name}' in status '{self.status.value}'",
                stage=self.name,
                status=self.status.value,
            )


def create_pipeline_stages() -> list:
    """Fresh pending stages for one document analysis."""
    return [AnalysisStage(name=name) for name in PIPELINE_STAGES]
