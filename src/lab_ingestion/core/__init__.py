# ============================================================================
# src/lab_ingestion/core/__init__.py
# ============================================================================
"""
Core components: data model and confidence scoring.

The orchestrator lives in lab_ingestion.core.orchestrator.
"""

from .context import AnalysisResult, BatchFailure, MatchedBiomarker
from .confidence import aggregate_confidence
