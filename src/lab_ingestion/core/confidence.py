# ============================================================================
# src/lab_ingestion/core/confidence.py
# ============================================================================
"""
Document Confidence Aggregation

Combines the AI-reported confidence, the per-biomarker confidences and the
dictionary match rate into one document-level score.

Reports with no dictionary hits at all (foreign-language reports,
specialized panels) are not penalized for it: the match-rate term is
dropped and its weight moves to the other two.
"""

from dataclasses import dataclass
from typing import List
import statistics

from .context.biomarker import MatchedBiomarker


@dataclass(frozen=True)
class ConfidenceWeights:
    ai: float
    average: float
    exact_ratio: float


WITH_DICTIONARY_MATCHES = ConfidenceWeights(ai=0.3, average=0.4, exact_ratio=0.3)
WITHOUT_DICTIONARY_MATCHES = ConfidenceWeights(ai=0.4, average=0.6, exact_ratio=0.0)


def aggregate_confidence(matched: List[MatchedBiomarker], ai_confidence: float) -> float:
    """
    Document-level confidence in [0, 1].

    Args:
        matched: Matched (and deduplicated) biomarkers
        ai_confidence: Overall confidence reported by the AI provider

    Returns:
        0 for an empty list, else the weighted score
    """
    if not matched:
        return 0.0

    average = statistics.fmean(b.confidence for b in matched)
    exact_ratio = sum(1 for b in matched if b.is_exact_match) / len(matched)

    weights = WITH_DICTIONARY_MATCHES if exact_ratio > 0 else WITHOUT_DICTIONARY_MATCHES
    score = (
        weights.ai * ai_confidence
        + weights.average * average
        + weights.exact_ratio * exact_ratio
    )

    return max(0.0, min(1.0, score))
