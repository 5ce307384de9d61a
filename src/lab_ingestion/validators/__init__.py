# ============================================================================
# src/lab_ingestion/validators/__init__.py
# ============================================================================
"""
Cross-value validation: duplicate measurement resolution.
"""

from .deduplicator import (
    Deduplicator,
    DeduplicationResult,
    deduplicate_biomarkers,
    values_equal,
)

__all__ = [
    'Deduplicator',
    'DeduplicationResult',
    'deduplicate_biomarkers',
    'values_equal',
]
