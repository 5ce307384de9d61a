# ============================================================================
# src/lab_ingestion/matching/__init__.py
# ============================================================================
"""
Biomarker name matching against the dictionary.
"""

from .matcher import DictionaryMatcher, DictionaryLookup, fallback_unmatched, unmatched_count

__all__ = ['DictionaryMatcher', 'DictionaryLookup', 'fallback_unmatched', 'unmatched_count']
