# ============================================================================
# src/lab_ingestion/units/__init__.py
# ============================================================================
"""
Unit normalization (units.normalizer) and conversion (units.conversion).
"""
