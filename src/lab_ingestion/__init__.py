# ============================================================================
# src/lab_ingestion/__init__.py
# ============================================================================
"""
Lab Report Ingestion

Turns a lab-report document into a normalized, unit-consistent,
deduplicated list of biomarker measurements.
"""

__version__ = "0.1.0"
