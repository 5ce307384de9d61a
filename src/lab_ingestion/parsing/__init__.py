# ============================================================================
# src/lab_ingestion/parsing/__init__.py
# ============================================================================
"""
Raw value parsing (numbers, intervals, thresholds).
"""

from .value_parser import ParsedValue, parse_value, format_interval_value

__all__ = ['ParsedValue', 'parse_value', 'format_interval_value']
