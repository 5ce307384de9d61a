# ============================================================================
# src/lab_ingestion/constants/__init__.py
# ============================================================================
"""
Static knowledge: biomarker dictionary and unit conversion tables.
"""

from .biomarker_dictionary import (
    BiomarkerDefinition,
    BiomarkerDictionary,
    get_biomarker_dictionary,
)
from .unit_conversions import (
    BIOMARKER_CONVERSIONS,
    BiomarkerConversions,
    UnitConversion,
    find_conversion_table,
    get_conversion_factor,
)
