# ============================================================================
# src/lab_ingestion/config/base_config.py
# ============================================================================
"""
Base Configuration
- Package root
- Knowledge base location (biomarker dictionary, unit conversion tables)
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings


class BaseSettingsConfig(BaseSettings):
    # Root of the installed package
    PACKAGE_ROOT: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent,
        description="Root directory of the lab_ingestion package"
    )

    # Knowledge bases
    KNOWLEDGE_DIR: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent / "knowledge",
        description="Static knowledge bases (biomarker dictionary, unit conversions)"
    )

    DICTIONARY_FILE: str = Field(
        default="biomarker_dictionary.json",
        description="Biomarker dictionary file name inside KNOWLEDGE_DIR"
    )

    CONVERSIONS_FILE: str = Field(
        default="unit_conversions.json",
        description="Unit conversion tables file name inside KNOWLEDGE_DIR"
    )

    def get_dictionary_path(self) -> Path:
        """Full path to the biomarker dictionary JSON"""
        return self.KNOWLEDGE_DIR / self.DICTIONARY_FILE

    def get_conversions_path(self) -> Path:
        """Full path to the unit conversion tables JSON"""
        return self.KNOWLEDGE_DIR / self.CONVERSIONS_FILE


# Global instance
base_settings = BaseSettingsConfig()
