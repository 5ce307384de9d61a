# ============================================================================
# src/lab_ingestion/ai/__init__.py
# ============================================================================
"""
AI providers behind one contract:

    await provider.analyze_lab_report(text, options) -> LabReportAnalysisResult
"""

from .base import AIProviderConfig, AnalysisOptions, BaseAIProvider, ProviderType
from .factory import (
    ProviderCache,
    ProviderFactory,
    config_fingerprint,
    get_available_providers,
    provider_requires_api_key,
    validate_api_key_format,
)

__all__ = [
    'AIProviderConfig',
    'AnalysisOptions',
    'BaseAIProvider',
    'ProviderType',
    'ProviderCache',
    'ProviderFactory',
    'config_fingerprint',
    'get_available_providers',
    'provider_requires_api_key',
    'validate_api_key_format',
]
