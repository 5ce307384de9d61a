# ============================================================================
# src/lab_ingestion/utils/__init__.py
# ============================================================================
"""
Utility modules for the lab ingestion pipeline.
"""

from .exceptions import (
    LabIngestionError,
    ConversionError,
    AnalysisError,
    StageTransitionError,
    AIAnalysisError,
    AIConfigurationError,
)

from .logging import (
    setup_logging,
    get_logger,
    LogContext,
    log_performance,
)

__all__ = [
    # Exceptions
    'LabIngestionError',
    'ConversionError',
    'AnalysisError',
    'StageTransitionError',
    'AIAnalysisError',
    'AIConfigurationError',
    # Logging
    'setup_logging',
    'get_logger',
    'LogContext',
    'log_performance',
]
