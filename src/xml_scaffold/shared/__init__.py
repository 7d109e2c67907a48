"""Shared utilities for xml-scaffold.

Configuration objects, diagnostic and metric types, and the correlation-aware
logger used by every processing layer.
"""

from .config import (
    DEFAULT_MAX_DEPTH,
    MAX_SAFE_DEPTH,
    ConfigError,
    ConfigValidationError,
    ParserConfig,
    RenderConfig,
    ScannerConfig,
    TreeConfig,
)
from .logging import CorrelationLogger, get_logger
from .result import DiagnosticEntry, DiagnosticSeverity, PerformanceMetrics

__all__ = [
    "DEFAULT_MAX_DEPTH",
    "MAX_SAFE_DEPTH",
    "ConfigError",
    "ConfigValidationError",
    "CorrelationLogger",
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "ParserConfig",
    "PerformanceMetrics",
    "RenderConfig",
    "ScannerConfig",
    "TreeConfig",
    "get_logger",
]
