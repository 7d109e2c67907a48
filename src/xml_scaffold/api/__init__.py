"""Public parsing API, encoding detection and integration adapters."""

from .adapters import (
    AdapterMetadata,
    AdapterType,
    ConversionResult,
    IntegrationAdapter,
    LxmlAdapter,
    PandasAdapter,
    get_adapter,
    list_available_adapters,
    register_adapter,
)
from .encoding import DetectionMethod, EncodingDetector, EncodingResult
from .parser import XMLScaffoldParser, parse, parse_file, parse_string

__all__ = [
    "AdapterMetadata",
    "AdapterType",
    "ConversionResult",
    "DetectionMethod",
    "EncodingDetector",
    "EncodingResult",
    "IntegrationAdapter",
    "LxmlAdapter",
    "PandasAdapter",
    "XMLScaffoldParser",
    "get_adapter",
    "list_available_adapters",
    "parse",
    "parse_file",
    "parse_string",
    "register_adapter",
]
