"""Diagnostic and metric types shared by the scanning and tree-building layers."""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    DEBUG = auto()
    INFO = auto()
    WARNING = auto()    # Recovered structural anomaly
    ERROR = auto()
    CRITICAL = auto()   # Operation could not produce a tree


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with source location."""

    severity: DiagnosticSeverity
    message: str
    component: str
    position: Optional[Dict[str, int]] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")

    def to_dict(self) -> Dict[str, Any]:
        """Convert the entry to a JSON-friendly dictionary."""
        result: Dict[str, Any] = {
            "severity": self.severity.name,
            "message": self.message,
            "component": self.component,
        }
        if self.position is not None:
            result["position"] = dict(self.position)
        if self.details:
            result["details"] = dict(self.details)
        return result


@dataclass
class PerformanceMetrics:
    """Timing and volume metrics for one parse."""

    processing_time_ms: float = 0.0
    characters_processed: int = 0
    tokens_scanned: int = 0
    nodes_created: int = 0
    malformed_nodes: int = 0
    max_depth_reached: int = 0

    @property
    def characters_per_second(self) -> float:
        """Calculate characters processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.characters_processed * 1000.0) / self.processing_time_ms

    @property
    def malformed_rate(self) -> float:
        """Share of created nodes that carry the malformed flag."""
        if self.nodes_created == 0:
            return 0.0
        return self.malformed_nodes / self.nodes_created

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to a dictionary."""
        return {
            "processing_time_ms": self.processing_time_ms,
            "characters_processed": self.characters_processed,
            "tokens_scanned": self.tokens_scanned,
            "nodes_created": self.nodes_created,
            "malformed_nodes": self.malformed_nodes,
            "max_depth_reached": self.max_depth_reached,
            "characters_per_second": self.characters_per_second,
            "malformed_rate": self.malformed_rate,
        }
