"""Recursive tree construction over raw markup.

The builder drives the scanner from a cursor position and opens one
recursion frame per open tag. A frame ends when it meets a close tag whose
name equals its own opening tag, or when the input runs out. Anything that
does not fit, such as stray close tags, unclosed elements, unterminated tags
or nesting past the depth ceiling, is kept in the tree and flagged
``malformed``; nothing is ever dropped and nothing raises.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from xml_scaffold.shared import (
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
    ScannerConfig,
    TreeConfig,
    get_logger,
)
from xml_scaffold.tokenization import NodeRole, SourceLocator, Token, scan

from .nodes import Document, XMLNode

_COMPONENT = "xml_tree_builder"


@dataclass
class _Anomaly:
    message: str
    offset: int
    details: Dict[str, Any]


@dataclass
class _BuildState:
    """Mutable state for exactly one build call.

    Holds the document-wide index counter, so two builds never share it.
    """

    source: str
    scanner: ScannerConfig
    max_depth: int
    collect_anomalies: bool
    next_index: int = 0
    tokens_scanned: int = 0
    deepest: int = 0
    nodes: List[XMLNode] = field(default_factory=list)
    anomalies: List[_Anomaly] = field(default_factory=list)

    def allocate(self) -> int:
        index = self.next_index
        self.next_index += 1
        return index

    def report(self, message: str, token: Token, **details: Any) -> None:
        if self.collect_anomalies:
            details.setdefault("role", token.role.value)
            if token.tag is not None:
                details.setdefault("tag", token.tag)
            self.anomalies.append(_Anomaly(message, token.start, details))


def _make_node(
    token: Token,
    global_index: int,
    local_index: int,
    children: Optional[List[XMLNode]] = None,
    malformed: bool = False
) -> XMLNode:
    if token.role is NodeRole.OPEN_TAG and children is None:
        children = []
    return XMLNode(
        role=token.role,
        raw=token.raw,
        global_index=global_index,
        local_index=local_index,
        tag=token.tag,
        inner=token.inner,
        attributes=token.attributes,
        target=token.target,
        children=children,
        malformed=True if (malformed or token.malformed) else None,
    )


def _collect(
    state: _BuildState,
    position: int,
    expected: Optional[str],
    depth: int
) -> Tuple[List[XMLNode], int, bool]:
    """Collect sibling nodes until ``expected`` is closed or input ends.

    Args:
        state: Per-build state
        position: Cursor to start scanning from
        expected: Tag name that closes this frame, None at document scope
        depth: Number of open frames enclosing this one

    Returns:
        ``(children, new_position, closed)``
    """
    source = state.source
    length = len(source)
    children: List[XMLNode] = []

    while position < length:
        token = scan(source, position, state.scanner)
        state.tokens_scanned += 1
        position = token.end

        if token.is_whitespace:
            continue

        if token.role is NodeRole.CLOSE_TAG:
            if expected is not None and token.tag == expected:
                return children, position, True
            state.report("Orphan close tag", token, expected=expected)
            children.append(
                _make_node(token, state.allocate(), len(children), malformed=True)
            )
            continue

        if token.role is NodeRole.OPEN_TAG and not token.malformed:
            global_index = state.allocate()
            local_index = len(children)

            if depth + 1 > state.max_depth:
                state.report("Nesting depth limit exceeded", token,
                             max_depth=state.max_depth)
                children.append(
                    _make_node(token, global_index, local_index, [], malformed=True)
                )
                continue

            state.deepest = max(state.deepest, depth + 1)
            nested, position, closed = _collect(state, position, token.tag, depth + 1)
            if not closed:
                state.report("Unclosed open tag", token, child_count=len(nested))
            children.append(
                _make_node(token, global_index, local_index, nested, malformed=not closed)
            )
            continue

        if token.malformed:
            state.report("Unterminated tag", token)
        children.append(_make_node(token, state.allocate(), len(children)))

    return children, position, expected is None


def _run(source: str, config: TreeConfig, scanner: ScannerConfig) -> _BuildState:
    state = _BuildState(
        source=source,
        scanner=scanner,
        max_depth=config.max_depth,
        collect_anomalies=config.collect_diagnostics,
    )
    state.nodes, _, _ = _collect(state, 0, None, 0)
    return state


def build(
    source: str,
    config: Optional[TreeConfig] = None,
    scanner_config: Optional[ScannerConfig] = None
) -> List[XMLNode]:
    """Build the node forest for ``source``.

    Args:
        source: Markup text, possibly malformed
        config: Tree configuration (depth ceiling)
        scanner_config: Scanner feature switches

    Returns:
        Top-level nodes in document order; empty for empty input
    """
    if not source:
        return []
    tree_config = config or TreeConfig(collect_diagnostics=False)
    return _run(source, tree_config, scanner_config or ScannerConfig()).nodes


@dataclass
class ParseResult:
    """Result object for tree building operations.

    Contains the document, diagnostics and performance information. Building
    never raises; internal failures set ``success`` to False and leave a
    CRITICAL diagnostic instead.
    """

    document: Document = field(default_factory=Document)
    success: bool = True
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    correlation_id: Optional[str] = None

    @property
    def tree(self) -> Document:
        """Direct access to the parsed document.

        Examples:
            >>> result = parse_string('<root><item>value</item></root>')
            >>> result.tree.find('item').children[0].raw
            'value'
        """
        return self.document

    @property
    def nodes(self) -> List[XMLNode]:
        """Top-level nodes of the document."""
        return self.document.children

    @property
    def node_count(self) -> int:
        return self.performance.nodes_created

    @property
    def malformed_count(self) -> int:
        return self.performance.malformed_nodes

    @property
    def is_well_formed(self) -> bool:
        """True when the build succeeded and no node is flagged malformed."""
        return self.success and self.performance.malformed_nodes == 0

    @property
    def processing_time_ms(self) -> float:
        return self.performance.processing_time_ms

    def add_diagnostic(
        self,
        severity: DiagnosticSeverity,
        message: str,
        component: str,
        position: Optional[Dict[str, int]] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """Add diagnostic entry to result."""
        entry = DiagnosticEntry(
            severity=severity,
            message=message,
            component=component,
            position=position,
            details=details,
            correlation_id=self.correlation_id
        )
        self.diagnostics.append(entry)

    def get_diagnostics_by_severity(
        self,
        severity: DiagnosticSeverity
    ) -> List[DiagnosticEntry]:
        """Get diagnostics of specific severity level."""
        return [diag for diag in self.diagnostics if diag.severity == severity]

    def has_errors(self) -> bool:
        """Check if result contains any error diagnostics."""
        return any(
            diag.severity in (DiagnosticSeverity.ERROR, DiagnosticSeverity.CRITICAL)
            for diag in self.diagnostics
        )

    def summary(self) -> Dict[str, Any]:
        """Get summary statistics for the parse result."""
        by_severity: Dict[str, int] = {}
        for diag in self.diagnostics:
            by_severity[diag.severity.name] = by_severity.get(diag.severity.name, 0) + 1
        return {
            "success": self.success,
            "well_formed": self.is_well_formed,
            "node_count": self.node_count,
            "malformed_count": self.malformed_count,
            "top_level_count": len(self.document.children),
            "max_depth": self.performance.max_depth_reached,
            "diagnostics": by_severity,
            "performance": self.performance.to_dict(),
        }


class XMLTreeBuilder:
    """Tree builder with diagnostics, metrics and never-fail error handling.

    Instances hold only configuration, so one builder can be reused for any
    number of builds, including concurrent ones.
    """

    def __init__(
        self,
        config: Optional[TreeConfig] = None,
        correlation_id: Optional[str] = None,
        scanner_config: Optional[ScannerConfig] = None
    ) -> None:
        """Initialize tree builder.

        Args:
            config: Tree configuration, defaults to a 500-level depth ceiling
            correlation_id: Optional correlation ID for request tracking
            scanner_config: Scanner feature switches
        """
        self.config = config or TreeConfig()
        self.scanner_config = scanner_config or ScannerConfig()
        self.correlation_id = correlation_id
        self.logger = get_logger(__name__, correlation_id, _COMPONENT)

    def build(self, source: str) -> ParseResult:
        """Build a document tree from markup text.

        Args:
            source: Markup text, possibly malformed

        Returns:
            ParseResult containing the document, diagnostics and metrics
        """
        start_time = time.time()
        text = source or ""
        result = ParseResult(correlation_id=self.correlation_id)
        result.performance.characters_processed = len(text)

        self.logger.info(
            "Starting tree building",
            extra={"char_count": len(text), "max_depth": self.config.max_depth}
        )

        if not text:
            result.add_diagnostic(
                DiagnosticSeverity.INFO,
                "Empty input - empty document created",
                _COMPONENT,
                details={"input_type": "empty"}
            )

        try:
            state = _run(text, self.config, self.scanner_config)
            result.document = Document(children=state.nodes)
            self._record_anomalies(result, state)
            self._finalize_result(result, state, start_time)

            self.logger.info(
                "Tree building completed",
                extra={
                    "node_count": result.node_count,
                    "malformed_count": result.malformed_count,
                    "processing_time_ms": result.processing_time_ms,
                }
            )
            if result.malformed_count:
                self.logger.warning(
                    "Recovered from structural anomalies",
                    extra={
                        "malformed_count": result.malformed_count,
                        "anomaly_count": len(state.anomalies),
                    }
                )

        except Exception as e:
            # Never-fail philosophy: return an empty result on error
            processing_time = (time.time() - start_time) * 1000

            self.logger.exception(
                "Tree building failed",
                extra={"processing_time_ms": processing_time}
            )

            result.success = False
            result.document = Document()
            result.performance.processing_time_ms = processing_time
            result.add_diagnostic(
                DiagnosticSeverity.CRITICAL,
                f"Tree building failed: {e}",
                _COMPONENT,
                details={"exception_type": type(e).__name__}
            )

        return result

    def _record_anomalies(self, result: ParseResult, state: _BuildState) -> None:
        if not state.anomalies:
            return
        locator = SourceLocator(state.source)
        for anomaly in state.anomalies:
            result.add_diagnostic(
                DiagnosticSeverity.WARNING,
                anomaly.message,
                _COMPONENT,
                position=locator.locate(anomaly.offset).to_dict(),
                details=anomaly.details,
            )

    def _finalize_result(
        self,
        result: ParseResult,
        state: _BuildState,
        start_time: float
    ) -> None:
        node_count = 0
        malformed = 0
        for node in result.document.iter_nodes():
            node_count += 1
            if node.malformed:
                malformed += 1

        metrics = result.performance
        metrics.processing_time_ms = (time.time() - start_time) * 1000
        metrics.tokens_scanned = state.tokens_scanned
        metrics.nodes_created = node_count
        metrics.malformed_nodes = malformed
        metrics.max_depth_reached = state.deepest
