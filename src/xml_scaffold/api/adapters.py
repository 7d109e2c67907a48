"""Integration adapters that hand scaffold trees to other libraries.

Adapters convert a :class:`ParseResult` into a target representation:
``lxml.etree`` elements for XPath-style querying, or a ``pandas`` DataFrame
with one row per node for tabular analysis. Target libraries are imported
lazily so the core parser works without them.
"""

import re
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

from xml_scaffold.shared import DiagnosticEntry, DiagnosticSeverity, get_logger
from xml_scaffold.tree import NodeRole, ParseResult, XMLNode, walk

_VALID_NAME = re.compile(r"^[A-Za-z_][\w.\-]*$")
_INVALID_NAME_CHARS = re.compile(r"[^\w.\-]")

FALLBACK_ELEMENT_NAME = "element"
SYNTHETIC_ROOT_NAME = "document"


class AdapterType(Enum):
    """Types of integration adapters."""

    XML_LIBRARY = auto()     # XML processing libraries (lxml)
    DATA_FRAME = auto()      # DataFrame libraries (pandas)


@dataclass
class AdapterMetadata:
    """Metadata about an integration adapter."""

    name: str
    version: str
    adapter_type: AdapterType
    target_library: str
    description: str


@dataclass
class ConversionResult:
    """Result of a conversion operation."""

    success: bool
    converted_data: Any
    original_data: Any
    conversion_time_ms: float
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)


class IntegrationAdapter(ABC):
    """Abstract base class for all integration adapters."""

    def __init__(self, correlation_id: Optional[str] = None) -> None:
        """Initialize the integration adapter.

        Args:
            correlation_id: Optional correlation ID for request tracking
        """
        self.correlation_id = correlation_id
        self._logger = get_logger(__name__, correlation_id, self.__class__.__name__)

    @property
    @abstractmethod
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the target library is importable."""

    @abstractmethod
    def to_target(self, parse_result: ParseResult) -> ConversionResult:
        """Convert a ParseResult to the target representation."""

    def _create_error_result(
        self,
        error_message: str,
        original_data: Any,
        conversion_time_ms: float = 0.0
    ) -> ConversionResult:
        """Create a ConversionResult for error conditions."""
        self._logger.warning(error_message)
        return ConversionResult(
            success=False,
            converted_data=None,
            original_data=original_data,
            conversion_time_ms=conversion_time_ms,
            errors=[error_message],
            diagnostics=[
                DiagnosticEntry(
                    severity=DiagnosticSeverity.ERROR,
                    message=error_message,
                    component=self.__class__.__name__,
                    correlation_id=self.correlation_id
                )
            ]
        )


def _safe_name(name: Optional[str]) -> Optional[str]:
    """Return ``name`` if lxml accepts it unchanged, else a sanitized form."""
    if name and _VALID_NAME.match(name):
        return name
    if not name:
        return None
    cleaned = _INVALID_NAME_CHARS.sub("_", name)
    if not _VALID_NAME.match(cleaned):
        cleaned = f"_{cleaned}"
    return cleaned


def _text_content(node: XMLNode) -> str:
    raw = node.raw
    if raw.startswith("<![CDATA["):
        return raw[9:-3] if raw.endswith("]]>") else raw[9:]
    return raw


class LxmlAdapter(IntegrationAdapter):
    """Converts a scaffold tree into an ``lxml.etree`` element tree.

    All top-level nodes are placed under a synthetic ``<document>`` root.
    Tag names lxml cannot represent (for example prefixed names such as
    ``env:Envelope``, since no namespace is declared) become ``<element>``
    with the original name kept in ``data-tag``. Malformed nodes carry
    ``data-malformed="true"``. Doctypes and orphan close tags are skipped.
    """

    @property
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""
        return AdapterMetadata(
            name="lxml",
            version="1.0.0",
            adapter_type=AdapterType.XML_LIBRARY,
            target_library="lxml",
            description="Conversion from ParseResult to lxml.etree"
        )

    def is_available(self) -> bool:
        """Check if lxml is available."""
        try:
            import lxml.etree  # noqa: F401
            return True
        except ImportError:
            return False

    def to_target(self, parse_result: ParseResult) -> ConversionResult:
        """Convert ParseResult to an lxml element rooted at ``<document>``.

        Args:
            parse_result: Parsed document result

        Returns:
            ConversionResult containing the lxml root element
        """
        start_time = time.time()

        try:
            from lxml import etree

            if not parse_result.success:
                return self._create_error_result(
                    "ParseResult is not successful",
                    parse_result,
                    (time.time() - start_time) * 1000
                )

            warnings: List[str] = []
            root = etree.Element(SYNTHETIC_ROOT_NAME)
            self._append_nodes(root, parse_result.nodes, etree, warnings)

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=True,
                converted_data=root,
                original_data=parse_result,
                conversion_time_ms=processing_time,
                warnings=warnings,
                metadata={
                    "lxml_version": etree.LXML_VERSION,
                    "element_count": len(root.xpath("//*")) - 1,
                }
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            return self._create_error_result(
                f"Failed to convert to lxml: {e}",
                parse_result,
                processing_time
            )

    def _append_nodes(self, root, nodes: List[XMLNode], etree, warnings: List[str]) -> None:
        """Append ``nodes`` and their subtrees below ``root`` in document order.

        Open elements wait on an explicit stack of (element, remaining
        children) pairs, so conversion depth is not bound by the interpreter
        stack.
        """
        stack: List[Tuple[Any, Iterator[XMLNode]]] = [(root, iter(nodes))]
        while stack:
            parent, remaining = stack[-1]
            node = next(remaining, None)
            if node is None:
                stack.pop()
            elif node.role in (NodeRole.OPEN_TAG, NodeRole.SELF_TAG):
                element = self._convert_element(node, etree, warnings)
                parent.append(element)
                if node.children:
                    stack.append((element, iter(node.children)))
            elif node.role is NodeRole.TEXT_LEAF:
                self._append_text(parent, _text_content(node), node, warnings)
            elif node.role is NodeRole.COMMENT:
                content = node.raw[4:]
                if content.endswith("-->"):
                    content = content[:-3]
                self._append_special(parent, etree.Comment, (content,), node, warnings)
            elif node.role is NodeRole.PROCESSING_INSTRUCTION:
                if (node.target or "").lower() == "xml":
                    continue
                self._append_special(
                    parent, etree.ProcessingInstruction,
                    (node.target or "", (node.inner or "").strip() or None),
                    node, warnings
                )
            else:
                warnings.append(
                    f"Skipped {node.role.value} node #{node.global_index}"
                )

    def _convert_element(self, node: XMLNode, etree, warnings: List[str]):
        """Create the element for ``node`` without its children."""
        name = node.tag if node.tag and _VALID_NAME.match(node.tag) else None
        element = etree.Element(name or FALLBACK_ELEMENT_NAME)
        if name is None:
            element.set("data-tag", node.tag or "")

        for attribute in node.attributes or []:
            attr_name = _safe_name(attribute.name)
            if attr_name is None:
                continue
            if attr_name != attribute.name:
                warnings.append(
                    f"Attribute {attribute.name!r} renamed to {attr_name!r}"
                )
            try:
                element.set(attr_name, attribute.value)
            except ValueError as e:
                warnings.append(f"Attribute {attribute.name!r} dropped: {e}")

        if node.malformed:
            element.set("data-malformed", "true")
        return element

    def _append_text(self, parent, text: str, node: XMLNode, warnings: List[str]) -> None:
        try:
            if len(parent):
                last = parent[-1]
                last.tail = (last.tail or "") + text
            else:
                parent.text = (parent.text or "") + text
        except ValueError as e:
            warnings.append(f"Text node #{node.global_index} dropped: {e}")

    def _append_special(self, parent, factory, args, node: XMLNode, warnings: List[str]) -> None:
        try:
            special = factory(*args)
        except ValueError as e:
            warnings.append(f"{node.role.value} node #{node.global_index} dropped: {e}")
            return
        if node.malformed:
            warnings.append(f"{node.role.value} node #{node.global_index} is malformed")
        parent.append(special)


class PandasAdapter(IntegrationAdapter):
    """Flattens a scaffold tree into a ``pandas.DataFrame``, one row per node."""

    COLUMNS = [
        "global_index",
        "local_index",
        "depth",
        "role",
        "tag",
        "raw",
        "malformed",
        "attribute_count",
        "parent_index",
    ]

    @property
    def metadata(self) -> AdapterMetadata:
        """Get adapter metadata."""
        return AdapterMetadata(
            name="pandas",
            version="1.0.0",
            adapter_type=AdapterType.DATA_FRAME,
            target_library="pandas",
            description="Conversion from ParseResult to a per-node pandas DataFrame"
        )

    def is_available(self) -> bool:
        """Check if pandas is available."""
        try:
            import pandas  # noqa: F401
            return True
        except ImportError:
            return False

    def to_target(self, parse_result: ParseResult) -> ConversionResult:
        """Convert ParseResult to a pandas DataFrame.

        Args:
            parse_result: Parsed document result

        Returns:
            ConversionResult containing the DataFrame, rows in document order
        """
        start_time = time.time()

        try:
            import pandas as pd

            if not parse_result.success:
                return self._create_error_result(
                    "ParseResult is not successful",
                    parse_result,
                    (time.time() - start_time) * 1000
                )

            rows = [
                {
                    "global_index": node.global_index,
                    "local_index": node.local_index,
                    "depth": depth,
                    "role": node.role.value,
                    "tag": node.tag,
                    "raw": node.raw,
                    "malformed": node.malformed is True,
                    "attribute_count": len(node.attributes or []),
                    "parent_index": parent.global_index if parent is not None else None,
                }
                for node, depth, parent in walk(parse_result.nodes)
            ]
            df = pd.DataFrame(rows, columns=self.COLUMNS)

            processing_time = (time.time() - start_time) * 1000
            return ConversionResult(
                success=True,
                converted_data=df,
                original_data=parse_result,
                conversion_time_ms=processing_time,
                metadata={
                    "dataframe_shape": df.shape,
                    "row_count": len(df),
                    "columns": list(df.columns),
                }
            )

        except Exception as e:
            processing_time = (time.time() - start_time) * 1000
            return self._create_error_result(
                f"Failed to convert to pandas DataFrame: {e}",
                parse_result,
                processing_time
            )


class AdapterRegistry:
    """Registry for managing integration adapters."""

    def __init__(self) -> None:
        """Initialize the adapter registry."""
        self._adapters: Dict[str, Type[IntegrationAdapter]] = {}
        self._lock = threading.RLock()

    def register(self, adapter_class: Type[IntegrationAdapter]) -> None:
        """Register an adapter class under its metadata name."""
        with self._lock:
            metadata = adapter_class().metadata
            self._adapters[metadata.name] = adapter_class

    def get_adapter(
        self,
        adapter_name: str,
        correlation_id: Optional[str] = None
    ) -> Optional[IntegrationAdapter]:
        """Get an adapter instance by name.

        Returns:
            Adapter instance if registered and available, None otherwise
        """
        with self._lock:
            adapter_class = self._adapters.get(adapter_name)
        if adapter_class is None:
            return None
        instance = adapter_class(correlation_id)
        return instance if instance.is_available() else None

    def list_available_adapters(self) -> List[AdapterMetadata]:
        """List metadata for every registered adapter whose library is installed."""
        with self._lock:
            classes = list(self._adapters.values())
        available = []
        for adapter_class in classes:
            instance = adapter_class()
            if instance.is_available():
                available.append(instance.metadata)
        return available


# Global adapter registry instance
_adapter_registry = AdapterRegistry()


def register_adapter(adapter_class: Type[IntegrationAdapter]) -> None:
    """Register an integration adapter globally."""
    _adapter_registry.register(adapter_class)


def get_adapter(
    adapter_name: str,
    correlation_id: Optional[str] = None
) -> Optional[IntegrationAdapter]:
    """Get a registered adapter instance, or None if unknown or unavailable."""
    return _adapter_registry.get_adapter(adapter_name, correlation_id)


def list_available_adapters() -> List[AdapterMetadata]:
    """List all available integration adapters."""
    return _adapter_registry.list_available_adapters()


register_adapter(LxmlAdapter)
register_adapter(PandasAdapter)
