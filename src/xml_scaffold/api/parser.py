"""Core parser API with progressive disclosure.

Simple module-level functions cover the common cases: :func:`parse` returns
the bare :class:`Document`, :func:`parse_string` and :func:`parse_file`
return a :class:`ParseResult` with diagnostics. :class:`XMLScaffoldParser`
adds reusable configuration and usage statistics. None of them raise for bad
markup or unreadable input.
"""

import threading
import time
from pathlib import Path
from typing import Any, BinaryIO, Dict, Iterable, Optional, TextIO, Union

from xml_scaffold.render import HTMLRenderer
from xml_scaffold.shared import DiagnosticSeverity, ParserConfig, get_logger
from xml_scaffold.tokenization import TokenizationResult, XMLTokenizer
from xml_scaffold.tree import Document, ParseResult, XMLNode, XMLTreeBuilder

from .encoding import EncodingDetector

# Type definitions for input data
InputType = Union[str, bytes, BinaryIO, TextIO, Path]
RenderInput = Union[str, ParseResult, Document, Iterable[XMLNode]]

MS_PER_SECOND = 1000


def parse(source: Union[str, bytes], config: Optional[ParserConfig] = None) -> Document:
    """Parse markup into a :class:`Document`.

    Args:
        source: Markup text; bytes are decoded with encoding detection
        config: Optional parser configuration

    Returns:
        Document whose ``children`` are the top-level nodes

    Examples:
        >>> doc = parse('<a/></orphan><b/>')
        >>> [node.role.value for node in doc.children]
        ['selfTag', 'closeTag', 'selfTag']
    """
    return parse_string(source, config=config).document


def parse_string(
    xml_string: Union[str, bytes],
    correlation_id: Optional[str] = None,
    config: Optional[ParserConfig] = None
) -> ParseResult:
    """Parse markup from a string and return the full result.

    Args:
        xml_string: Markup text (bytes are decoded with encoding detection)
        correlation_id: Optional correlation ID for request tracking
        config: Optional parser configuration

    Returns:
        ParseResult containing document, diagnostics and metrics
    """
    start_time = time.time()
    config = config or ParserConfig()
    correlation_id = correlation_id or config.correlation_id
    logger = get_logger(__name__, correlation_id, "parse_string")

    try:
        if isinstance(xml_string, bytes):
            text, encoding = EncodingDetector().decode(xml_string)
            logger.debug(
                "Decoded byte input",
                extra={"encoding": encoding.encoding, "method": encoding.method.value}
            )
        elif xml_string is None:
            text = ""
        else:
            text = str(xml_string)

        builder = XMLTreeBuilder(
            config=config.tree,
            correlation_id=correlation_id,
            scanner_config=config.scanner,
        )
        return builder.build(text)

    except Exception as e:
        # Never-fail guarantee
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception(
            "String parse failed",
            extra={"processing_time_ms": processing_time}
        )
        return _create_error_result(f"String parse failed: {e}", correlation_id, processing_time)


def parse_file(
    file_path: Union[str, Path],
    encoding: Optional[str] = None,
    correlation_id: Optional[str] = None,
    config: Optional[ParserConfig] = None
) -> ParseResult:
    """Parse markup from a file with encoding detection.

    Args:
        file_path: Path to the file (string or Path object)
        encoding: Optional encoding override (auto-detected if not provided)
        correlation_id: Optional correlation ID for request tracking
        config: Optional parser configuration

    Returns:
        ParseResult; missing or unreadable files give ``success=False``

    Examples:
        >>> result = parse_file('missing.xml')
        >>> result.success
        False
        >>> 'not found' in result.diagnostics[0].message.lower()
        True
    """
    start_time = time.time()
    logger = get_logger(__name__, correlation_id, "parse_file")
    path_obj = Path(file_path)

    logger.info(
        "Starting file parse operation",
        extra={"file_path": str(path_obj), "encoding_override": encoding}
    )

    error_message = None
    if not path_obj.exists():
        error_message = f"File not found: {path_obj}"
    elif not path_obj.is_file():
        error_message = f"Path is not a file: {path_obj}"
    if error_message:
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        return _create_error_result(error_message, correlation_id, processing_time)

    try:
        raw_data = path_obj.read_bytes()
    except PermissionError:
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        return _create_error_result(
            f"Permission denied accessing file: {path_obj}",
            correlation_id,
            processing_time
        )
    except OSError as e:
        processing_time = (time.time() - start_time) * MS_PER_SECOND
        logger.exception("File read failed", extra={"file_path": str(path_obj)})
        return _create_error_result(
            f"File read failed: {e}", correlation_id, processing_time
        )

    text, detected = EncodingDetector().decode(raw_data, encoding)
    result = parse_string(text, correlation_id=correlation_id, config=config)
    result.add_diagnostic(
        DiagnosticSeverity.INFO,
        f"File parsed with encoding: {detected.encoding}",
        "file_parser",
        details={
            "file_path": str(path_obj),
            "encoding": detected.encoding,
            "detection_method": detected.method.value,
            "issues": list(detected.issues),
        }
    )
    return result


def _create_error_result(
    error_message: str,
    correlation_id: Optional[str],
    processing_time: float
) -> ParseResult:
    """Create error result following never-fail philosophy."""
    result = ParseResult(correlation_id=correlation_id)
    result.success = False
    result.performance.processing_time_ms = processing_time
    result.add_diagnostic(
        DiagnosticSeverity.CRITICAL,
        error_message,
        "api_parser"
    )
    return result


class XMLScaffoldParser:
    """Reusable parser with configuration and usage statistics.

    Safe to share between threads: each parse keeps its own state and the
    statistics counters are lock-protected.

    Examples:
        >>> parser = XMLScaffoldParser(ParserConfig.shallow(max_depth=16))
        >>> result = parser.parse('<root><item>value</item></root>')
        >>> result.is_well_formed
        True
        >>> parser.render(result)
        '<div data-tag="root"><div data-tag="item">value</div></div>'
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        correlation_id: Optional[str] = None
    ) -> None:
        """Initialize parser.

        Args:
            config: Parser configuration (defaults to ``ParserConfig.default()``)
            correlation_id: Optional correlation ID for request tracking
        """
        self.config = config or ParserConfig.default()
        self.correlation_id = correlation_id or self.config.correlation_id
        self.logger = get_logger(__name__, self.correlation_id, "xml_scaffold_parser")

        self._lock = threading.Lock()
        self._parse_count = 0
        self._successful_parses = 0
        self._malformed_documents = 0
        self._total_processing_time = 0.0

        self.logger.info(
            "XMLScaffoldParser initialized",
            extra={"config_name": self.config.name}
        )

    def parse(
        self,
        input_data: InputType,
        correlation_id_override: Optional[str] = None
    ) -> ParseResult:
        """Parse markup from a string, bytes, Path or file-like object.

        Args:
            input_data: Markup source
            correlation_id_override: Optional correlation ID for this parse only

        Returns:
            ParseResult with document, diagnostics and metrics
        """
        start_time = time.time()
        correlation_id = correlation_id_override or self.correlation_id

        try:
            if isinstance(input_data, Path):
                result = parse_file(input_data, correlation_id=correlation_id, config=self.config)
            elif hasattr(input_data, "read"):
                result = parse_string(
                    input_data.read(), correlation_id=correlation_id, config=self.config
                )
            else:
                result = parse_string(input_data, correlation_id=correlation_id, config=self.config)
        except Exception as e:
            processing_time = (time.time() - start_time) * MS_PER_SECOND
            self.logger.exception(
                "Configured parse failed",
                extra={"processing_time_ms": processing_time}
            )
            result = _create_error_result(
                f"Configured parse failed: {e}", correlation_id, processing_time
            )

        self._record(result, (time.time() - start_time) * MS_PER_SECOND)
        return result

    def tokenize(self, source: str) -> TokenizationResult:
        """Flat token view of ``source`` using this parser's scanner settings."""
        tokenizer = XMLTokenizer(self.config.scanner, self.correlation_id)
        return tokenizer.tokenize(source)

    def render(self, source: RenderInput) -> str:
        """Render markup text, a result, a document or a node list to HTML."""
        if isinstance(source, str):
            nodes = self.parse(source).nodes
        elif isinstance(source, ParseResult):
            nodes = source.nodes
        elif isinstance(source, Document):
            nodes = source.children
        else:
            nodes = list(source)
        return HTMLRenderer(self.config.render, self.correlation_id).render(nodes)

    def reconfigure(self, config: Optional[ParserConfig] = None, **overrides: Any) -> None:
        """Replace the configuration, or derive a new one from overrides.

        Args:
            config: New configuration
            **overrides: ``component__field`` overrides applied on top
        """
        new_config = config or self.config
        if overrides:
            new_config = new_config.override(**overrides)
        self.config = new_config

        self.logger.info(
            "Parser reconfigured",
            extra={
                "config_name": self.config.name,
                "overrides": sorted(overrides),
            }
        )

    def _record(self, result: ParseResult, processing_time: float) -> None:
        with self._lock:
            self._parse_count += 1
            self._total_processing_time += processing_time
            if result.success:
                self._successful_parses += 1
            if result.malformed_count:
                self._malformed_documents += 1

    @property
    def statistics(self) -> Dict[str, Any]:
        """Get parser usage statistics."""
        with self._lock:
            count = self._parse_count
            return {
                "total_parses": count,
                "successful_parses": self._successful_parses,
                "malformed_documents": self._malformed_documents,
                "success_rate": self._successful_parses / count if count else 0.0,
                "total_processing_time_ms": self._total_processing_time,
                "average_processing_time_ms": (
                    self._total_processing_time / count if count else 0.0
                ),
                "correlation_id": self.correlation_id,
            }

    def reset_statistics(self) -> None:
        """Reset parser usage statistics."""
        with self._lock:
            self._parse_count = 0
            self._successful_parses = 0
            self._malformed_documents = 0
            self._total_processing_time = 0.0

        self.logger.info("Parser statistics reset")
