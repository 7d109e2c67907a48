"""Flat tokenization built on the position-based scanner.

The tokenizer walks the whole input with :func:`scan` and returns the tokens
in source order without building any hierarchy. It is the cheap way to look
at what the scanner sees, and mirrors how the tree builder advances its
cursor.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from xml_scaffold.shared.config import ScannerConfig

from .scanner import Token, scan

logger = logging.getLogger(__name__)


@dataclass
class TokenizationResult:
    """Result of a flat tokenization pass."""

    tokens: List[Token] = field(default_factory=list)
    character_count: int = 0
    processing_time_ms: float = 0.0
    correlation_id: Optional[str] = None

    @property
    def token_count(self) -> int:
        """Get the total number of tokens."""
        return len(self.tokens)

    @property
    def malformed_count(self) -> int:
        """Number of tags that ran to end of input without a ``>``."""
        return sum(1 for token in self.tokens if token.malformed)

    @property
    def role_distribution(self) -> Dict[str, int]:
        """Count of tokens per role value."""
        return dict(Counter(token.role.value for token in self.tokens))


def iter_tokens(
    source: str,
    config: Optional[ScannerConfig] = None,
    keep_whitespace: bool = False
):
    """Yield scanner tokens for ``source`` in order.

    Args:
        source: Text to scan
        config: Optional scanner feature switches
        keep_whitespace: Also yield text runs that are only whitespace

    Yields:
        Token objects; every token advances the cursor by at least one character
    """
    position = 0
    length = len(source)
    while position < length:
        token = scan(source, position, config)
        position = token.end
        if token.is_whitespace and not keep_whitespace:
            continue
        yield token


def tokenize(source: str, config: Optional[ScannerConfig] = None) -> List[Token]:
    """Scan ``source`` from start to end and return the non-whitespace tokens."""
    if not source:
        return []
    return list(iter_tokens(source, config))


class XMLTokenizer:
    """Reusable flat tokenizer with logging and timing."""

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        correlation_id: Optional[str] = None,
        keep_whitespace: bool = False
    ) -> None:
        """Initialize the tokenizer.

        Args:
            config: Scanner feature switches, defaults to all features on
            correlation_id: Optional correlation ID for tracking requests
            keep_whitespace: Keep whitespace-only text tokens in the output
        """
        self.config = config or ScannerConfig()
        self.correlation_id = correlation_id
        self.keep_whitespace = keep_whitespace

    def tokenize(self, source: str) -> TokenizationResult:
        """Tokenize ``source`` into a :class:`TokenizationResult`."""
        start_time = time.time()
        text = source or ""

        logger.debug(
            "Starting tokenization",
            extra={
                "component": "xml_tokenizer",
                "correlation_id": self.correlation_id,
                "char_count": len(text),
            }
        )

        tokens = list(iter_tokens(text, self.config, self.keep_whitespace))
        result = TokenizationResult(
            tokens=tokens,
            character_count=len(text),
            processing_time_ms=(time.time() - start_time) * 1000,
            correlation_id=self.correlation_id,
        )

        logger.debug(
            "Tokenization completed",
            extra={
                "component": "xml_tokenizer",
                "correlation_id": self.correlation_id,
                "token_count": result.token_count,
                "malformed_count": result.malformed_count,
                "processing_time_ms": result.processing_time_ms,
            }
        )
        return result
