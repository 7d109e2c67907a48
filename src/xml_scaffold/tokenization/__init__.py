"""Scanning layer for xml-scaffold.

Key Components:
    scan: Classify the lexical unit at a cursor position
    tokenize: Flat, whitespace-eliding walk over a whole input
    XMLTokenizer: Reusable tokenizer with logging and timing
    NodeRole: Role of every token and node
    XMLAttribute: Name/value pair parsed from tag text
"""

from .scanner import (
    ATTRIBUTE_PATTERN,
    NodeRole,
    SourceLocator,
    Token,
    TokenPosition,
    XMLAttribute,
    find_tag_end,
    parse_attributes,
    scan,
)
from .tokenizer import TokenizationResult, XMLTokenizer, iter_tokens, tokenize

__all__ = [
    "ATTRIBUTE_PATTERN",
    "NodeRole",
    "SourceLocator",
    "Token",
    "TokenPosition",
    "TokenizationResult",
    "XMLAttribute",
    "XMLTokenizer",
    "find_tag_end",
    "iter_tokens",
    "parse_attributes",
    "scan",
    "tokenize",
]
