"""Tree building engine for xml-scaffold.

Key Components:
    XMLTreeBuilder: Builds a Document from raw markup with diagnostics
    build: Plain function returning the top-level node list
    XMLNode: One node of the tree, with role, raw text and indexes
    Document: Container for the top-level sibling nodes
    ParseResult: Document plus diagnostics and performance metrics
"""

from xml_scaffold.tokenization import NodeRole, XMLAttribute

from .builder import ParseResult, XMLTreeBuilder, build
from .nodes import Document, XMLNode, is_malformed, iter_nodes, walk

__all__ = [
    "Document",
    "NodeRole",
    "ParseResult",
    "XMLAttribute",
    "XMLNode",
    "XMLTreeBuilder",
    "build",
    "is_malformed",
    "iter_nodes",
    "walk",
]
