"""xml-scaffold.

A lenient, never-throwing parser for XML-like markup. It turns any input
into a tree of typed nodes, keeps the exact source text of every node and
flags structural anomalies instead of failing on them.

Progressive API Disclosure:
- Level 1: Simple functions - parse(), tokenize(), render(), is_malformed()
- Level 2: Results with diagnostics - parse_string(), parse_file()
- Level 3: Configured parser - XMLScaffoldParser with ParserConfig
"""

__version__ = "0.1.0"
__author__ = "xml-scaffold Team"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2 and 3: Results and configured parser
from .api import XMLScaffoldParser, parse, parse_file, parse_string
from .render import render

# Configuration classes for advanced usage
from .shared.config import ParserConfig, RenderConfig, ScannerConfig, TreeConfig
from .tokenization import NodeRole, Token, XMLAttribute, tokenize

# Core result objects for all API levels
from .tree import Document, ParseResult, XMLNode, is_malformed

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "parse",
    "tokenize",
    "render",
    "is_malformed",

    # Level 2: Results with diagnostics
    "parse_string",
    "parse_file",

    # Level 3: Configured parser
    "XMLScaffoldParser",

    # Result objects and data structures
    "Document",
    "NodeRole",
    "ParseResult",
    "Token",
    "XMLAttribute",
    "XMLNode",

    # Configuration classes for advanced usage
    "ParserConfig",
    "RenderConfig",
    "ScannerConfig",
    "TreeConfig",
]
