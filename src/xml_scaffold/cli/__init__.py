"""Command-line interface for xml-scaffold.

Parsing, token dumps, HTML rendering and malformed-markup checks for files.
"""

from .main import main

__all__ = ["main"]
