"""Rendering of scaffold trees to HTML."""

from .html import HTMLRenderer, render

__all__ = ["HTMLRenderer", "render"]
