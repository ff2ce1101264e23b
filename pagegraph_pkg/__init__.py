"""
PageGraph - build-time content graph and route builder for static sites.

PageGraph loads a content directory (markdown, JSON and SVG files) into an
in-memory node graph, derives slugs, lifts markdown out of JSON fields,
inlines optimized SVGs, and synthesizes paginated routes that are rendered
through Jinja2 templates.
"""

__version__ = "1.0.0"

from .core import PageGraph
from .graph import NodeGraph, QueryResult
from .processor import NodeProcessor
from .routes import RouteSynthesizer

__all__ = ['PageGraph', 'NodeGraph', 'QueryResult', 'NodeProcessor', 'RouteSynthesizer']
