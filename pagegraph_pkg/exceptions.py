"""Exceptions raised by the PageGraph build pipeline."""


class PageGraphError(Exception):
    """Base exception for all PageGraph errors."""


class ContentLoadError(PageGraphError):
    """Raised when the raw content of a node cannot be loaded."""


class QueryError(PageGraphError):
    """Raised when a graph query reports errors and the build cannot continue."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class SvgOptimizeError(PageGraphError):
    """Raised when an SVG document cannot be parsed or optimized."""


class SchemaError(PageGraphError):
    """Raised for malformed schema type definitions."""
