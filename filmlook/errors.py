"""
Exceptions for Film Look Pipeline

This module contains the error taxonomy shared by the LUT loader, the color
transform backends and the metadata-preserving encoder.
"""


class FilmLookError(Exception):
    """Base class for all pipeline failures."""
    pass


class ParseError(FilmLookError):
    """Raised when a LUT resource is missing or its declaration is malformed."""
    pass


class RenderError(FilmLookError):
    """Raised when the color transform backend is unavailable or fails."""
    pass


class EncodeError(FilmLookError):
    """Raised when the original container is unreadable or serialization fails."""
    pass
