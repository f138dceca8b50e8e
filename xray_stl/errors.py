"""
errors.py - Error kinds raised while opening and decoding STL scanner files.

Each error also derives from the closest built-in exception so that callers
who only know about ``ValueError`` / ``FileNotFoundError`` still catch it.
"""


class StlError(Exception):
    """Base class for every error raised by xray_stl."""


class InvalidArgumentError(StlError, ValueError):
    """Missing or empty byte source, or a path without the .stl extension."""


class NotFoundError(StlError, FileNotFoundError):
    """The referenced file does not exist."""


class FormatError(StlError, ValueError):
    """The byte source is too small for the header or for its pixel body."""


class UseAfterDisposeError(StlError, RuntimeError):
    """An operation was invoked on a reader that has already been closed."""
