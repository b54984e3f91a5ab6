"""
Utilities package for the vulnrep CLI.

This package contains error handling and the file handling that sits between
the command line and the conversion core.
"""

from .error_handling import format_and_print_error, handler_error_wrapper
from .file_io import detect_format, read_document, scoped_output

__all__ = [
    # Error handling
    'format_and_print_error',
    'handler_error_wrapper',
    # File handling
    'detect_format',
    'read_document',
    'scoped_output',
]
