"""
Error handling utilities for the vulnrep CLI.

This module contains functions for standardized error handling and formatting
across all CLI handlers.
"""

import sys
import logging
import argparse
import functools
from typing import Callable

from ..exceptions import (
    VulnrepError,
    ParseError,
    ValidationError,
    EncodeError,
    FileSystemError,
    ConfigurationError,
)

logger = logging.getLogger("vulnrep-cli")


def _say(message: str = "") -> None:
    # stdout may carry the converted document
    print(message, file=sys.stderr)


def format_and_print_error(error: Exception, handler_name: str, params: argparse.Namespace):
    """
    Formats and prints a standardized error message for CLI users.

    Args:
        error: The exception that occurred
        handler_name: Name of the handler where the error occurred
        params: Command line parameters
    """
    command = getattr(params, 'command', 'unknown')

    error_message = getattr(error, 'message', str(error))
    error_code = getattr(error, 'code', None)
    error_details = getattr(error, 'details', {})
    location = error_details.get('location') if error_details else None

    if isinstance(error, ParseError):
        _say(f"\n❌ The input document could not be parsed")
        _say(f"   {error_message}")
        if location:
            _say(f"   at {location}")
        _say(f"\n💡 Please check:")
        _say(f"   • The file is a complete CVRF 1.2 XML or CSAF JSON document")
        _say(f"   • The file extension matches its content: {getattr(params, 'input', '<not specified>')}")

    elif isinstance(error, ValidationError):
        _say(f"\n❌ Invalid input or configuration")
        _say(f"   {error_message}")
        if location:
            _say(f"   at {location}")
        if error_details.get('product_id'):
            _say(f"\n💡 Define product '{error_details['product_id']}' in the product tree or remove the reference")
        else:
            _say(f"\n💡 Please check your command-line arguments and input files")

    elif isinstance(error, EncodeError):
        _say(f"\n❌ The report could not be written as {str(getattr(params, 'to', None) or 'the requested format').upper()}")
        _say(f"   {error_message}")
        if location:
            _say(f"   at {location}")

    elif isinstance(error, FileSystemError):
        _say(f"\n❌ File system error")
        _say(f"   {error_message}")
        _say(f"\n💡 Please check:")
        _say(f"   • File permissions are correct")
        _say(f"   • All specified paths exist")
        if getattr(params, 'input', None):
            _say(f"   • Input specified: {params.input}")
        if getattr(params, 'output', None):
            _say(f"   • Output specified: {params.output}")

    elif isinstance(error, ConfigurationError):
        _say(f"\n❌ Configuration error")
        _say(f"   {error_message}")
        _say(f"\n💡 Please check your command-line arguments and the VULNREP_* environment variables")

    else:
        _say(f"\n❌ Error executing '{command}' command: {error_message}")

    if error_code:
        _say(f"\nError code: {error_code}")

    if getattr(params, 'log', 'INFO') == 'DEBUG' and error_details:
        _say("\nDetailed error information:")
        for key, value in error_details.items():
            _say(f"  • {key}: {value}")
    else:
        _say(f"\nFor more details, run with --log DEBUG for verbose output")


def handler_error_wrapper(handler_func: Callable) -> Callable:
    """
    A decorator that wraps handler functions with standardized error handling.

    The wrapper catches exceptions, prints a user-friendly error message, and
    re-raises the exception for exit code handling in main().

    Args:
        handler_func: The handler function to wrap

    Returns:
        The wrapped handler function with error handling

    Example:
        @handler_error_wrapper
        def handle_convert(params):
            # Implementation without try/except blocks
            ...
    """
    @functools.wraps(handler_func)
    def wrapper(params):
        try:
            handler_name = handler_func.__name__
            command_name = params.command if hasattr(params, 'command') else 'unknown'
            logger.debug(f"Starting {handler_name} for command '{command_name}'")

            return handler_func(params)

        except VulnrepError as e:
            logger.debug(f"Expected error in {handler_func.__name__}: {type(e).__name__}: {e}")
            format_and_print_error(e, handler_func.__name__, params)
            raise

        except Exception as e:
            logger.error(f"Unexpected error in {handler_func.__name__}: {e}", exc_info=True)

            cli_error = VulnrepError(
                f"Failed to execute {params.command if hasattr(params, 'command') else 'command'}: {str(e)}",
                details={"error": str(e), "handler": handler_func.__name__}
            )

            format_and_print_error(cli_error, handler_func.__name__, params)

            raise cli_error from e

    return wrapper
