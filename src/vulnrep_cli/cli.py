# vulnrep_cli/cli.py

import argparse
import os
import logging
from argparse import RawTextHelpFormatter
from typing import List, Optional

from .exceptions import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _env_log_level() -> str:
    level = os.getenv("VULNREP_LOG", "INFO").upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"VULNREP_LOG must be one of {', '.join(LOG_LEVELS)}, got '{level}'",
            details={"variable": "VULNREP_LOG"},
        )
    return level


def _env_json_indent() -> int:
    raw = os.getenv("VULNREP_JSON_INDENT")
    if raw is None or raw.strip() == "":
        return 2
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"VULNREP_JSON_INDENT must be an integer, got '{raw}'",
            details={"variable": "VULNREP_JSON_INDENT"},
        ) from None


# --- Main Parsing Function ---
def parse_cmdline_args(argv: Optional[List[str]] = None):
    """
    Parse command line arguments.

    Args:
        argv: Argument list; sys.argv[1:] when omitted

    Returns:
        argparse.Namespace: Parsed command line arguments

    Raises:
        ConfigurationError: If a VULNREP_* environment variable is invalid
        ValidationError: If arguments are missing or invalid
    """
    parser = argparse.ArgumentParser(
        prog="vulnrep-cli",
        description="vulnrep CLI - Convert vulnerability reports between CVRF 1.2 (XML) and CSAF (JSON).",
        formatter_class=RawTextHelpFormatter,
        epilog="""
Environment Variables:
  VULNREP_LOG          : Default logging level (DEBUG, INFO, WARNING, ERROR)
  VULNREP_JSON_INDENT  : Default JSON indentation (0 writes compact JSON)

The input format is taken from the input file extension (.xml or .json).

Example Usage:
  # Convert a CVRF document to CSAF JSON on stdout
  vulnrep-cli convert --input advisory.xml

  # Convert CSAF JSON to CVRF XML
  vulnrep-cli convert --input advisory.json --output advisory.xml

  # Re-encode a CVRF document without replaying its original layout
  vulnrep-cli convert --input advisory.xml --output clean.xml --no-fidelity

  # Check a document and list the fields a CVRF encoding would drop
  vulnrep-cli validate --input advisory.json
"""
    )

    # --- Global Arguments (apply to all subcommands) ---
    global_args = parser.add_argument_group("Global Arguments")
    global_args.add_argument(
        "--log",
        help="Logging level (Default: INFO). Overrides VULNREP_LOG env var.",
        choices=LOG_LEVELS,
        type=str.upper,
        default=_env_log_level(),
    )

    # --- Subparsers ---
    subparsers = parser.add_subparsers(dest='command', help='Available commands', required=True, metavar='COMMAND')

    # --- 'convert' Subcommand ---
    convert_parser = subparsers.add_parser(
        'convert',
        help='Convert a report between CVRF XML and CSAF JSON.',
        description='Decode a CVRF XML or CSAF JSON report and encode it in either format.',
        formatter_class=RawTextHelpFormatter
    )
    convert_parser.add_argument("--input", help="Report to convert (.xml or .json).", required=True, metavar="PATH")
    convert_parser.add_argument("--output", help="Destination file. Writes to stdout when omitted.", metavar="PATH")
    convert_parser.add_argument(
        "--to",
        help="Output format. Defaults to the output file extension, else json.",
        choices=["xml", "json"],
        type=str.lower,
    )
    output_args = convert_parser.add_argument_group("Output Options")
    output_args.add_argument(
        "--indent",
        help="JSON indentation; 0 writes compact JSON (Default: 2). Overrides VULNREP_JSON_INDENT env var.",
        type=int,
        default=_env_json_indent(),
        metavar="N",
    )
    output_args.add_argument(
        "--no-fidelity",
        help="Do not record or replay the XML layout (prefixes, attribute order, comments, CDATA).",
        action="store_true",
        default=False,
    )

    # --- 'validate' Subcommand ---
    validate_parser = subparsers.add_parser(
        'validate',
        help='Decode a report and print a summary.',
        description='Decode a CVRF XML or CSAF JSON report, check its cross references and '
                    'list the fields that a CVRF encoding would drop.',
        formatter_class=RawTextHelpFormatter
    )
    validate_parser.add_argument("--input", help="Report to check (.xml or .json).", required=True, metavar="PATH")

    args = parser.parse_args(argv)
    validate_parsed_args(args)
    return args


def validate_parsed_args(args: argparse.Namespace) -> None:
    """
    Checks argument combinations argparse cannot express.

    Raises:
        ValidationError: If an argument value is invalid
    """
    if not args.input or not args.input.strip():
        raise ValidationError("An input file is required")

    if args.command == "convert":
        if args.indent < 0:
            raise ValidationError(f"--indent must not be negative, got {args.indent}")
        if args.output and os.path.abspath(args.output) == os.path.abspath(args.input):
            raise ValidationError("Output file must differ from the input file",
                                  details={"path": args.output})
