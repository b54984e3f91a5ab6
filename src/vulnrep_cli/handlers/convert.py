# vulnrep_cli/handlers/convert.py

import io
import sys
import logging
import argparse
from pathlib import Path

from ..report import ConversionConfig, DocumentFormat, decode, encode
from ..utilities.error_handling import handler_error_wrapper
from ..utilities.file_io import EXTENSION_FORMATS, detect_format, read_document, scoped_output

logger = logging.getLogger("vulnrep-cli")


@handler_error_wrapper
def handle_convert(params: argparse.Namespace) -> bool:
    """
    Handler for the 'convert' command. Decodes the input report and encodes it
    in the requested format.

    Args:
        params: Command line parameters

    Returns:
        bool: True if the conversion was successful
    """
    print(f"\n--- Running {params.command.upper()} Command ---", file=sys.stderr)

    source_fmt = detect_format(params.input)
    target_fmt = _target_format(params)
    config = build_config(params)

    data = read_document(params.input)
    report = decode(source_fmt, io.BytesIO(data), config)
    logger.info(f"Decoded {source_fmt.value.upper()} report '{report.document.tracking.id}' from {params.input}")

    with scoped_output(params.output) as stream:
        encode(target_fmt, report, stream, config)

    destination = params.output or "stdout"
    logger.info(f"Wrote {target_fmt.value.upper()} report to {destination}")
    print(f"\nConverted {params.input} ({source_fmt.value.upper()}) -> {destination} ({target_fmt.value.upper()})",
          file=sys.stderr)
    return True


def build_config(params: argparse.Namespace) -> ConversionConfig:
    """Builds the conversion options from the command line."""
    indent = getattr(params, "indent", 2)
    return ConversionConfig(
        json_indent=indent if indent > 0 else None,
        preserve_fidelity=not getattr(params, "no_fidelity", False),
    )


def _target_format(params: argparse.Namespace) -> DocumentFormat:
    if params.to:
        fmt = DocumentFormat.from_name(params.to)
        if params.output:
            ext_fmt = EXTENSION_FORMATS.get(Path(params.output).suffix.lower())
            if ext_fmt is not None and ext_fmt != fmt:
                logger.warning(f"Writing {fmt.value.upper()} to '{params.output}' despite its extension")
        return fmt
    if params.output:
        fmt = EXTENSION_FORMATS.get(Path(params.output).suffix.lower())
        if fmt is None:
            logger.warning(f"Output '{params.output}' has no .xml or .json extension; writing JSON")
            return DocumentFormat.JSON
        return fmt
    return DocumentFormat.JSON
