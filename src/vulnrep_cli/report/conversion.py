"""
Format-neutral entry points of the conversion core.

The caller always names the format; nothing here looks at file names or
sniffs content.
"""

import io
import logging
from typing import BinaryIO, Callable, Dict, Optional

from .config import DEFAULT_CONFIG, ConversionConfig, DocumentFormat
from .json_decoder import decode_json
from .json_encoder import encode_json_bytes
from .model import Report
from .xml_decoder import decode_xml
from .xml_encoder import encode_xml_bytes

logger = logging.getLogger(__name__)

_DECODERS: Dict[DocumentFormat, Callable[[BinaryIO, Optional[ConversionConfig]], Report]] = {
    DocumentFormat.XML: decode_xml,
    DocumentFormat.JSON: decode_json,
}

_ENCODERS: Dict[DocumentFormat, Callable[[Report, Optional[ConversionConfig]], bytes]] = {
    DocumentFormat.XML: encode_xml_bytes,
    DocumentFormat.JSON: encode_json_bytes,
}


def decode(fmt: DocumentFormat, stream: BinaryIO, config: Optional[ConversionConfig] = None) -> Report:
    """
    Decode one complete document of the given format.

    Args:
        fmt: Format of the document in the stream
        stream: Readable binary stream
        config: Conversion options (defaults apply when omitted)

    Returns:
        Report: The decoded and validated report

    Raises:
        ParseError: If the document is malformed or misses required content
        ValidationError: If the document violates a cross-reference invariant
    """
    config = config or DEFAULT_CONFIG
    logger.debug(f"Decoding {fmt.value.upper()} document")
    return _DECODERS[fmt](stream, config)


def encode_bytes(fmt: DocumentFormat, report: Report, config: Optional[ConversionConfig] = None) -> bytes:
    """Encode a report in the given format and return the complete document."""
    config = config or DEFAULT_CONFIG
    logger.debug(f"Encoding report '{report.document.tracking.id}' as {fmt.value.upper()}")
    return _ENCODERS[fmt](report, config)


def encode(fmt: DocumentFormat, report: Report, stream: BinaryIO, config: Optional[ConversionConfig] = None) -> None:
    """
    Encode a report in the given format and write it to a stream.

    Nothing is written if encoding fails.

    Raises:
        EncodeError: If the report misses a required field or cannot be serialized
        ValidationError: If the report violates a cross-reference invariant
    """
    stream.write(encode_bytes(fmt, report, config))


def convert(source_fmt: DocumentFormat, source: BinaryIO, target_fmt: DocumentFormat,
            destination: BinaryIO, config: Optional[ConversionConfig] = None) -> Report:
    """
    Decode a document and re-encode it in the target format.

    Returns:
        Report: The intermediate report
    """
    report = decode(source_fmt, source, config)
    encode(target_fmt, report, destination, config)
    return report


def convert_bytes(source_fmt: DocumentFormat, data: bytes, target_fmt: DocumentFormat,
                  config: Optional[ConversionConfig] = None) -> bytes:
    """Convenience wrapper around convert() for in-memory documents."""
    destination = io.BytesIO()
    convert(source_fmt, io.BytesIO(data), target_fmt, destination, config)
    return destination.getvalue()
