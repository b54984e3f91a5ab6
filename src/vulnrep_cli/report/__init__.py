# vulnrep_cli/report/__init__.py

from .config import DEFAULT_CONFIG, ConversionConfig, DocumentFormat
from .conversion import convert, convert_bytes, decode, encode, encode_bytes
from .fidelity import json_losses, xml_losses
from .model import Report

__all__ = [
    "ConversionConfig",
    "DEFAULT_CONFIG",
    "DocumentFormat",
    "Report",
    "convert",
    "convert_bytes",
    "decode",
    "encode",
    "encode_bytes",
    "json_losses",
    "xml_losses",
]
