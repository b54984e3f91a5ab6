"""
Conversion configuration.

A ConversionConfig is an immutable value passed explicitly into every decode
and encode call. The core keeps no module level settings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DocumentFormat(Enum):
    """Document formats the core can decode and encode."""
    XML = "xml"
    JSON = "json"

    @classmethod
    def from_name(cls, name: str) -> "DocumentFormat":
        return cls(name.strip().lower())


@dataclass(frozen=True)
class ConversionConfig:
    """
    Options for a single conversion.

    Attributes:
        json_indent: Indentation for JSON output; None writes compact JSON.
        json_ensure_ascii: Escape non-ASCII characters in JSON output.
        xml_pretty_print: Indent XML output.
        xml_declaration: Write the <?xml ...?> declaration.
        encoding: Character encoding of XML output. JSON is always UTF-8.
        preserve_fidelity: Record XML structural metadata while decoding and
            replay it while encoding.
        default_lang: Language preferred when an XML document carries several
            language variants of the same text and declares no document
            language of its own.
    """
    json_indent: Optional[int] = 2
    json_ensure_ascii: bool = False
    xml_pretty_print: bool = True
    xml_declaration: bool = True
    encoding: str = "UTF-8"
    preserve_fidelity: bool = True
    default_lang: str = "en"


DEFAULT_CONFIG = ConversionConfig()
