# vulnrep_cli/exceptions.py

from typing import Any, Dict, Optional


class VulnrepError(Exception):
    """
    Base exception for all vulnrep-cli errors.

    Carries a human readable message, an optional machine readable code and a
    details dictionary with diagnostic context (document location, offending
    identifier, ...).
    """

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        location = self.details.get("location")
        if location:
            return f"{self.message} (at {location})"
        return self.message


class ParseError(VulnrepError):
    """Malformed syntax or a missing required element in a source document."""
    pass


class ValidationError(VulnrepError):
    """Well-formed input that violates a report invariant, e.g. a dangling product id."""
    pass


class EncodeError(VulnrepError):
    """A report model that cannot be serialized, e.g. a required field is absent."""
    pass


class FileSystemError(VulnrepError):
    """Input or output file could not be opened, written or closed."""
    pass


class ConfigurationError(VulnrepError):
    """Invalid command-line options or environment configuration."""
    pass
