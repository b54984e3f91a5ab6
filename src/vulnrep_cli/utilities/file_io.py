"""
File handling for the command-line layer.

Format detection from file extensions and scoped acquisition of the output
stream live here, outside the conversion core.
"""

import os
import sys
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from ..exceptions import FileSystemError, ValidationError
from ..report import DocumentFormat

logger = logging.getLogger("vulnrep-cli")

EXTENSION_FORMATS = {
    ".xml": DocumentFormat.XML,
    ".json": DocumentFormat.JSON,
}


def detect_format(path: str) -> DocumentFormat:
    """
    Maps a file name to a document format by its extension.

    Args:
        path: File name or path

    Returns:
        DocumentFormat: XML for '.xml', JSON for '.json' (case insensitive)

    Raises:
        ValidationError: If the extension is neither
    """
    ext = Path(path).suffix.lower()
    fmt = EXTENSION_FORMATS.get(ext)
    if fmt is None:
        raise ValidationError(
            f"Unrecognized file extension '{ext}' for '{path}'. Supported extensions: {', '.join(EXTENSION_FORMATS)}",
            details={"path": path},
        )
    return fmt


def read_document(path: str) -> bytes:
    """
    Reads a whole input document.

    Raises:
        FileSystemError: If the file is missing or unreadable
    """
    if not os.path.exists(path):
        raise FileSystemError(f"Input file does not exist: {path}", details={"path": path})
    if not os.path.isfile(path):
        raise FileSystemError(f"Input path must be a file: {path}", details={"path": path})
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise FileSystemError(f"Unable to read input file '{path}': {e}", details={"path": path}) from e
    logger.debug(f"Read {len(data)} bytes from {path}")
    return data


@contextmanager
def scoped_output(path: Optional[str]) -> Iterator[BinaryIO]:
    """
    Opens the output destination for the duration of a block.

    With no path the block writes to stdout, which is flushed but never
    closed. A file is always closed on exit. If the block raised, that error
    is the one propagated: a failure while closing is only logged, and the
    partially written file is removed. If the block succeeded, a failure while
    closing is raised as FileSystemError.

    Args:
        path: Output file path, or None for stdout

    Yields:
        BinaryIO: Writable binary stream

    Raises:
        FileSystemError: If the file cannot be created or closed
    """
    if path is None:
        stream = sys.stdout.buffer
        yield stream
        stream.flush()
        return

    try:
        stream = open(path, "wb")
    except OSError as e:
        raise FileSystemError(f"Unable to open output file '{path}': {e}", details={"path": path}) from e

    try:
        yield stream
    except BaseException:
        try:
            stream.close()
        except OSError as close_error:
            logger.debug(f"Ignoring close error on '{path}' after an earlier failure: {close_error}")
        _remove_partial(path)
        raise

    try:
        stream.close()
    except OSError as e:
        _remove_partial(path)
        raise FileSystemError(f"Unable to close output file '{path}': {e}", details={"path": path}) from e
    logger.debug(f"Closed output file {path}")


def _remove_partial(path: str) -> None:
    try:
        os.remove(path)
        logger.debug(f"Removed partial output file {path}")
    except OSError as e:
        logger.warning(f"Could not remove partial output file '{path}': {e}")
