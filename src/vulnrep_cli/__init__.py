# vulnrep_cli/__init__.py
"""
vulnrep CLI package: conversion between CVRF 1.2 (XML) and CSAF (JSON)
vulnerability reports.
"""

from .report import (
    ConversionConfig,
    DocumentFormat,
    Report,
    convert,
    decode,
    encode,
    encode_bytes,
)

__all__ = ['ConversionConfig', 'DocumentFormat', 'Report', 'convert', 'decode', 'encode', 'encode_bytes']
