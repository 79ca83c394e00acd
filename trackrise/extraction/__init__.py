"""Extraction engine package: raw text to transaction drafts."""

from trackrise.extraction.engine import (
    TextSource,
    extract,
    extract_from_free_text,
    extract_from_receipt,
)

__all__ = [
    "TextSource",
    "extract",
    "extract_from_free_text",
    "extract_from_receipt",
]
