"""Data models."""

from epub2md.models.epub import (
    BookMetadata,
    ManifestItem,
    ParsedEpub,
    Section,
    SpineItem,
    TOCEntry,
)
from epub2md.models.output import ConversionResult

__all__ = [
    # EPUB models
    "TOCEntry",
    "ManifestItem",
    "SpineItem",
    "Section",
    "BookMetadata",
    "ParsedEpub",
    # Output models
    "ConversionResult",
]
