"""
Extraction — raw bytes to plain text plus structural metadata.

Public surface
--------------
- :func:`extract` — resolve the file type and run the matching extractor.
- :func:`resolve_file_type` — MIME type / extension to :class:`FileType`.
- :class:`BaseExtractor` — abstract extractor (subclass to add a format).
"""

from __future__ import annotations

import logging

from structured_rag.ingestion.extraction.base import BaseExtractor, resolve_file_type
from structured_rag.ingestion.extraction.csv_extractor import CsvExtractor
from structured_rag.ingestion.extraction.docx_extractor import DocxExtractor
from structured_rag.ingestion.extraction.pdf_extractor import PdfExtractor
from structured_rag.ingestion.extraction.text_extractor import JsonExtractor, TextExtractor
from structured_rag.ingestion.extraction.xlsx_extractor import XlsxExtractor
from structured_rag.ingestion.models import ExtractionOutput, FileType

logger = logging.getLogger(__name__)

__all__ = [
    "BaseExtractor",
    "CsvExtractor",
    "DocxExtractor",
    "ExtractorRegistry",
    "JsonExtractor",
    "PdfExtractor",
    "TextExtractor",
    "XlsxExtractor",
    "extract",
    "resolve_file_type",
]


class ExtractorRegistry:
    """Maps each :class:`FileType` to the extractor that handles it.

    Parameters
    ----------
    extractors:
        Replacements for the default extractors, keyed by file type.
    """

    def __init__(self, extractors: dict[FileType, BaseExtractor] | None = None) -> None:
        self._extractors: dict[FileType, BaseExtractor] = {
            FileType.TEXT: TextExtractor(),
            FileType.CSV: CsvExtractor(),
            FileType.JSON: JsonExtractor(),
            FileType.PDF: PdfExtractor(),
            FileType.DOCX: DocxExtractor(),
            FileType.XLSX: XlsxExtractor(),
        }
        self._extractors.update(extractors or {})

    def extract(self, data: bytes, declared_mime_type: str | None, filename: str) -> ExtractionOutput:
        file_type = resolve_file_type(declared_mime_type, filename)
        logger.debug("Extracting %s as %s (%d bytes)", filename, file_type.value, len(data))
        return self._extractors[file_type].extract(data, filename)


def extract(data: bytes, declared_mime_type: str | None, filename: str) -> ExtractionOutput:
    """Extract *data* with the default extractors.

    Raises an :class:`~structured_rag.exceptions.ExtractionError` subclass
    on failure; never returns partial output.
    """
    return ExtractorRegistry().extract(data, declared_mime_type, filename)
