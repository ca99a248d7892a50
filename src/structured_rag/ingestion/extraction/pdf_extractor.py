"""PDF extractor built on pypdf.

Text comes from pypdf page by page; headings, paragraphs, tables and
text-drawn form fields are found by the structure detector run over each
page with block positions numbered continuously across pages.  Images
(XObjects) and AcroForm widgets are read from the PDF objects directly.
"""

from __future__ import annotations

import logging
import struct
from io import BytesIO
from typing import Any

from pypdf import PdfReader
from pypdf.errors import PyPdfError

from structured_rag.exceptions import ParserFailureError
from structured_rag.ingestion.extraction.base import BaseExtractor
from structured_rag.ingestion.models import ExtractionOutput, FileType, FormField, PdfMetadata, PdfPage
from structured_rag.ingestion.structure import (
    DetectedStructure,
    HeuristicStructureDetector,
    StructureAnalyzer,
    StructureDetector,
    count_words,
)

logger = logging.getLogger(__name__)

FIELD_TYPES = {"/Tx": "text", "/Btn": "checkbox", "/Ch": "choice", "/Sig": "signature"}


def split_pages(text: str) -> list[str]:
    """Split a flat text dump into pages on form-feed characters."""
    pages = text.split("\f")
    if pages and not pages[-1].strip():
        pages.pop()
    return pages


def _resolve(obj: Any) -> Any:
    return obj.get_object() if hasattr(obj, "get_object") else obj


def _has_images(page: Any) -> bool:
    resources = _resolve(page.get("/Resources"))
    if not resources:
        return False
    xobjects = _resolve(resources.get("/XObject"))
    if not xobjects:
        return False
    return any(_resolve(xobjects[name]).get("/Subtype") == "/Image" for name in xobjects)


def _widget_fields(page: Any, number: int) -> list[FormField]:
    """AcroForm widgets annotated on *page*."""
    fields = []
    for annot in _resolve(page.get("/Annots")) or []:
        annot = _resolve(annot)
        if annot.get("/Subtype") != "/Widget":
            continue
        name, field_type = annot.get("/T"), annot.get("/FT")
        parent = _resolve(annot.get("/Parent"))
        if parent:
            name = name or parent.get("/T")
            field_type = field_type or parent.get("/FT")
        if name:
            fields.append(FormField(name=str(name), page=number, field_type=FIELD_TYPES.get(field_type, "text")))
    return fields


class PdfExtractor(BaseExtractor):
    file_type = FileType.PDF

    def __init__(
        self,
        detector: StructureDetector | None = None,
        analyzer: StructureAnalyzer | None = None,
    ) -> None:
        self.detector = detector or HeuristicStructureDetector()
        self.analyzer = analyzer or StructureAnalyzer()

    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        try:
            reader = PdfReader(BytesIO(data))
            if reader.is_encrypted and not reader.decrypt(""):
                raise ParserFailureError(filename, "document is encrypted")
            raw_pages = [page.extract_text() or "" for page in reader.pages]
            images = [_has_images(page) for page in reader.pages]
            widgets = [_widget_fields(page, n) for n, page in enumerate(reader.pages, 1)]
            title = reader.metadata.title if reader.metadata else None
        except (PyPdfError, ValueError, KeyError, TypeError, AttributeError, IndexError, struct.error) as exc:
            raise ParserFailureError(filename, exc) from exc

        if len(raw_pages) == 1 and "\f" in raw_pages[0]:
            raw_pages = split_pages(raw_pages[0])
            images += [False] * (len(raw_pages) - len(images))
            widgets += [[] for _ in range(len(raw_pages) - len(widgets))]

        text = self.require_text("\n\n".join(p.strip() for p in raw_pages if p.strip()), filename)

        metadata = PdfMetadata(analysis=self.analyzer.analyze(text), title=title or None)
        found = DetectedStructure()
        for number, page_text in enumerate(raw_pages, 1):
            found = self.detector.detect(page_text, page=number, start_position=found.next_position)
            metadata.headings += found.headings
            metadata.paragraphs += found.paragraphs
            metadata.tables += found.tables

            page_fields = widgets[number - 1]
            known = {f.name for f in page_fields}
            page_fields += [f for f in found.form_fields if f.name not in known]
            metadata.form_fields += page_fields

            metadata.pages.append(
                PdfPage(
                    number=number,
                    text=page_text.strip(),
                    word_count=count_words(page_text),
                    has_images=images[number - 1],
                    has_tables=bool(found.tables),
                    has_form_fields=bool(page_fields),
                )
            )

        logger.info(
            "Parsed PDF %s: %d pages, %d headings, %d tables, %d form fields",
            filename, metadata.page_count, len(metadata.headings), len(metadata.tables), len(metadata.form_fields),
        )
        return ExtractionOutput(
            text=text,
            word_count=count_words(text),
            file_type=self.file_type,
            structural_metadata=metadata,
        )
