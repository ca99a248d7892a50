"""DOCX extractor built on python-docx.

python-docx is only used to render the document twice, as plain text
and as a small HTML document.  Structure is then inferred from those
renderings: headings, paragraphs and lists from the text through a
:class:`~structured_rag.ingestion.structure.StructureDetector`; tables,
images, hyperlinks and formatting flags by scanning the HTML tags.
"""

from __future__ import annotations

import html
import logging
import re
import zipfile
from io import BytesIO
from typing import Any

import docx
from docx.opc.exceptions import PackageNotFoundError
from docx.table import Table as DocxTable
from docx.text.hyperlink import Hyperlink
from docx.text.paragraph import Paragraph as DocxParagraph

from structured_rag.exceptions import ParserFailureError
from structured_rag.ingestion.extraction.base import BaseExtractor
from structured_rag.ingestion.models import DocxMetadata, ExtractionOutput, FileType, Table
from structured_rag.ingestion.structure import (
    HeuristicStructureDetector,
    StructureAnalyzer,
    StructureDetector,
    count_words,
)

logger = logging.getLogger(__name__)

_HEADING_STYLE = re.compile(r"^Heading\s+(\d)$")
_TABLE = re.compile(r"<table>(.*?)</table>", re.S)
_ROW = re.compile(r"<tr>(.*?)</tr>", re.S)
_CELL = re.compile(r"<t[dh]>(.*?)</t[dh]>", re.S)
_TAG = re.compile(r"<[^>]+>")
_HREF = re.compile(r'<a href="([^"]*)"')

FORMATTING_TAGS = {
    "bold": "<strong>",
    "italic": "<em>",
    "underline": "<u>",
    "strikethrough": "<s>",
    "superscript": "<sup>",
    "subscript": "<sub>",
    "highlight": "<mark>",
}


class DocxExtractor(BaseExtractor):
    file_type = FileType.DOCX

    def __init__(
        self,
        detector: StructureDetector | None = None,
        analyzer: StructureAnalyzer | None = None,
    ) -> None:
        self.detector = detector or HeuristicStructureDetector()
        self.analyzer = analyzer or StructureAnalyzer()

    def extract(self, data: bytes, filename: str) -> ExtractionOutput:
        try:
            document = docx.Document(BytesIO(data))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as exc:
            raise ParserFailureError(filename, exc) from exc

        text, markup = render_document(document)
        text = self.require_text(text, filename)

        found = self.detector.detect(text)
        tables, image_count, hyperlinks, formatting = scan_html(markup)
        metadata = DocxMetadata(
            headings=found.headings,
            paragraphs=found.paragraphs,
            tables=tables,
            lists=found.lists,
            image_count=image_count,
            hyperlinks=hyperlinks,
            formatting=formatting,
            analysis=self.analyzer.analyze(text),
            html=markup,
        )
        logger.info(
            "Parsed DOCX %s: %d headings, %d paragraphs, %d tables, %d lists",
            filename, len(metadata.headings), len(metadata.paragraphs), len(tables), len(metadata.lists),
        )
        return ExtractionOutput(
            text=text,
            word_count=count_words(text),
            file_type=self.file_type,
            structural_metadata=metadata,
        )


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _list_kind(paragraph: DocxParagraph) -> str | None:
    """Return ``"ol"``/``"ul"`` for list paragraphs, ``None`` otherwise."""
    style = paragraph.style.name if paragraph.style is not None else ""
    if style.startswith("List Number"):
        return "ol"
    if style.startswith("List") or paragraph._p.pPr is not None and paragraph._p.pPr.numPr is not None:
        return "ul"
    return None


def _run_html(run: Any) -> str:
    if run._element.xpath(".//pic:pic"):
        return '<img alt="embedded image"/>'
    out = html.escape(run.text)
    if not out:
        return ""
    font = run.font
    if font.highlight_color is not None:
        out = f"<mark>{out}</mark>"
    if font.superscript:
        out = f"<sup>{out}</sup>"
    if font.subscript:
        out = f"<sub>{out}</sub>"
    if font.strike:
        out = f"<s>{out}</s>"
    if font.underline:
        out = f"<u>{out}</u>"
    if font.italic:
        out = f"<em>{out}</em>"
    if font.bold:
        out = f"<strong>{out}</strong>"
    return out


def _paragraph_html(paragraph: DocxParagraph) -> str:
    parts = []
    for item in paragraph.iter_inner_content():
        if isinstance(item, Hyperlink):
            inner = "".join(_run_html(r) for r in item.runs)
            parts.append(f'<a href="{html.escape(item.address or "")}">{inner}</a>')
        else:
            parts.append(_run_html(item))
    return "".join(parts)


def render_document(document: Any) -> tuple[str, str]:
    """Render a python-docx document to ``(plain_text, html)``.

    Plain text uses blank lines between blocks; consecutive list items
    stay in one block so they read as a list.  Heading-styled paragraphs
    are prefixed with Markdown ``#`` markers.
    """
    blocks: list[str] = []
    markup: list[str] = []
    list_items: list[str] = []
    list_html: list[str] = []
    list_tag = ""

    def close_list() -> None:
        nonlocal list_tag
        if list_items:
            blocks.append("\n".join(list_items))
            markup.append(f"<{list_tag}>{''.join(list_html)}</{list_tag}>")
        list_items.clear()
        list_html.clear()
        list_tag = ""

    for block in document.iter_inner_content():
        if isinstance(block, DocxTable):
            close_list()
            rows = [[cell.text.strip() for cell in row.cells] for row in block.rows]
            blocks.append("\n".join(" | ".join(r) for r in rows))
            body = "".join(
                "<tr>" + "".join(f"<td>{html.escape(c)}</td>" for c in r) + "</tr>" for r in rows
            )
            markup.append(f"<table>{body}</table>")
            continue

        text = block.text.strip()
        inner = _paragraph_html(block)
        kind = _list_kind(block)
        if kind and text:
            if list_tag and kind != list_tag:
                close_list()
            list_tag = kind
            marker = f"{len(list_items) + 1}." if kind == "ol" else "-"
            list_items.append(f"{marker} {text}")
            list_html.append(f"<li>{inner}</li>")
            continue

        close_list()
        if not text:
            if "<img" in inner:
                markup.append(f"<p>{inner}</p>")
            continue
        style = block.style.name if block.style is not None else ""
        heading = _HEADING_STYLE.match(style)
        if heading or style == "Title":
            level = int(heading.group(1)) if heading else 1
            blocks.append(f"{'#' * level} {text}")
            markup.append(f"<h{level}>{inner}</h{level}>")
        else:
            blocks.append(text)
            markup.append(f"<p>{inner}</p>")
    close_list()
    return "\n\n".join(blocks), "\n".join(markup)


def scan_html(markup: str) -> tuple[list[Table], int, list[str], dict[str, bool]]:
    """Scan rendered HTML for tables, images, hyperlinks and formatting flags."""
    tables = []
    for table_body in _TABLE.findall(markup):
        rows = [
            [html.unescape(_TAG.sub("", cell)).strip() for cell in _CELL.findall(row)]
            for row in _ROW.findall(table_body)
        ]
        rows = [r for r in rows if any(r)]
        if rows:
            tables.append(Table(rows=rows))
    hyperlinks = [html.unescape(h) for h in _HREF.findall(markup)]
    formatting = {name: tag in markup for name, tag in FORMATTING_TAGS.items()}
    return tables, markup.count("<img"), hyperlinks, formatting
