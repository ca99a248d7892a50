"""DOCX and PDF chunking strategies.

Both start with a summary and a heading outline, then group paragraphs
under headings into sections.  They differ in what counts as "under a
heading" and in the fallback for text no section captured: DOCX emits
the leftover paragraphs in batches, PDF emits whole pages.
"""

from __future__ import annotations

from structured_rag.ingestion.chunking.builder import ChunkBuilder
from structured_rag.ingestion.models import (
    ContentAnalysis,
    DocxMetadata,
    Heading,
    Paragraph,
    PdfMetadata,
    Priority,
    Table,
)

SECTION_REACH = 2
PARAGRAPH_BATCH = 3
PAGE_MIN_WORDS = 50
PREVIEW_CHARS = 300
TABLE_CONTEXT_CHARS = 500


def _outline(headings: list[Heading], with_pages: bool = False) -> str:
    lines = ["Document outline:"]
    for h in headings:
        suffix = f" (page {h.page})" if with_pages and h.page is not None else ""
        lines.append(f"{'  ' * (max(h.level, 1) - 1)}- {h.text}{suffix}")
    return "\n".join(lines)


def _analysis_text(analysis: ContentAnalysis, formatting: dict[str, bool] | None = None) -> str:
    lines = [
        "Content analysis:",
        f"Document type: {analysis.document_type}",
        f"Language: {analysis.language}",
        f"Readability: {analysis.readability:g} ({analysis.reading_level})",
        f"Complexity: {analysis.complexity}",
        f"Words: {analysis.word_count}, sentences: {analysis.sentence_count}",
    ]
    if analysis.keywords:
        lines.append("Keywords: " + ", ".join(analysis.keywords))
    if formatting is not None:
        used = [name for name, on in formatting.items() if on]
        lines.append("Formatting: " + (", ".join(used) if used else "none"))
    return "\n".join(lines)


def _table_text(table: Table, number: int) -> str:
    where = f" on page {table.page}" if table.page is not None else ""
    lines = [f"Table {number}{where} ({table.row_count} rows x {table.column_count} columns)"]
    lines += [" | ".join(row) for row in table.rows]
    return "\n".join(lines)


def _emit_sections(
    builder: ChunkBuilder, sections: dict[int, list[Paragraph]], headings: list[Heading], chunk_type: str
) -> None:
    for i, heading in enumerate(headings):
        members = sections.get(i)
        if not members:
            continue
        body = "\n\n".join(p.text for p in members)
        fields = {"heading": heading.text, "level": heading.level}
        if heading.page is not None:
            fields["page"] = heading.page
        builder.add(f"{heading.text}\n\n{body}", chunk_type, Priority.MEDIUM, **fields)


# -- DOCX ---------------------------------------------------------------------


def assign_docx_sections(metadata: DocxMetadata) -> tuple[dict[int, list[Paragraph]], list[Paragraph]]:
    """Attach each paragraph to the nearest heading at most two positions before it.

    Returns ``(sections, leftovers)`` where *sections* maps a heading's
    index in ``metadata.headings`` to its paragraphs.
    """
    sections: dict[int, list[Paragraph]] = {}
    leftovers: list[Paragraph] = []
    for paragraph in metadata.paragraphs:
        owner = None
        for i, heading in enumerate(metadata.headings):
            if heading.position < paragraph.position and paragraph.position - heading.position <= SECTION_REACH:
                owner = i
        if owner is None:
            leftovers.append(paragraph)
        else:
            sections.setdefault(owner, []).append(paragraph)
    return sections, leftovers


def chunk_docx(text: str, metadata: DocxMetadata, builder: ChunkBuilder) -> None:
    analysis = metadata.analysis
    summary = [
        "Document summary",
        f"Type: {analysis.document_type}, language: {analysis.language}, words: {analysis.word_count}",
        f"Headings: {len(metadata.headings)}, paragraphs: {len(metadata.paragraphs)}, "
        f"tables: {len(metadata.tables)}, lists: {len(metadata.lists)}, images: {metadata.image_count}",
    ]
    if metadata.hyperlinks:
        summary.append(f"Hyperlinks: {len(metadata.hyperlinks)}")
    summary += ["", text[:PREVIEW_CHARS]]
    builder.add("\n".join(summary), "docx_summary", Priority.HIGH, image_count=metadata.image_count)

    if metadata.headings:
        builder.add(_outline(metadata.headings), "docx_outline", Priority.HIGH, heading_count=len(metadata.headings))

    sections, leftovers = assign_docx_sections(metadata)
    _emit_sections(builder, sections, metadata.headings, "docx_section")

    for n, table in enumerate(metadata.tables, 1):
        builder.add(
            _table_text(table, n), "docx_table", Priority.MEDIUM, table_index=n - 1,
            row_count=table.row_count, column_count=table.column_count,
        )

    for lst in metadata.lists:
        body = "\n".join(f"{f'{i}.' if lst.ordered else '-'} {item}" for i, item in enumerate(lst.items, 1))
        kind = "Ordered list" if lst.ordered else "List"
        builder.add(f"{kind}:\n{body}", "docx_list", Priority.LOW, ordered=lst.ordered, item_count=len(lst.items))

    builder.add(_analysis_text(analysis, metadata.formatting), "docx_analysis", Priority.MEDIUM)

    for start in range(0, len(leftovers), PARAGRAPH_BATCH):
        batch = leftovers[start : start + PARAGRAPH_BATCH]
        builder.add("\n\n".join(p.text for p in batch), "docx_paragraphs", Priority.LOW)


# -- PDF ----------------------------------------------------------------------


def assign_pdf_sections(metadata: PdfMetadata) -> dict[int, list[Paragraph]]:
    """Attach each paragraph to the nearest preceding heading on the same or an earlier page."""
    sections: dict[int, list[Paragraph]] = {}
    for paragraph in metadata.paragraphs:
        owner = None
        for i, heading in enumerate(metadata.headings):
            if heading.position < paragraph.position and (heading.page or 0) <= (paragraph.page or 0):
                owner = i
        if owner is not None:
            sections.setdefault(owner, []).append(paragraph)
    return sections


def _table_context(metadata: PdfMetadata, page: int | None) -> str:
    if page is None:
        return ""
    nearby = [p.text for p in metadata.paragraphs if p.page in (page - 1, page + 1)]
    return " ".join(nearby)[:TABLE_CONTEXT_CHARS]


def chunk_pdf(text: str, metadata: PdfMetadata, builder: ChunkBuilder) -> None:
    analysis = metadata.analysis
    summary = ["Document summary"]
    if metadata.title:
        summary.append(f"Title: {metadata.title}")
    summary += [
        f"Pages: {metadata.page_count}, words: {analysis.word_count}, type: {analysis.document_type}",
        f"Headings: {len(metadata.headings)}, tables: {len(metadata.tables)}, "
        f"form fields: {len(metadata.form_fields)}",
        "",
        text[:PREVIEW_CHARS],
    ]
    builder.add("\n".join(summary), "pdf_summary", Priority.HIGH, page_count=metadata.page_count)

    if metadata.headings:
        builder.add(
            _outline(metadata.headings, with_pages=True), "pdf_outline", Priority.HIGH,
            heading_count=len(metadata.headings),
        )

    _emit_sections(builder, assign_pdf_sections(metadata), metadata.headings, "pdf_section")

    for n, table in enumerate(metadata.tables, 1):
        body = _table_text(table, n)
        context = _table_context(metadata, table.page)
        if context:
            body += f"\n\nContext: {context}"
        builder.add(
            body, "pdf_table", Priority.MEDIUM, table_index=n - 1, page=table.page,
            row_count=table.row_count, column_count=table.column_count,
        )

    builder.add(_analysis_text(analysis), "pdf_analysis", Priority.MEDIUM)

    for page in metadata.pages:
        if page.word_count > PAGE_MIN_WORDS:
            builder.add(
                f"Page {page.number}\n\n{page.text}", "pdf_page", Priority.LOW, page=page.number,
                has_images=page.has_images, has_tables=page.has_tables, has_form_fields=page.has_form_fields,
            )
