"""Unit tests for the chunking strategies and their shared invariants."""

from __future__ import annotations

import pytest

from structured_rag.exceptions import NoChunksProducedError
from structured_rag.ingestion.chunking import ChunkBuilder, Chunker, has_structure
from structured_rag.ingestion.chunking.documents import assign_docx_sections, assign_pdf_sections
from structured_rag.ingestion.chunking.stats import ColumnStats, format_number, quantile
from structured_rag.ingestion.extraction import CsvExtractor, XlsxExtractor
from structured_rag.ingestion.models import (
    Chunk,
    CsvMetadata,
    DocumentList,
    DocxMetadata,
    Heading,
    Paragraph,
    PdfMetadata,
    PdfPage,
    Priority,
    Table,
)


@pytest.fixture()
def chunker() -> Chunker:
    return Chunker()


def _assert_well_formed(chunks: list[Chunk]) -> None:
    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert {c.total_chunks for c in chunks} == {len(chunks)}
    assert all(c.text.strip() for c in chunks)


# ── Builder ─────────────────────────────────────────────────────────────


class TestChunkBuilder:
    def test_indices_follow_emission_and_blanks_are_dropped(self) -> None:
        builder = ChunkBuilder("doc", "u1")
        builder.add("first", "text", Priority.HIGH)
        builder.add("   ", "text", Priority.LOW)
        builder.add(" second ", "text", Priority.LOW, page=2)
        chunks = builder.build()
        assert [(c.index, c.text) for c in chunks] == [(0, "first"), (1, "second")]
        assert chunks[1].source_fields == {"page": 2}
        assert chunks[1].vector_id == "doc_chunk_1"
        _assert_well_formed(chunks)


# ── Generic strategy ────────────────────────────────────────────────────


class TestGenericChunking:
    def test_short_text_is_one_chunk(self, chunker: Chunker) -> None:
        chunks = chunker.chunk("Hello there.\n\nSecond paragraph.", None, "doc", "u1")
        assert len(chunks) == 1
        assert chunks[0].chunk_type == "text"
        assert chunks[0].priority is Priority.MEDIUM

    def test_overlap_carries_tail(self, chunker: Chunker) -> None:
        text = "\n\n".join(["A" * 600, "B" * 600, "C" * 600])
        chunks = chunker.chunk(text, None, "doc", "u1", chunk_size=1000, overlap=200)
        assert len(chunks) == 3
        assert chunks[0].text == "A" * 600
        assert chunks[1].text.startswith("A" * 200 + "\n\n")
        assert "B" * 600 in chunks[1].text
        assert chunks[2].text.endswith("C" * 600)
        _assert_well_formed(chunks)

    def test_oversized_paragraph_is_kept_whole(self, chunker: Chunker) -> None:
        chunks = chunker.chunk("X" * 2500, None, "doc", "u1", chunk_size=1000, overlap=100)
        assert [len(c.text) for c in chunks] == [2500]

    def test_deterministic(self, chunker: Chunker) -> None:
        text = "\n\n".join(f"Paragraph number {i} " * 20 for i in range(12))
        assert chunker.chunk(text, None, "d", "u") == chunker.chunk(text, None, "d", "u")

    def test_structureless_metadata_falls_back(self, chunker: Chunker) -> None:
        empty = CsvMetadata(headers=[], row_count=0, column_types={})
        assert not has_structure(empty)
        chunks = chunker.chunk("loose text", empty, "doc", "u1")
        assert [c.chunk_type for c in chunks] == ["text"]

    @pytest.mark.parametrize(("size", "overlap"), [(0, 0), (100, 100), (100, -1)])
    def test_invalid_sizes(self, chunker: Chunker, size: int, overlap: int) -> None:
        with pytest.raises(ValueError):
            chunker.chunk("text", None, "doc", "u1", chunk_size=size, overlap=overlap)

    def test_blank_text_produces_no_chunks(self, chunker: Chunker) -> None:
        with pytest.raises(NoChunksProducedError, match="doc"):
            chunker.chunk(" \n\n ", None, "doc", "u1")


# ── Statistics ──────────────────────────────────────────────────────────


class TestStats:
    def test_quantiles_interpolate(self) -> None:
        assert quantile([10.0, 90.0], 0.25) == 30.0
        assert quantile([1.0, 2.0, 3.0, 4.0], 0.5) == 2.5

    def test_format_number(self) -> None:
        assert format_number(50.0) == "50"
        assert format_number(2.5) == "2.5"
        assert format_number(1 / 3) == "0.33"

    def test_describe(self) -> None:
        stats = ColumnStats.of([90.0, 10.0])
        assert stats.describe("score") == (
            "score: count=2, min=10, max=90, avg=50, median=50, q1=30, q3=70, range=80"
        )

    def test_empty(self) -> None:
        assert ColumnStats.of([]) is None


# ── CSV strategy ────────────────────────────────────────────────────────


class TestCsvChunking:
    def _chunks(self, chunker: Chunker, data: bytes) -> list[Chunk]:
        out = CsvExtractor().extract(data, "scores.csv")
        return chunker.chunk(out.text, out.structural_metadata, "doc", "u1")

    def test_chunk_sequence(self, chunker: Chunker) -> None:
        chunks = self._chunks(chunker, b"name,score\nA,10\nB,90\n")
        assert [c.chunk_type for c in chunks] == [
            "csv_summary",
            "csv_column",
            "csv_column",
            "csv_rows",
            "csv_statistics",
        ]
        _assert_well_formed(chunks)

    def test_chunk_contents(self, chunker: Chunker) -> None:
        summary, name_col, score_col, rows, stats = self._chunks(chunker, b"name,score\nA,10\nB,90\n")
        assert summary.priority is Priority.HIGH
        assert "name" in summary.text and "score" in summary.text
        assert score_col.text.startswith("Column: score (integer)")
        assert score_col.source_fields["column"] == "score"
        assert rows.priority is Priority.LOW
        assert rows.text.splitlines() == ["name | score", "A | 10", "B | 90"]
        assert "score: count=2, min=10, max=90, avg=50" in stats.text
        assert stats.source_fields["numeric_columns"] == ["score"]

    def test_rows_are_batched_by_twenty(self, chunker: Chunker) -> None:
        data = "n,v\n" + "".join(f"r{i},{i}\n" for i in range(45))
        rows = [c for c in self._chunks(chunker, data.encode()) if c.chunk_type == "csv_rows"]
        assert [(c.source_fields["row_start"], c.source_fields["row_end"]) for c in rows] == [
            (1, 20),
            (21, 40),
            (41, 45),
        ]
        assert rows[0].text.startswith("n | v")
        assert not rows[1].text.startswith("n | v")

    def test_duplicate_headers_keep_both_columns(self, chunker: Chunker) -> None:
        chunks = self._chunks(chunker, b"score,score\n10,1\n90,3\n")
        (stats,) = [c for c in chunks if c.chunk_type == "csv_statistics"]
        assert stats.source_fields["numeric_columns"] == ["score", "score_2"]
        assert "score: count=2, min=10, max=90" in stats.text
        assert "score_2: count=2, min=1, max=3" in stats.text

    def test_no_statistics_without_numeric_columns(self, chunker: Chunker) -> None:
        chunks = self._chunks(chunker, b"a,b\nx,y\n")
        assert "csv_statistics" not in [c.chunk_type for c in chunks]


# ── XLSX strategy ───────────────────────────────────────────────────────


class TestXlsxChunking:
    def test_workbook(self, chunker: Chunker, xlsx_bytes: bytes) -> None:
        out = XlsxExtractor().extract(xlsx_bytes, "book.xlsx")
        chunks = chunker.chunk(out.text, out.structural_metadata, "doc", "u1")
        types = [c.chunk_type for c in chunks]

        assert types[0] == "xlsx_summary"
        assert chunks[0].priority is Priority.HIGH
        assert types.count("xlsx_sheet_overview") == 2
        assert types.count("xlsx_merged_cells") == 1
        assert types[-1] == "xlsx_relationships"
        assert "Data <-> Summary: id" in chunks[-1].text

        stats = next(c for c in chunks if c.chunk_type == "xlsx_statistics")
        assert stats.source_fields["sheet"] == "Data"
        assert "score: count=3, min=10, max=90, avg=50" in stats.text
        _assert_well_formed(chunks)


# ── DOCX strategy ───────────────────────────────────────────────────────


@pytest.fixture()
def docx_metadata() -> DocxMetadata:
    return DocxMetadata(
        headings=[Heading(text="Intro", level=1, position=0), Heading(text="Methods", level=2, position=5)],
        paragraphs=[
            Paragraph(text="p1", position=1),
            Paragraph(text="p2", position=2),
            Paragraph(text="far away", position=4),
            Paragraph(text="m1", position=6),
        ],
        tables=[Table(rows=[["a", "b"], ["1", "2"]])],
        lists=[DocumentList(items=["x", "y"], ordered=True, position=3)],
        formatting={"bold": True, "italic": False},
    )


class TestDocxChunking:
    def test_section_assignment(self, docx_metadata: DocxMetadata) -> None:
        sections, leftovers = assign_docx_sections(docx_metadata)
        assert [p.text for p in sections[0]] == ["p1", "p2"]
        assert [p.text for p in sections[1]] == ["m1"]
        assert [p.text for p in leftovers] == ["far away"]

    def test_chunk_sequence(self, chunker: Chunker, docx_metadata: DocxMetadata) -> None:
        chunks = chunker.chunk("Intro text", docx_metadata, "doc", "u1")
        assert [c.chunk_type for c in chunks] == [
            "docx_summary",
            "docx_outline",
            "docx_section",
            "docx_section",
            "docx_table",
            "docx_list",
            "docx_analysis",
            "docx_paragraphs",
        ]
        _assert_well_formed(chunks)

    def test_chunk_contents(self, chunker: Chunker, docx_metadata: DocxMetadata) -> None:
        chunks = {c.chunk_type: c for c in chunker.chunk("Intro text", docx_metadata, "doc", "u1")}
        assert chunks["docx_outline"].text.splitlines()[1:] == ["- Intro", "  - Methods"]
        assert chunks["docx_list"].text == "Ordered list:\n1. x\n2. y"
        assert "Formatting: bold" in chunks["docx_analysis"].text
        assert chunks["docx_paragraphs"].text == "far away"

    def test_extracted_docx(self, chunker: Chunker, docx_bytes: bytes) -> None:
        from structured_rag.ingestion.extraction import DocxExtractor

        out = DocxExtractor().extract(docx_bytes, "report.docx")
        chunks = chunker.chunk(out.text, out.structural_metadata, "doc", "u1")
        sections = [c for c in chunks if c.chunk_type == "docx_section"]
        assert sections[0].source_fields["heading"] == "Overview"
        assert "quarterly report" in sections[0].text
        _assert_well_formed(chunks)


# ── PDF strategy ────────────────────────────────────────────────────────


@pytest.fixture()
def pdf_metadata() -> PdfMetadata:
    long_page = " ".join(["word"] * 60)
    return PdfMetadata(
        pages=[
            PdfPage(number=1, text=long_page, word_count=60),
            PdfPage(number=2, text="short", word_count=1, has_tables=True),
        ],
        headings=[Heading(text="Scope", level=1, position=0, page=1)],
        paragraphs=[Paragraph(text="para one", position=1, page=1), Paragraph(text="para two", position=3, page=2)],
        tables=[Table(rows=[["k", "v"], ["a", "1"]], page=2)],
        title="Annual Report",
    )


class TestPdfChunking:
    def test_section_assignment(self, pdf_metadata: PdfMetadata) -> None:
        sections = assign_pdf_sections(pdf_metadata)
        assert [p.text for p in sections[0]] == ["para one", "para two"]

    def test_chunk_sequence(self, chunker: Chunker, pdf_metadata: PdfMetadata) -> None:
        chunks = chunker.chunk("whole text", pdf_metadata, "doc", "u1")
        assert [c.chunk_type for c in chunks] == [
            "pdf_summary",
            "pdf_outline",
            "pdf_section",
            "pdf_table",
            "pdf_analysis",
            "pdf_page",
        ]
        _assert_well_formed(chunks)

    def test_chunk_contents(self, chunker: Chunker, pdf_metadata: PdfMetadata) -> None:
        chunks = {c.chunk_type: c for c in chunker.chunk("whole text", pdf_metadata, "doc", "u1")}
        assert "Title: Annual Report" in chunks["pdf_summary"].text
        assert "- Scope (page 1)" in chunks["pdf_outline"].text
        assert chunks["pdf_table"].text.endswith("Context: para one")
        assert chunks["pdf_table"].source_fields["page"] == 2
        assert chunks["pdf_page"].source_fields["page"] == 1
        assert chunks["pdf_page"].priority is Priority.LOW
