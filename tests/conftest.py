"""Shared pytest configuration and fixtures."""

from __future__ import annotations

from io import BytesIO

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from structured_rag.ingestion.embedder import EMBEDDING_DIMENSIONS, EmbeddingClient
from structured_rag.retrieval.memory_store import InMemoryVectorStore


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests requiring external services")


@pytest.fixture()
def embedder() -> EmbeddingClient:
    return EmbeddingClient(DeterministicFakeEmbedding(size=EMBEDDING_DIMENSIONS))


@pytest.fixture()
def memory_store() -> InMemoryVectorStore:
    return InMemoryVectorStore("test-index")


# ── Binary document builders ────────────────────────────────────────────


def make_docx() -> bytes:
    """A small report: two headed sections, a bullet list and a table."""
    import docx

    document = docx.Document()
    document.add_heading("Overview", level=1)
    intro = document.add_paragraph("This paragraph introduces the quarterly report and its ")
    intro.add_run("main findings").bold = True
    intro.add_run(".")
    document.add_paragraph("First item of the list", style="List Bullet")
    document.add_paragraph("Second item of the list", style="List Bullet")
    table = document.add_table(rows=2, cols=2)
    for r, values in enumerate([("Name", "Score"), ("Alpha", "10")]):
        for c, value in enumerate(values):
            table.cell(r, c).text = value
    document.add_heading("Details", level=1)
    document.add_paragraph("Revenue grew steadily across every region during the period.")
    buf = BytesIO()
    document.save(buf)
    return buf.getvalue()


def make_xlsx() -> bytes:
    """Two sheets sharing an ``id`` column; formulas and a merged range on the second."""
    from openpyxl import Workbook

    wb = Workbook()
    data = wb.active
    data.title = "Data"
    data.append(["id", "name", "score"])
    data.append([1, "Alpha", 10])
    data.append([2, "Beta", 90])
    data.append([3, "Gamma", 50])

    summary = wb.create_sheet("Summary")
    summary.append(["id", "total"])
    summary.append([1, "=SUM(Data!C2:C4)"])
    summary["A4"] = "Merged note"
    summary.merge_cells("A4:B4")

    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


def make_pdf(pages: list[list[str]]) -> bytes:
    """A PDF with one text line per entry, Helvetica 11pt."""
    from pypdf import PdfWriter
    from pypdf.generic import DecodedStreamObject, DictionaryObject, NameObject

    writer = PdfWriter()
    font = DictionaryObject(
        {
            NameObject("/Type"): NameObject("/Font"),
            NameObject("/Subtype"): NameObject("/Type1"),
            NameObject("/BaseFont"): NameObject("/Helvetica"),
        }
    )
    for lines in pages:
        page = writer.add_blank_page(width=612, height=792)
        ops = ["BT", "/F1 11 Tf", "14 TL", "72 720 Td"]
        for line in lines:
            escaped = line.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
            ops.append(f"({escaped}) Tj T*")
        ops.append("ET")
        stream = DecodedStreamObject()
        stream.set_data("\n".join(ops).encode("latin-1"))
        page[NameObject("/Contents")] = writer._add_object(stream)
        page[NameObject("/Resources")] = DictionaryObject(
            {NameObject("/Font"): DictionaryObject({NameObject("/F1"): font})}
        )
    buf = BytesIO()
    writer.write(buf)
    return buf.getvalue()


@pytest.fixture()
def docx_bytes() -> bytes:
    return make_docx()


@pytest.fixture()
def xlsx_bytes() -> bytes:
    return make_xlsx()


@pytest.fixture()
def pdf_factory():  # noqa: ANN201
    return make_pdf
