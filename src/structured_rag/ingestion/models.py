"""Domain models for extraction output, structural metadata and chunks.

``StructuralMetadata`` is a closed tagged union: every extractor that
understands document structure returns exactly one of the ``*Metadata``
variants below (discriminated on ``kind``), and formats without structure
return ``None``.  The chunker dispatches on the concrete variant.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

CellValue = Union[str, int, float, bool, None]


class FileType(str, Enum):
    """Formats the extractors understand."""

    TEXT = "text"
    CSV = "csv"
    JSON = "json"
    PDF = "pdf"
    DOCX = "docx"
    XLSX = "xlsx"


class Priority(str, Enum):
    """Retrieval priority class attached to every chunk."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ContentAnalysis(BaseModel):
    """Document-level signals derived by the structure analyzer."""

    document_type: str = "general"
    language: str = "unknown"
    readability: float = 0.0
    reading_level: str = "unknown"
    complexity: str = "unknown"
    keywords: list[str] = Field(default_factory=list)
    word_count: int = 0
    sentence_count: int = 0


# -- CSV ----------------------------------------------------------------------


class CsvMetadata(BaseModel):
    kind: Literal["csv"] = "csv"
    headers: list[str]
    row_count: int
    column_types: dict[str, str]
    sample_rows: list[dict[str, str]] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)


# -- XLSX ---------------------------------------------------------------------


class MergedCell(BaseModel):
    range: str
    value: CellValue = None


class XlsxSheet(BaseModel):
    name: str
    row_count: int
    column_count: int
    headers: list[str]
    column_types: dict[str, str]
    rows: list[list[CellValue]] = Field(default_factory=list)
    has_formulas: bool = False
    has_charts: bool = False
    merged_cells: list[MergedCell] = Field(default_factory=list)


class XlsxMetadata(BaseModel):
    kind: Literal["xlsx"] = "xlsx"
    sheets: list[XlsxSheet]
    total_sheets: int
    has_formulas: bool = False
    has_charts: bool = False
    has_macros: bool = False


# -- DOCX / PDF shared pieces -------------------------------------------------


class Heading(BaseModel):
    """A detected heading.

    ``position`` is the ordinal of the text block the heading occupies,
    shared with :class:`Paragraph` so both can be ordered together.
    ``page`` is only set for paginated sources.
    """

    text: str
    level: int = 1
    position: int
    page: int | None = None


class Paragraph(BaseModel):
    text: str
    position: int
    page: int | None = None


class DocumentList(BaseModel):
    items: list[str]
    ordered: bool = False
    position: int = 0


class Table(BaseModel):
    rows: list[list[str]]
    page: int | None = None

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)


class DocxMetadata(BaseModel):
    kind: Literal["docx"] = "docx"
    headings: list[Heading] = Field(default_factory=list)
    paragraphs: list[Paragraph] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)
    lists: list[DocumentList] = Field(default_factory=list)
    image_count: int = 0
    hyperlinks: list[str] = Field(default_factory=list)
    formatting: dict[str, bool] = Field(default_factory=dict)
    analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    html: str = ""

    def is_empty(self) -> bool:
        return not (self.headings or self.paragraphs or self.tables or self.lists)


class PdfPage(BaseModel):
    number: int
    text: str
    word_count: int
    has_images: bool = False
    has_tables: bool = False
    has_form_fields: bool = False


class FormField(BaseModel):
    name: str
    page: int | None = None
    field_type: str = "text"


class PdfMetadata(BaseModel):
    kind: Literal["pdf"] = "pdf"
    pages: list[PdfPage] = Field(default_factory=list)
    headings: list[Heading] = Field(default_factory=list)
    paragraphs: list[Paragraph] = Field(default_factory=list)
    tables: list[Table] = Field(default_factory=list)
    form_fields: list[FormField] = Field(default_factory=list)
    analysis: ContentAnalysis = Field(default_factory=ContentAnalysis)
    title: str | None = None

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def is_empty(self) -> bool:
        return not (self.pages or self.headings or self.paragraphs or self.tables)


StructuralMetadata = Annotated[
    Union[CsvMetadata, XlsxMetadata, DocxMetadata, PdfMetadata],
    Field(discriminator="kind"),
]


# -- extraction / document / chunk -------------------------------------------


class ExtractionOutput(BaseModel):
    """Successful extractor result.  Failures raise instead."""

    text: str
    word_count: int
    file_type: FileType
    structural_metadata: StructuralMetadata | None = None


class Document(BaseModel):
    """An uploaded document.  Re-uploads create a new instance."""

    model_config = ConfigDict(frozen=True)

    id: str
    filename: str
    owner_id: str
    byte_size: int
    declared_type: str | None = None
    file_hash: str = ""
    extracted_text: str
    structural_metadata: StructuralMetadata | None = None

    @property
    def content_summary(self) -> str:
        text = self.extracted_text
        return text[:200] + ("..." if len(text) > 200 else "")


class Chunk(BaseModel):
    """A retrieval-ready slice of a document.

    ``total_chunks`` is stamped after the full list is known; stamping
    returns copies, chunks themselves are never mutated.
    """

    model_config = ConfigDict(frozen=True)

    document_id: str
    owner_id: str
    index: int
    text: str
    chunk_type: str
    priority: Priority
    total_chunks: int = 0
    source_fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def vector_id(self) -> str:
        return f"{self.document_id}_chunk_{self.index}"
