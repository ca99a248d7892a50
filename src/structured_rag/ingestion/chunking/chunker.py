"""Strategy dispatch: structural metadata variant to chunking strategy."""

from __future__ import annotations

import logging
from typing import Callable

from structured_rag.config import settings
from structured_rag.exceptions import NoChunksProducedError
from structured_rag.ingestion.chunking.builder import ChunkBuilder
from structured_rag.ingestion.chunking.documents import chunk_docx, chunk_pdf
from structured_rag.ingestion.chunking.generic import chunk_generic
from structured_rag.ingestion.chunking.tabular import chunk_csv, chunk_xlsx
from structured_rag.ingestion.models import (
    Chunk,
    CsvMetadata,
    DocxMetadata,
    PdfMetadata,
    StructuralMetadata,
    XlsxMetadata,
)

logger = logging.getLogger(__name__)

Strategy = Callable[[str, StructuralMetadata, ChunkBuilder], None]

_STRATEGIES: dict[type, Strategy] = {
    CsvMetadata: chunk_csv,
    XlsxMetadata: chunk_xlsx,
    DocxMetadata: chunk_docx,
    PdfMetadata: chunk_pdf,
}


def has_structure(metadata: StructuralMetadata | None) -> bool:
    """``False`` when *metadata* is absent or carries no usable structure."""
    if isinstance(metadata, CsvMetadata):
        return bool(metadata.headers)
    if isinstance(metadata, XlsxMetadata):
        return bool(metadata.sheets)
    if isinstance(metadata, (DocxMetadata, PdfMetadata)):
        return not metadata.is_empty()
    return False


class Chunker:
    """Turns extracted text plus structural metadata into ordered chunks.

    The chunker is stateless; one instance can serve every document.
    """

    def chunk(
        self,
        text: str,
        metadata: StructuralMetadata | None,
        document_id: str,
        owner_id: str,
        chunk_size: int = settings.chunk_size,
        overlap: int = settings.chunk_overlap,
    ) -> list[Chunk]:
        """Chunk one document.

        Parameters
        ----------
        text:
            Extracted plain text.
        metadata:
            Structural metadata from the extractor, or ``None``.
        document_id, owner_id:
            Copied onto every chunk.
        chunk_size, overlap:
            Only used by the generic paragraph strategy.

        Raises
        ------
        NoChunksProducedError
            When no strategy produced a single non-blank chunk.
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError(f"overlap must be in [0, chunk_size), got {overlap}")

        builder = ChunkBuilder(document_id, owner_id)
        if has_structure(metadata):
            strategy = _STRATEGIES[type(metadata)]
            logger.debug("Chunking %s with %s", document_id, strategy.__name__)
            strategy(text, metadata, builder)
        else:
            chunk_generic(text, builder, chunk_size, overlap)

        chunks = builder.build()
        if not chunks:
            raise NoChunksProducedError(document_id)
        logger.info("Chunked %s into %d chunks", document_id, len(chunks))
        return chunks
