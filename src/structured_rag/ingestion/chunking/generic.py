"""Paragraph-accumulating chunker for text without usable structure."""

from __future__ import annotations

import re

from structured_rag.ingestion.chunking.builder import ChunkBuilder
from structured_rag.ingestion.models import Priority

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text or "") if p.strip()]


def chunk_generic(text: str, builder: ChunkBuilder, chunk_size: int, overlap: int) -> None:
    """Pack blank-line separated paragraphs into chunks of about *chunk_size* chars.

    When the next paragraph would overflow a non-empty buffer, the buffer
    is emitted and the next one starts with its last *overlap* characters.
    A single paragraph longer than *chunk_size* becomes one oversized chunk.
    """
    buffer = ""
    for paragraph in split_paragraphs(text):
        candidate = f"{buffer}\n\n{paragraph}" if buffer else paragraph
        if buffer and len(candidate) > chunk_size:
            builder.add(buffer, "text", Priority.MEDIUM)
            tail = buffer[-overlap:] if overlap > 0 else ""
            buffer = f"{tail}\n\n{paragraph}" if tail else paragraph
        else:
            buffer = candidate
    builder.add(buffer, "text", Priority.MEDIUM)
