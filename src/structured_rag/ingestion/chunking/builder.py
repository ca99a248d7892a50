"""Accumulates chunks in emission order and stamps the final count."""

from __future__ import annotations

from typing import Any

from structured_rag.ingestion.models import Chunk, Priority


class ChunkBuilder:
    """Collects chunks for one document.

    Indices are assigned at emission time, so the order of :meth:`add`
    calls is the chunk order.  Blank texts are dropped before an index
    is spent on them.
    """

    def __init__(self, document_id: str, owner_id: str) -> None:
        self.document_id = document_id
        self.owner_id = owner_id
        self._chunks: list[Chunk] = []

    def __len__(self) -> int:
        return len(self._chunks)

    def add(self, text: str, chunk_type: str, priority: Priority, **source_fields: Any) -> None:
        text = text.strip()
        if not text:
            return
        self._chunks.append(
            Chunk(
                document_id=self.document_id,
                owner_id=self.owner_id,
                index=len(self._chunks),
                text=text,
                chunk_type=chunk_type,
                priority=priority,
                source_fields=source_fields,
            )
        )

    def build(self) -> list[Chunk]:
        """Return copies of every chunk with ``total_chunks`` filled in."""
        total = len(self._chunks)
        return [chunk.model_copy(update={"total_chunks": total}) for chunk in self._chunks]
