"""
Chunking — structure-aware decomposition of extracted documents.

Public surface
--------------
- :class:`Chunker` — picks a strategy from the structural metadata.
- :class:`ChunkBuilder` — index assignment and ``total_chunks`` stamping.
"""

from structured_rag.ingestion.chunking.builder import ChunkBuilder
from structured_rag.ingestion.chunking.chunker import Chunker, has_structure

__all__ = ["ChunkBuilder", "Chunker", "has_structure"]
