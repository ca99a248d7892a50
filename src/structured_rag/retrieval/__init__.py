"""
Retrieval — namespace-scoped vector storage and token-budgeted search.

This module wraps the vector store behind a clean interface so that
callers never need to know which DB is backing retrieval.

Public surface
--------------
- :class:`Retriever` — main entry point, similarity search under a token budget.
- :class:`VectorStoreBase` — abstract backend (subclass for Pinecone, etc.).
- :class:`ChromaVectorStore` — default Chroma backend.
- :class:`InMemoryVectorStore` — process-local backend for development and tests.
- :func:`namespace_for` — the single source of namespace strings.
- :func:`get_vector_store` — backend selected by ``settings.vector_store_backend``.
"""

from structured_rag.config import settings
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.memory_store import InMemoryVectorStore
from structured_rag.retrieval.models import Match, MetadataFilter, RetrievedChunk, VectorRecord
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for
from structured_rag.retrieval.retriever import Retriever, estimate_tokens

__all__ = [
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "Match",
    "MetadataFilter",
    "NamespaceKind",
    "RetrievedChunk",
    "Retriever",
    "VectorRecord",
    "VectorStoreBase",
    "estimate_tokens",
    "get_vector_store",
    "namespace_for",
]


def get_vector_store(backend: str | None = None) -> VectorStoreBase:
    """Return a store for *backend* (``"chroma"`` or ``"memory"``)."""
    backend = backend or settings.vector_store_backend
    if backend == "memory":
        return InMemoryVectorStore()
    if backend == "chroma":
        from structured_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore()
    raise ValueError(f"Unknown vector store backend: {backend!r}")


def __getattr__(name: str):  # noqa: ANN001
    """Lazy-import ChromaVectorStore to avoid pulling in chromadb at import time."""
    if name == "ChromaVectorStore":
        from structured_rag.retrieval.chroma_store import ChromaVectorStore

        return ChromaVectorStore
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
