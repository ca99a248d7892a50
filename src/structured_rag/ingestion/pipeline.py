"""Upload-to-index pipeline: extract, chunk, embed, upsert.

A document is either fully indexed or not indexed at all: nothing is
upserted unless every chunk was embedded, and every step raises
instead of returning partial output.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from structured_rag.config import settings
from structured_rag.exceptions import FileTooLargeError, StructuredRagError
from structured_rag.ingestion.chunking import Chunker
from structured_rag.ingestion.embedder import EmbeddingClient
from structured_rag.ingestion.extraction import ExtractorRegistry
from structured_rag.ingestion.models import Chunk, Document
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import MetadataFilter, MetadataValue, VectorRecord
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for
from structured_rag.retrieval.retriever import estimate_tokens

logger = logging.getLogger(__name__)


class UploadRequest(BaseModel):
    document_id: str
    filename: str
    mime_type: str | None = None
    data: bytes = Field(repr=False)
    owner_id: str


class UploadResult(BaseModel):
    success: bool
    chunk_count: int = 0
    error: str | None = None
    document: Document | None = None


def flatten_metadata(fields: dict[str, Any]) -> dict[str, MetadataValue]:
    """Reduce arbitrary values to the scalars every vector store accepts.

    Lists are joined with ``", "``, mappings are JSON-encoded and
    ``None`` values are dropped.
    """
    flat: dict[str, MetadataValue] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, (str, int, float, bool)):
            flat[key] = value
        elif isinstance(value, (list, tuple, set)):
            flat[key] = ", ".join(str(v) for v in value)
        elif isinstance(value, dict):
            flat[key] = json.dumps(value, sort_keys=True, default=str)
        else:
            flat[key] = str(value)
    return flat


def build_record(chunk: Chunk, embedding: list[float], filename: str, timestamp: str) -> VectorRecord:
    metadata = flatten_metadata(chunk.source_fields)
    metadata.update(
        document_id=chunk.document_id,
        owner_id=chunk.owner_id,
        chunk_type=chunk.chunk_type,
        priority=chunk.priority.value,
        text=chunk.text,
        timestamp=timestamp,
        chunk_index=chunk.index,
        total_chunks=chunk.total_chunks,
        filename=filename,
        token_count=estimate_tokens(chunk.text),
    )
    return VectorRecord(id=chunk.vector_id, embedding=embedding, metadata=metadata)


class DocumentIngestor:
    """Runs uploads through extraction, chunking, embedding and storage.

    Parameters
    ----------
    store:
        Vector-store backend receiving the records.
    embedder:
        Embedding client; one batched call per document.
    extractors:
        Extractor registry; defaults to every built-in format.
    chunker:
        Chunker; defaults to a plain :class:`Chunker`.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        extractors: ExtractorRegistry | None = None,
        chunker: Chunker | None = None,
        max_upload_bytes: int = settings.max_upload_bytes,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self._extractors = extractors or ExtractorRegistry()
        self._chunker = chunker or Chunker()
        self.max_upload_bytes = max_upload_bytes

    def ingest(self, request: UploadRequest) -> UploadResult:
        """Index one upload, reporting failure in the result instead of raising."""
        try:
            document, chunks = self._index(request)
        except StructuredRagError as exc:
            logger.warning("Processing failed for %s: %s", request.document_id, exc)
            return UploadResult(success=False, error=str(exc))
        logger.info("Document %s processed: %d chunks", request.document_id, len(chunks))
        return UploadResult(success=True, chunk_count=len(chunks), document=document)

    def delete_document(self, owner_id: str, document_id: str) -> int:
        """Remove every vector of *document_id* from the owner's namespace."""
        namespace = namespace_for(NamespaceKind.DOCUMENTS, owner_id)
        deleted = self._store.delete_by_filter(namespace, [MetadataFilter.equals("document_id", document_id)])
        logger.info("Deleted %d vectors of document %s from %s", deleted, document_id, namespace)
        return deleted

    # -- internals ------------------------------------------------------------

    def _index(self, request: UploadRequest) -> tuple[Document, list[Chunk]]:
        if not request.owner_id or not request.filename:
            raise ValueError("File and owner_id are required")
        if len(request.data) > self.max_upload_bytes:
            raise FileTooLargeError(request.filename, len(request.data), self.max_upload_bytes)

        extraction = self._extractors.extract(request.data, request.mime_type, request.filename)
        document = Document(
            id=request.document_id,
            filename=request.filename,
            owner_id=request.owner_id,
            byte_size=len(request.data),
            declared_type=request.mime_type,
            file_hash=hashlib.sha256(request.data).hexdigest(),
            extracted_text=extraction.text,
            structural_metadata=extraction.structural_metadata,
        )
        logger.info("Extracted %d characters from %s", len(document.extracted_text), document.filename)

        chunks = self._chunker.chunk(
            document.extracted_text, document.structural_metadata, document.id, document.owner_id
        )
        embeddings = self._embedder.embed([c.text for c in chunks])

        timestamp = datetime.now(timezone.utc).isoformat()
        records = [build_record(c, e, document.filename, timestamp) for c, e in zip(chunks, embeddings)]
        self._store.upsert(namespace_for(NamespaceKind.DOCUMENTS, document.owner_id), records)
        return document, chunks
