"""Unit tests for the upload pipeline — extract, chunk, embed, upsert."""

from __future__ import annotations

import hashlib

import pytest
from langchain_core.embeddings import Embeddings

from structured_rag.ingestion.embedder import EMBEDDING_DIMENSIONS, EmbeddingClient
from structured_rag.ingestion.models import Chunk, Priority
from structured_rag.ingestion.pipeline import DocumentIngestor, UploadRequest, build_record, flatten_metadata
from structured_rag.retrieval.memory_store import InMemoryVectorStore
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for
from structured_rag.retrieval.retriever import Retriever

CSV_BYTES = b"name,score\nA,10\nB,90\n"
DOCS = namespace_for(NamespaceKind.DOCUMENTS, "u1")


@pytest.fixture()
def ingestor(memory_store: InMemoryVectorStore, embedder: EmbeddingClient) -> DocumentIngestor:
    return DocumentIngestor(memory_store, embedder)


def _upload(document_id: str = "doc1", data: bytes = CSV_BYTES, **overrides) -> UploadRequest:  # noqa: ANN003
    fields = {"filename": "scores.csv", "mime_type": "text/csv", "owner_id": "u1", **overrides}
    return UploadRequest(document_id=document_id, data=data, **fields)


# ── Metadata flattening ─────────────────────────────────────────────────


class TestFlattenMetadata:
    def test_scalars_lists_and_mappings(self) -> None:
        flat = flatten_metadata(
            {"a": 1, "b": ["x", "y"], "c": {"k": 1}, "d": None, "e": True, "f": 2.5}
        )
        assert flat == {"a": 1, "b": "x, y", "c": '{"k": 1}', "e": True, "f": 2.5}

    def test_reserved_keys_win(self) -> None:
        chunk = Chunk(
            document_id="doc1",
            owner_id="u1",
            index=2,
            text="abcdefgh",
            chunk_type="csv_rows",
            priority=Priority.LOW,
            total_chunks=5,
            source_fields={"document_id": "spoofed", "row_start": 1},
        )
        record = build_record(chunk, [0.1] * EMBEDDING_DIMENSIONS, "scores.csv", "2024-01-01T00:00:00+00:00")
        assert record.id == "doc1_chunk_2"
        assert record.metadata["document_id"] == "doc1"
        assert record.metadata["row_start"] == 1
        assert record.metadata["priority"] == "low"
        assert record.metadata["token_count"] == 2
        assert record.metadata["total_chunks"] == 5


# ── Ingestion ───────────────────────────────────────────────────────────


class TestDocumentIngestor:
    def test_csv_end_to_end(self, ingestor: DocumentIngestor, memory_store: InMemoryVectorStore) -> None:
        result = ingestor.ingest(_upload())
        assert result.success
        assert result.error is None
        assert result.chunk_count == 5
        assert memory_store.count(DOCS) == 5

        document = result.document
        assert document.file_hash == hashlib.sha256(CSV_BYTES).hexdigest()
        assert document.byte_size == len(CSV_BYTES)
        assert document.structural_metadata.kind == "csv"

        (first,) = memory_store.query(DOCS, [0.0] * EMBEDDING_DIMENSIONS, 1)
        assert first.id == "doc1_chunk_0"
        assert first.metadata["filename"] == "scores.csv"
        assert first.metadata["chunk_type"] == "csv_summary"
        assert first.metadata["headers"] == "name, score"

    def test_indexed_chunks_are_retrievable(
        self, ingestor: DocumentIngestor, memory_store: InMemoryVectorStore, embedder: EmbeddingClient
    ) -> None:
        ingestor.ingest(_upload())
        chunks = Retriever(memory_store, embedder).retrieve("score statistics", "u1", top_k=5, max_tokens=10_000)
        assert len(chunks) == 5
        assert {c.document_name for c in chunks} == {"scores.csv"}

    def test_reupload_replaces_records(self, ingestor: DocumentIngestor, memory_store: InMemoryVectorStore) -> None:
        ingestor.ingest(_upload())
        ingestor.ingest(_upload())
        assert memory_store.count(DOCS) == 5

    def test_delete_document_only_removes_that_document(
        self, ingestor: DocumentIngestor, memory_store: InMemoryVectorStore
    ) -> None:
        ingestor.ingest(_upload("doc1"))
        ingestor.ingest(_upload("doc2", data=b"Plain notes about the quarter.", filename="notes.txt", mime_type=None))
        assert ingestor.delete_document("u1", "doc1") == 5
        remaining = memory_store.query(DOCS, [0.0] * EMBEDDING_DIMENSIONS, 100)
        assert {m.metadata["document_id"] for m in remaining} == {"doc2"}

    def test_docx_upload(self, ingestor: DocumentIngestor, docx_bytes: bytes) -> None:
        result = ingestor.ingest(_upload(data=docx_bytes, filename="report.docx", mime_type=None))
        assert result.success, result.error
        assert result.document.structural_metadata.kind == "docx"

    @pytest.mark.parametrize(
        ("overrides", "data", "message"),
        [
            ({"mime_type": "image/png", "filename": "x.png"}, b"\x89PNG", "Unsupported file type"),
            ({"filename": "empty.txt", "mime_type": "text/plain"}, b"   \n ", "contains no readable text"),
            ({"filename": "bad.json", "mime_type": None}, b"{oops", "Invalid JSON"),
            ({"filename": "a.csv"}, b'a,"b\n', "Unterminated"),
        ],
    )
    def test_extraction_failures_are_reported(
        self,
        ingestor: DocumentIngestor,
        memory_store: InMemoryVectorStore,
        overrides: dict,
        data: bytes,
        message: str,
    ) -> None:
        result = ingestor.ingest(_upload(data=data, **overrides))
        assert not result.success
        assert message in result.error
        assert result.chunk_count == 0
        assert memory_store.list_namespaces() == []

    def test_file_too_large(self, memory_store: InMemoryVectorStore, embedder: EmbeddingClient) -> None:
        ingestor = DocumentIngestor(memory_store, embedder, max_upload_bytes=10)
        result = ingestor.ingest(_upload())
        assert not result.success
        assert result.error.startswith("File too large")

    def test_embedding_failure_upserts_nothing(self, memory_store: InMemoryVectorStore) -> None:
        class HalfEmbeddings(Embeddings):
            def embed_documents(self, texts: list[str]) -> list[list[float]]:
                return [[0.1] * EMBEDDING_DIMENSIONS for _ in texts[:-1]]

            def embed_query(self, text: str) -> list[float]:
                return [0.1] * EMBEDDING_DIMENSIONS

        ingestor = DocumentIngestor(memory_store, EmbeddingClient(HalfEmbeddings()))
        result = ingestor.ingest(_upload())
        assert not result.success
        assert "Expected 5 embeddings" in result.error
        assert memory_store.count(DOCS) == 0

    def test_owner_and_filename_required(self, ingestor: DocumentIngestor) -> None:
        with pytest.raises(ValueError, match="owner_id"):
            ingestor.ingest(_upload(owner_id=""))
