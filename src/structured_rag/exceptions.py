"""Exception taxonomy shared by every layer of the engine.

Ingestion errors abort the current document only; retrieval callers
catch :class:`StructuredRagError` and degrade to an empty result.
"""

from __future__ import annotations


class StructuredRagError(Exception):
    """Root of every error raised by this package."""


# -- extraction ---------------------------------------------------------------


class ExtractionError(StructuredRagError):
    """Raw bytes could not be turned into text."""


class UnsupportedTypeError(ExtractionError):
    def __init__(self, declared_type: str | None, filename: str) -> None:
        self.declared_type = declared_type
        self.filename = filename
        super().__init__(f"Unsupported file type: {declared_type or 'unknown'} ({filename})")


class EmptyContentError(ExtractionError):
    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"{filename} contains no readable text")


class MalformedInputError(ExtractionError):
    """The bytes claim a format they do not actually follow."""


class FileTooLargeError(ExtractionError):
    def __init__(self, filename: str, byte_size: int, limit: int) -> None:
        self.filename = filename
        self.byte_size = byte_size
        self.limit = limit
        super().__init__(f"File too large. Maximum size is {limit / (1024 * 1024):g}MB")


class ParserFailureError(ExtractionError):
    """A third-party parser raised while reading the document."""

    def __init__(self, filename: str, cause: BaseException | str) -> None:
        self.filename = filename
        self.cause = cause
        super().__init__(f"Failed to parse {filename}: {cause}")


# -- chunking -----------------------------------------------------------------


class ChunkingError(StructuredRagError):
    """Chunking could not produce a usable chunk list."""


class NoChunksProducedError(ChunkingError):
    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"No chunks produced for document {document_id}")


# -- embedding ----------------------------------------------------------------


class EmbeddingError(StructuredRagError):
    """The remote embedding call failed or returned unusable data."""


class ServiceUnavailableError(EmbeddingError):
    pass


class MalformedResponseError(EmbeddingError):
    pass


class DimensionMismatchError(EmbeddingError):
    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")


# -- vector store -------------------------------------------------------------


class VectorStoreError(StructuredRagError):
    """A vector-store operation failed."""


class NamespaceMissingError(VectorStoreError):
    def __init__(self, namespace: str) -> None:
        self.namespace = namespace
        super().__init__(f"Namespace not found: {namespace!r}")


class UpsertFailedError(VectorStoreError):
    pass


class QueryFailedError(VectorStoreError):
    pass
