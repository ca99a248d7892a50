"""Abstract base class for vector-store backends.

Adding a new backend (Pinecone, Weaviate, Qdrant …) only requires
subclassing :class:`VectorStoreBase` and implementing the abstract
methods.  The rest of the retrieval stack is backend-agnostic.
"""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod

from structured_rag.ingestion.embedder import EMBEDDING_DIMENSIONS
from structured_rag.retrieval.models import Match, MetadataFilter, VectorRecord

# Upper bound on ids enumerated per query-then-delete round.
DELETE_PAGE_SIZE = 1000


class VectorStoreBase(ABC):
    """Backend-agnostic, namespace-scoped vector-store interface.

    Parameters
    ----------
    index_name:
        Logical name of the outer index holding every namespace.
    dimensions:
        Vector length accepted by the index.
    """

    def __init__(self, index_name: str, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        self.index_name = index_name
        self.dimensions = dimensions

    # -- required overrides ---------------------------------------------------

    @abstractmethod
    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        """Insert or replace *records* by id.

        Raises :class:`~structured_rag.exceptions.UpsertFailedError`; no
        partial-application guarantee, callers retry the whole batch.
        """
        ...

    @abstractmethod
    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[Match]:
        """Return up to *top_k* matches in descending score order.

        A zero vector means "no semantic query": matches are selected by
        *filters* alone and carry a score of ``0.0``.

        Raises :class:`~structured_rag.exceptions.QueryFailedError`.
        """
        ...

    @abstractmethod
    def delete(self, namespace: str, ids: list[str]) -> None:
        """Delete records by id.  Unknown ids are ignored."""
        ...

    @abstractmethod
    def list_namespaces(self) -> list[str]:
        ...

    @abstractmethod
    def health_check(self) -> bool:
        """Return ``True`` when the backend is reachable and ready."""
        ...

    # -- optional overrides ---------------------------------------------------

    def scan(self, namespace: str, filters: list[MetadataFilter] | None = None) -> list[Match]:
        """Every record in *namespace* matching *filters*, unranked, score ``0.0``.

        The default is a single unbounded zero-vector query.  Backends
        whose ``query`` caps *top_k* should override this.
        """
        return self.query(namespace, [0.0] * self.dimensions, sys.maxsize, filters)

    def delete_by_filter(self, namespace: str, filters: list[MetadataFilter]) -> int:
        """Delete every record in *namespace* matching *filters*; return the count.

        The default enumerates matching ids with zero-vector queries and
        deletes them page by page.  Backends with a native filtered
        delete should override this.
        """
        if not filters:
            raise ValueError("delete_by_filter requires at least one filter")
        zero = [0.0] * self.dimensions
        deleted = 0
        while True:
            ids = [m.id for m in self.query(namespace, zero, DELETE_PAGE_SIZE, filters)]
            if not ids:
                return deleted
            self.delete(namespace, ids)
            deleted += len(ids)
            if len(ids) < DELETE_PAGE_SIZE:
                return deleted
