"""Process-local vector store for development and tests."""

from __future__ import annotations

import logging
import math
import threading

from structured_rag.config import settings
from structured_rag.exceptions import NamespaceMissingError, UpsertFailedError
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import Match, MetadataFilter, VectorRecord, matches_all

logger = logging.getLogger(__name__)


def cosine_similarity(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if not norm_a or not norm_b:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


class InMemoryVectorStore(VectorStoreBase):
    """Dict-backed store scoring by cosine similarity.

    Filtered deletes go through the query-then-delete default of
    :class:`VectorStoreBase`.
    """

    def __init__(self, index_name: str = settings.index_name, **kwargs) -> None:  # noqa: ANN003
        super().__init__(index_name, **kwargs)
        self._namespaces: dict[str, dict[str, VectorRecord]] = {}
        self._lock = threading.Lock()

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        for record in records:
            if len(record.embedding) != self.dimensions:
                raise UpsertFailedError(
                    f"Record {record.id} has {len(record.embedding)} dimensions, index expects {self.dimensions}"
                )
        with self._lock:
            bucket = self._namespaces.setdefault(namespace, {})
            for record in records:
                bucket[record.id] = record

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[Match]:
        with self._lock:
            records = list(self._namespaces.get(namespace, {}).values())
        semantic = any(vector)
        hits = [
            Match(
                id=r.id,
                score=cosine_similarity(vector, r.embedding) if semantic else 0.0,
                metadata=dict(r.metadata),
            )
            for r in records
            if matches_all(filters, r.metadata)
        ]
        if semantic:
            hits.sort(key=lambda m: m.score, reverse=True)
        return hits[:top_k]

    def delete(self, namespace: str, ids: list[str]) -> None:
        with self._lock:
            bucket = self._namespaces.get(namespace)
            if bucket is None:
                raise NamespaceMissingError(namespace)
            for record_id in ids:
                bucket.pop(record_id, None)

    def list_namespaces(self) -> list[str]:
        with self._lock:
            return sorted(self._namespaces)

    def count(self, namespace: str) -> int:
        with self._lock:
            return len(self._namespaces.get(namespace, {}))

    def health_check(self) -> bool:
        return True
