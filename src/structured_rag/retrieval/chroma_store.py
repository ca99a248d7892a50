"""Chroma implementation of the vector-store abstraction.

Each namespace maps to its own Chroma collection named after the index
and the namespace, so a query can never cross a namespace boundary.
Collections are created on first use with a fixed cosine metric.
"""

from __future__ import annotations

import hashlib
import logging
import re
import threading
from typing import Any

import chromadb
from chromadb.errors import ChromaError

from structured_rag.config import settings
from structured_rag.exceptions import QueryFailedError, UpsertFailedError, VectorStoreError
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import Match, MetadataFilter, VectorRecord

logger = logging.getLogger(__name__)

MAX_COLLECTION_NAME = 63
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]+")


def _build_chroma_where(filters: list[MetadataFilter] | None) -> dict[str, Any] | None:
    """Convert a list of :class:`MetadataFilter` to Chroma ``where`` syntax."""
    if not filters:
        return None

    _OP_MAP = {
        "eq": "$eq",
        "ne": "$ne",
        "gt": "$gt",
        "gte": "$gte",
        "lt": "$lt",
        "lte": "$lte",
        "in": "$in",
        "nin": "$nin",
    }

    clauses: list[dict[str, Any]] = []
    for f in filters:
        chroma_op = _OP_MAP.get(f.operator)
        if chroma_op is None:
            raise ValueError(f"Unsupported filter operator: {f.operator!r}")
        clauses.append({f.field: {chroma_op: f.value}})

    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def collection_name(index_name: str, namespace: str) -> str:
    """Chroma-safe collection name for *namespace* inside *index_name*."""
    name = _INVALID_NAME_CHARS.sub("-", f"{index_name}__{namespace}").strip("-_.")
    if len(name) > MAX_COLLECTION_NAME:
        digest = hashlib.sha1(name.encode()).hexdigest()[:10]
        name = f"{name[: MAX_COLLECTION_NAME - 11].rstrip('-_.')}-{digest}"
    return name


class ChromaVectorStore(VectorStoreBase):
    """Chroma-backed vector store.

    Parameters
    ----------
    index_name:
        Prefix shared by every collection this store creates.
    client:
        A ready Chroma client (e.g. ``chromadb.EphemeralClient()``).
        When omitted an ``HttpClient`` for *host*/*port* is used.
    host:
        Chroma server hostname.
    port:
        Chroma server port.
    """

    def __init__(
        self,
        index_name: str = settings.index_name,
        *,
        client: Any | None = None,
        host: str = settings.chroma_host,
        port: int = settings.chroma_port,
        **kwargs,  # noqa: ANN003
    ) -> None:
        super().__init__(index_name, **kwargs)
        self._client = client if client is not None else chromadb.HttpClient(host=host, port=port)
        self._collections: dict[str, Any] = {}
        self._lock = threading.Lock()

    # -- collection lifecycle -------------------------------------------------

    def _collection(self, namespace: str) -> Any:
        with self._lock:
            collection = self._collections.get(namespace)
            if collection is not None:
                return collection
            name = collection_name(self.index_name, namespace)
            metadata = {"hnsw:space": "cosine", "namespace": namespace, "index_name": self.index_name}
            try:
                collection = self._client.get_or_create_collection(name, metadata=metadata)
            except ChromaError as exc:
                # another process created it between our check and create
                if "already exists" not in str(exc).lower():
                    raise VectorStoreError(f"Cannot open collection {name}: {exc}") from exc
                collection = self._client.get_collection(name)
            logger.info("Using Chroma collection %s for namespace %s", name, namespace)
            self._collections[namespace] = collection
            return collection

    # -- VectorStoreBase overrides --------------------------------------------

    def upsert(self, namespace: str, records: list[VectorRecord]) -> None:
        if not records:
            return
        try:
            self._collection(namespace).upsert(
                ids=[r.id for r in records],
                embeddings=[r.embedding for r in records],
                metadatas=[r.metadata for r in records],
                documents=[str(r.metadata.get("text", "")) for r in records],
            )
        except Exception as exc:
            raise UpsertFailedError(f"Upsert of {len(records)} records into {namespace} failed: {exc}") from exc

    def query(
        self,
        namespace: str,
        vector: list[float],
        top_k: int,
        filters: list[MetadataFilter] | None = None,
    ) -> list[Match]:
        where = _build_chroma_where(filters)
        try:
            collection = self._collection(namespace)
            if not any(vector):
                # cosine distance to a zero vector is undefined; select by metadata only
                got = collection.get(where=where, limit=top_k, include=["metadatas"])
                return [
                    Match(id=i, score=0.0, metadata=meta or {})
                    for i, meta in zip(got.get("ids", []), got.get("metadatas") or [])
                ]

            n_results = min(top_k, collection.count())
            if n_results == 0:
                return []
            results = collection.query(
                query_embeddings=[vector],
                n_results=n_results,
                where=where,
                include=["metadatas", "distances"],
            )
        except VectorStoreError:
            raise
        except Exception as exc:
            raise QueryFailedError(f"Query against {namespace} failed: {exc}") from exc

        hits: list[Match] = []
        ids = results.get("ids", [[]])[0]
        metas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]
        for record_id, meta, dist in zip(ids, metas, distances):
            # cosine distance is 1 - cosine similarity
            hits.append(Match(id=record_id, score=1.0 - dist, metadata=meta or {}))
        return hits

    def delete(self, namespace: str, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self._collection(namespace).delete(ids=ids)
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Delete from {namespace} failed: {exc}") from exc

    def scan(self, namespace: str, filters: list[MetadataFilter] | None = None) -> list[Match]:
        try:
            got = self._collection(namespace).get(where=_build_chroma_where(filters), include=["metadatas"])
        except VectorStoreError:
            raise
        except Exception as exc:
            raise QueryFailedError(f"Scan of {namespace} failed: {exc}") from exc
        return [
            Match(id=i, score=0.0, metadata=meta or {})
            for i, meta in zip(got.get("ids", []), got.get("metadatas") or [])
        ]

    def delete_by_filter(self, namespace: str, filters: list[MetadataFilter]) -> int:
        if not filters:
            raise ValueError("delete_by_filter requires at least one filter")
        where = _build_chroma_where(filters)
        try:
            collection = self._collection(namespace)
            ids = collection.get(where=where, include=[]).get("ids", [])
            if ids:
                collection.delete(ids=ids)
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(f"Filtered delete from {namespace} failed: {exc}") from exc
        return len(ids)

    def list_namespaces(self) -> list[str]:
        prefix = _INVALID_NAME_CHARS.sub("-", f"{self.index_name}__")
        namespaces = []
        for entry in self._client.list_collections():
            # chromadb 0.6 lists names, later releases list Collection objects
            name = getattr(entry, "name", entry)
            if not name.startswith(prefix):
                continue
            collection = entry if hasattr(entry, "metadata") else self._client.get_collection(name)
            namespaces.append((collection.metadata or {}).get("namespace", name[len(prefix) :]))
        return sorted(namespaces)

    def health_check(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            logger.warning("Chroma health-check failed", exc_info=True)
            return False
