"""Token-budgeted retriever over a user's document namespace.

Usage::

    from structured_rag.retrieval.retriever import Retriever

    retriever = Retriever(store, embedder)
    for chunk in retriever.retrieve("score trends", owner_id="42", top_k=5, max_tokens=1500):
        print(chunk.document_name, chunk.chunk_index, chunk.text[:80])
"""

from __future__ import annotations

import logging
import math
from typing import Any

from structured_rag.config import settings
from structured_rag.exceptions import StructuredRagError
from structured_rag.ingestion.embedder import EmbeddingClient
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import MetadataFilter, RetrievedChunk
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for

logger = logging.getLogger(__name__)

OVERFETCH_FACTOR = 2


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters, rounded up.

    This is not tied to any tokenizer; treat budgets built on it as
    approximate.
    """
    return math.ceil(len(text) / 4)


class Retriever:
    """Similarity search followed by greedy admission into a token budget.

    Parameters
    ----------
    store:
        A concrete vector-store backend.
    embedder:
        Client used to embed query text.
    default_top_k:
        Result cap used when :meth:`retrieve` gets no ``top_k``.
    default_max_tokens:
        Budget used when :meth:`retrieve` gets no ``max_tokens``.
    """

    def __init__(
        self,
        store: VectorStoreBase,
        embedder: EmbeddingClient,
        *,
        default_top_k: int = settings.retrieval_top_k,
        default_max_tokens: int = settings.retrieval_max_tokens,
    ) -> None:
        self._store = store
        self._embedder = embedder
        self.default_top_k = default_top_k
        self.default_max_tokens = default_max_tokens

    # -- public API -----------------------------------------------------------

    def retrieve(
        self,
        query_text: str,
        owner_id: str,
        top_k: int | None = None,
        max_tokens: int | None = None,
        document_filter: list[str] | None = None,
    ) -> list[RetrievedChunk]:
        """Return the most relevant chunks that fit in *max_tokens*.

        Candidates (``2 * top_k`` of them) are walked in descending score
        order and admitted while the running token estimate stays within
        budget.  The walk stops at the first candidate that does not fit,
        so the result is always a prefix of the ranking.  Embedding or
        store failures are logged and yield an empty list.

        Parameters
        ----------
        query_text:
            Natural-language query.
        owner_id:
            Whose document namespace to search.
        top_k:
            Maximum number of chunks returned.
        max_tokens:
            Budget for the summed :func:`estimate_tokens` of the results.
        document_filter:
            Restrict the search to these document ids.
        """
        top_k = self.default_top_k if top_k is None else top_k
        max_tokens = self.default_max_tokens if max_tokens is None else max_tokens
        filters = [MetadataFilter.one_of("document_id", document_filter)] if document_filter else None
        namespace = namespace_for(NamespaceKind.DOCUMENTS, owner_id)

        try:
            vector = self._embedder.embed_one(query_text)
            matches = self._store.query(namespace, vector, top_k * OVERFETCH_FACTOR, filters)
        except StructuredRagError:
            logger.warning("Retrieval failed for namespace %s; returning no context", namespace, exc_info=True)
            return []

        admitted: list[RetrievedChunk] = []
        used = 0
        for match in sorted(matches, key=lambda m: m.score, reverse=True):
            chunk = RetrievedChunk.from_match(match)
            cost = estimate_tokens(chunk.text)
            if used + cost > max_tokens:
                break
            admitted.append(chunk)
            used += cost
            if len(admitted) == top_k:
                break

        logger.info(
            "Retrieved %d/%d candidates (%d estimated tokens) from %s",
            len(admitted), len(matches), used, namespace,
        )
        return admitted

    # -- LangChain compat -----------------------------------------------------

    def as_langchain_retriever(self, owner_id: str, top_k: int | None = None, max_tokens: int | None = None) -> Any:
        """Return a thin LangChain-compatible retriever bound to *owner_id*.

        This intentionally imports LangChain only here so that the rest
        of the retrieval package has no LangChain retriever dependency.
        """
        from langchain_core.documents import Document
        from langchain_core.retrievers import BaseRetriever

        outer = self

        class _LCRetriever(BaseRetriever):
            """Adapter that satisfies LangChain's retriever protocol."""

            def _get_relevant_documents(self_inner, query: str, **kwargs: Any) -> list[Document]:  # type: ignore[override]  # noqa: N805
                chunks = outer.retrieve(query, owner_id, top_k=top_k, max_tokens=max_tokens)
                return [
                    Document(
                        page_content=c.text,
                        metadata=c.model_dump(exclude={"text"}),
                    )
                    for c in chunks
                ]

        return _LCRetriever()
