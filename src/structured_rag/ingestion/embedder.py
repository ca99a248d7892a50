"""Embedding client pinned to one model/dimension pair.

Ingestion-time and query-time vectors must come from the same model at
the same dimensionality, so both are module constants rather than
settings.  The dimensionality is requested explicitly on every call.
"""

from __future__ import annotations

import logging
import math
from numbers import Real
from typing import TYPE_CHECKING, Any

import openai
from langchain_openai import OpenAIEmbeddings

from structured_rag.config import settings
from structured_rag.exceptions import (
    DimensionMismatchError,
    MalformedResponseError,
    ServiceUnavailableError,
)

if TYPE_CHECKING:
    from langchain_core.embeddings import Embeddings

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSIONS = 1536


def get_embedding_function() -> OpenAIEmbeddings:
    """Return the configured OpenAI embedding function.

    Retries are disabled: retry and backoff belong to the caller.
    """
    kwargs: dict[str, Any] = {
        "model": EMBEDDING_MODEL,
        "dimensions": EMBEDDING_DIMENSIONS,
        "max_retries": 0,
        "request_timeout": settings.embedding_request_timeout,
    }
    if settings.openai_api_key:
        kwargs["api_key"] = settings.openai_api_key
    if settings.openai_base_url:
        logger.info("Using OpenAI-compatible embedding endpoint: %s", settings.openai_base_url)
        kwargs["base_url"] = settings.openai_base_url
    return OpenAIEmbeddings(**kwargs)


class EmbeddingClient:
    """Batched text-to-vector conversion with response validation.

    Parameters
    ----------
    embeddings:
        Any LangChain :class:`~langchain_core.embeddings.Embeddings`.
        Defaults to :func:`get_embedding_function`, created on first use.
    dimensions:
        Expected vector length; anything else is rejected.
    """

    def __init__(self, embeddings: Embeddings | None = None, *, dimensions: int = EMBEDDING_DIMENSIONS) -> None:
        self._embeddings = embeddings
        self.dimensions = dimensions

    @property
    def embeddings(self) -> Embeddings:
        if self._embeddings is None:
            self._embeddings = get_embedding_function()
        return self._embeddings

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in one call, returning one vector per text in order.

        Raises
        ------
        ServiceUnavailableError
            The embedding service could not be reached or returned an error.
        MalformedResponseError
            Wrong number of vectors, or a vector with non-numeric entries.
        DimensionMismatchError
            A vector whose length is not :attr:`dimensions`.
        """
        if not texts:
            return []
        try:
            vectors = self.embeddings.embed_documents(list(texts))
        except openai.OpenAIError as exc:
            raise ServiceUnavailableError(f"Embedding request failed: {exc}") from exc
        checked = self._validate(vectors, expected=len(texts))
        logger.debug("Embedded %d texts", len(texts))
        return checked

    def embed_one(self, text: str) -> list[float]:
        """Embed a single query string."""
        try:
            vector = self.embeddings.embed_query(text)
        except openai.OpenAIError as exc:
            raise ServiceUnavailableError(f"Embedding request failed: {exc}") from exc
        return self._validate([vector], expected=1)[0]

    def _validate(self, vectors: Any, expected: int) -> list[list[float]]:
        if not isinstance(vectors, list) or len(vectors) != expected:
            got = len(vectors) if isinstance(vectors, list) else type(vectors).__name__
            raise MalformedResponseError(f"Expected {expected} embeddings, got {got}")
        checked = []
        for vector in vectors:
            if not isinstance(vector, (list, tuple)) or not all(
                isinstance(x, Real) and not isinstance(x, bool) and math.isfinite(x) for x in vector
            ):
                raise MalformedResponseError("Embedding contains non-numeric values")
            if len(vector) != self.dimensions:
                raise DimensionMismatchError(self.dimensions, len(vector))
            checked.append([float(x) for x in vector])
        return checked
