"""Per-user conversation memory stored alongside documents.

Conversations are embedded and kept in the owner's conversation
namespace, always flagged private.  Listing without a query scans the
owner's records by metadata and keeps the newest.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Union

from pydantic import BaseModel, ConfigDict

from structured_rag.exceptions import StructuredRagError
from structured_rag.ingestion.embedder import EmbeddingClient
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import MetadataFilter, VectorRecord
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for

logger = logging.getLogger(__name__)

CONTENT_CHARS = 2000
SUMMARY_CHARS = 500

# ``{"role": ..., "content": ...}`` dicts or LangChain ``BaseMessage`` objects
Message = Union[Mapping[str, Any], Any]


class ConversationRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    owner_id: str
    type: str = "conversation"
    content: str
    summary: str
    message_count: int
    timestamp: str
    is_private: bool = True

    def to_metadata(self) -> dict[str, Any]:
        # ``text`` keeps conversation records readable by the retriever
        return {**self.model_dump(exclude={"id"}), "text": self.content}

    @classmethod
    def from_metadata(cls, record_id: str, metadata: Mapping[str, Any]) -> ConversationRecord:
        return cls(
            id=record_id,
            owner_id=str(metadata.get("owner_id", "")),
            content=str(metadata.get("content", "")),
            summary=str(metadata.get("summary", "")),
            message_count=int(metadata.get("message_count", 0)),
            timestamp=str(metadata.get("timestamp", "")),
            is_private=bool(metadata.get("is_private", True)),
        )


def render_messages(messages: list[Message]) -> str:
    """One ``role: content`` line per message."""
    lines = []
    for message in messages:
        if isinstance(message, Mapping):
            role, content = message.get("role", "user"), message.get("content", "")
        else:
            role, content = getattr(message, "type", "user"), getattr(message, "content", "")
        lines.append(f"{role}: {content}")
    return "\n".join(lines)


class ConversationMemory:
    """Stores and recalls a user's past conversations.

    Parameters
    ----------
    store:
        Vector-store backend.
    embedder:
        Embeds conversation text and recall queries.
    """

    def __init__(self, store: VectorStoreBase, embedder: EmbeddingClient) -> None:
        self._store = store
        self._embedder = embedder

    def store(self, owner_id: str, messages: list[Message], summary: str | None = None) -> ConversationRecord:
        """Embed and persist one conversation; raises on embedding or store failure."""
        text = render_messages(messages)
        now = datetime.now(timezone.utc)
        record = ConversationRecord(
            id=f"conv_{owner_id}_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}",
            owner_id=owner_id,
            content=text[:CONTENT_CHARS],
            summary=summary or text[:SUMMARY_CHARS],
            message_count=len(messages),
            timestamp=now.isoformat(),
        )
        vector = self._embedder.embed_one(text)
        self._store.upsert(
            namespace_for(NamespaceKind.CONVERSATIONS, owner_id),
            [VectorRecord(id=record.id, embedding=vector, metadata=record.to_metadata())],
        )
        logger.info("Conversation stored with id %s", record.id)
        return record

    def retrieve(self, owner_id: str, limit: int = 10, query: str | None = None) -> list[ConversationRecord]:
        """Return up to *limit* of the owner's conversations.

        With *query* the results are ranked by similarity; without it
        they are a metadata-only selection, newest first.  Failures are
        logged and yield an empty list.
        """
        filters = [MetadataFilter.equals("owner_id", owner_id), MetadataFilter.equals("type", "conversation")]
        namespace = namespace_for(NamespaceKind.CONVERSATIONS, owner_id)
        try:
            if query:
                matches = self._store.query(namespace, self._embedder.embed_one(query), limit, filters)
            else:
                matches = self._store.scan(namespace, filters)
        except StructuredRagError:
            logger.warning("Failed to get conversations for %s", owner_id, exc_info=True)
            return []

        records = [ConversationRecord.from_metadata(m.id, m.metadata) for m in matches]
        if query:
            return records
        records.sort(key=lambda r: r.timestamp, reverse=True)
        return records[:limit]

    def delete_user_data(self, owner_id: str) -> int:
        """Delete every record whose ``owner_id`` matches, in every namespace.

        Returns the number of records deleted.
        """
        deleted = 0
        for namespace in self._store.list_namespaces():
            deleted += self._store.delete_by_filter(namespace, [MetadataFilter.equals("owner_id", owner_id)])
        logger.info("Deleted %d vectors for user %s", deleted, owner_id)
        return deleted
