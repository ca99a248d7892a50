"""Domain models for vector records, store matches and retrieval results."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

MetadataValue = Union[str, int, float, bool]

_COMPARATORS = {
    "eq": lambda a, b: a == b,
    "ne": lambda a, b: a != b,
    "gt": lambda a, b: a is not None and a > b,
    "gte": lambda a, b: a is not None and a >= b,
    "lt": lambda a, b: a is not None and a < b,
    "lte": lambda a, b: a is not None and a <= b,
    "in": lambda a, b: a in b,
    "nin": lambda a, b: a not in b,
}


class MetadataFilter(BaseModel):
    """Declarative metadata filter for vector-store queries.

    Filters in a list are ANDed together.

    Attributes
    ----------
    field:
        The metadata key to filter on (e.g. ``"document_id"``, ``"owner_id"``).
    operator:
        Comparison operator, one of ``eq``, ``ne``, ``gt``, ``gte``,
        ``lt``, ``lte``, ``in``, ``nin``.
    value:
        The value (or list of values for ``in`` / ``nin``) to compare against.
    """

    field: str
    operator: str = "eq"
    value: Any = None

    # -- helpers for common filters ------------------------------------------

    @classmethod
    def equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="eq", value=value)

    @classmethod
    def not_equals(cls, field: str, value: Any) -> MetadataFilter:
        return cls(field=field, operator="ne", value=value)

    @classmethod
    def one_of(cls, field: str, values: list[Any]) -> MetadataFilter:
        return cls(field=field, operator="in", value=values)

    def matches(self, metadata: dict[str, Any]) -> bool:
        """Evaluate this filter against one record's metadata."""
        compare = _COMPARATORS.get(self.operator)
        if compare is None:
            raise ValueError(f"Unsupported filter operator: {self.operator!r}")
        try:
            return bool(compare(metadata.get(self.field), self.value))
        except TypeError:
            return False


def matches_all(filters: list[MetadataFilter] | None, metadata: dict[str, Any]) -> bool:
    return all(f.matches(metadata) for f in filters or [])


class VectorRecord(BaseModel):
    """One embedded chunk as stored.

    ``id`` is ``"{document_id}_chunk_{index}"``, so re-upserting a
    document replaces its records instead of duplicating them.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    embedding: list[float]
    metadata: dict[str, MetadataValue] = Field(default_factory=dict)


class Match(BaseModel):
    """A vector-store hit: ``score`` is a similarity, higher is closer."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A chunk admitted into the caller's token budget."""

    text: str
    document_name: str
    chunk_index: int
    score: float
    document_id: str = ""
    chunk_type: str = ""
    priority: str = ""

    @classmethod
    def from_match(cls, match: Match) -> RetrievedChunk:
        meta = match.metadata
        return cls(
            text=str(meta.get("text", "")),
            document_name=str(meta.get("filename", "unknown")),
            chunk_index=int(meta.get("chunk_index", 0)),
            score=match.score,
            document_id=str(meta.get("document_id", "")),
            chunk_type=str(meta.get("chunk_type", "")),
            priority=str(meta.get("priority", "")),
        )
