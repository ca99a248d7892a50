"""Validation and history-based confidence for structured listing filters.

Filters are flat mappings such as ``{"daMin": 20, "daMax": 60,
"priceMax": 300}``.  :meth:`FilterConfidenceScorer.validate` checks them
in isolation; :meth:`FilterConfidenceScorer.score_against_history`
compares them with the owner's earlier decisions.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from structured_rag.exceptions import StructuredRagError
from structured_rag.ingestion.embedder import EmbeddingClient
from structured_rag.retrieval.base import VectorStoreBase
from structured_rag.retrieval.models import MetadataFilter, VectorRecord
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for

logger = logging.getLogger(__name__)

SCORE_FIELDS = ("daMin", "daMax", "drMin", "drMax", "spamMin", "spamMax")
PRICE_FIELDS = ("priceMin", "priceMax")
RANGE_PAIRS = (
    ("daMin", "daMax", "DA"),
    ("drMin", "drMax", "DR"),
    ("spamMin", "spamMax", "Spam"),
    ("priceMin", "priceMax", "Price"),
)

RANGE_PENALTY = 0.3
ORDER_PENALTY = 0.5
DEFAULT_CONFIDENCE = 0.5
HISTORY_BOOST = 0.2
SIMILARITY_THRESHOLD = 0.7
HISTORY_LIMIT = 10


class ValidationResult(BaseModel):
    is_valid: bool
    confidence: float
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class FilterDecision(BaseModel):
    """A filter set as applied by a user, with its outcome.  Append-only."""

    model_config = ConfigDict(frozen=True)

    owner_id: str
    filters: dict[str, Any]
    confidence: float
    result: Literal["success", "failure"]
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def describe(self) -> str:
        return (
            f"Filter applied: {json.dumps(self.filters, sort_keys=True)} "
            f"with confidence {self.confidence:.2f}. Result: {self.result}"
        )


def _number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _present(value: Any) -> bool:
    return value is not None and value != ""


def filter_similarity(a: dict[str, Any], b: dict[str, Any]) -> float:
    """``0.6 * key overlap + 0.4 * mean value similarity``.

    Values score 1.0 when equal and 0.8 when both are numbers within 10%
    of the larger magnitude.
    """
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    common = [k for k in a if k in b]
    key_similarity = len(common) / max(len(a), len(b))

    value_similarity = 0.0
    for key in common:
        if a[key] == b[key]:
            value_similarity += 1.0
            continue
        x, y = _number(a[key]), _number(b[key])
        if x is not None and y is not None:
            scale = max(abs(x), abs(y))
            if scale and abs(x - y) / scale < 0.1:
                value_similarity += 0.8
    avg_value = value_similarity / len(common) if common else 0.0
    return key_similarity * 0.6 + avg_value * 0.4


class FilterConfidenceScorer:
    """Scores listing filters on their own and against the owner's history.

    Parameters
    ----------
    store:
        Vector-store backend holding filter decisions.
    embedder:
        Embeds decision descriptions when they are recorded.
    """

    def __init__(self, store: VectorStoreBase, embedder: EmbeddingClient) -> None:
        self._store = store
        self._embedder = embedder

    @staticmethod
    def validate(filters: dict[str, Any]) -> ValidationResult:
        """Range-check numeric fields and min/max ordering.

        Confidence starts at 1.0, loses 0.3 per out-of-range field and
        0.5 per inverted min/max pair, and is clamped to ``[0, 1]``.
        """
        errors: list[str] = []
        confidence = 1.0
        for key, value in filters.items():
            if not _present(value):
                continue
            number = _number(value)
            if key in SCORE_FIELDS and (number is None or not 0 <= number <= 100):
                errors.append(f"{key} must be between 0-100")
                confidence -= RANGE_PENALTY
            elif key in PRICE_FIELDS and (number is None or number < 0):
                errors.append(f"{key} must be a positive number")
                confidence -= RANGE_PENALTY

        for low_key, high_key, label in RANGE_PAIRS:
            low, high = _number(filters.get(low_key)), _number(filters.get(high_key))
            if low is not None and high is not None and low > high:
                errors.append(f"{label} minimum cannot be greater than maximum")
                confidence -= ORDER_PENALTY

        return ValidationResult(is_valid=not errors, confidence=min(max(confidence, 0.0), 1.0), errors=errors)

    def score_against_history(self, owner_id: str, filters: dict[str, Any]) -> float:
        """Confidence from similar past decisions of *owner_id*.

        The average confidence of past decisions more than 0.7 similar
        to *filters*, boosted by 0.2 and capped at 1.0.  Without history,
        without similar decisions, or when the store fails: 0.5.
        """
        try:
            history = self.history(owner_id)
        except StructuredRagError:
            logger.warning("Failed to get filter confidence for %s", owner_id, exc_info=True)
            return DEFAULT_CONFIDENCE
        if not history:
            return DEFAULT_CONFIDENCE

        similar = [d for d in history if filter_similarity(filters, d.filters) > SIMILARITY_THRESHOLD]
        if not similar:
            return DEFAULT_CONFIDENCE
        average = sum(d.confidence for d in similar) / len(similar)
        return min(average + HISTORY_BOOST, 1.0)

    def history(self, owner_id: str, limit: int = HISTORY_LIMIT) -> list[FilterDecision]:
        """The owner's *limit* most recent decisions, newest first."""
        namespace = namespace_for(NamespaceKind.FILTER_DECISIONS, owner_id)
        matches = self._store.scan(
            namespace,
            [MetadataFilter.equals("owner_id", owner_id), MetadataFilter.equals("type", "filter_decision")],
        )
        decisions = []
        for match in matches:
            meta = match.metadata
            decisions.append(
                FilterDecision(
                    owner_id=owner_id,
                    filters=json.loads(meta.get("filters") or "{}"),
                    confidence=float(meta.get("confidence", DEFAULT_CONFIDENCE)),
                    result=meta.get("result", "success"),
                    timestamp=str(meta.get("timestamp", "")),
                )
            )
        decisions.sort(key=lambda d: d.timestamp, reverse=True)
        return decisions[:limit]

    def record_decision(
        self,
        owner_id: str,
        filters: dict[str, Any],
        confidence: float,
        result: Literal["success", "failure"],
    ) -> FilterDecision:
        """Append a decision to the owner's history; raises on embedding or store failure."""
        decision = FilterDecision(owner_id=owner_id, filters=filters, confidence=confidence, result=result)
        text = decision.describe()
        record = VectorRecord(
            id=f"filter_{owner_id}_{uuid.uuid4().hex}",
            embedding=self._embedder.embed_one(text),
            metadata={
                "owner_id": owner_id,
                "type": "filter_decision",
                "filters": json.dumps(filters, sort_keys=True, default=str),
                "confidence": confidence,
                "result": result,
                "timestamp": decision.timestamp,
                "text": text,
            },
        )
        self._store.upsert(namespace_for(NamespaceKind.FILTER_DECISIONS, owner_id), [record])
        logger.info("Recorded %s filter decision for %s", result, owner_id)
        return decision
