"""Unit tests for conversation memory and filter confidence scoring."""

from __future__ import annotations

import itertools
import json
from datetime import datetime, timedelta, timezone

import pytest
from langchain_core.messages import AIMessage, HumanMessage

from structured_rag.exceptions import UpsertFailedError
from structured_rag.ingestion.embedder import EMBEDDING_DIMENSIONS, EmbeddingClient
from structured_rag.memory import ConversationMemory, FilterConfidenceScorer, FilterDecision
from structured_rag.memory import conversation as conversation_module
from structured_rag.memory import filters as filters_module
from structured_rag.memory.conversation import render_messages
from structured_rag.memory.filters import filter_similarity
from structured_rag.retrieval.memory_store import InMemoryVectorStore
from structured_rag.retrieval.models import VectorRecord
from structured_rag.retrieval.namespaces import NamespaceKind, namespace_for


@pytest.fixture()
def memory(memory_store: InMemoryVectorStore, embedder: EmbeddingClient) -> ConversationMemory:
    return ConversationMemory(memory_store, embedder)


@pytest.fixture()
def scorer(memory_store: InMemoryVectorStore, embedder: EmbeddingClient) -> FilterConfidenceScorer:
    return FilterConfidenceScorer(memory_store, embedder)


@pytest.fixture()
def ticking_clock(monkeypatch: pytest.MonkeyPatch) -> None:
    """Each ``now()`` is one second after the previous one."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = itertools.count(1)

    class Clock(datetime):
        @classmethod
        def now(cls, tz=None):  # noqa: ANN001, ANN206
            return start + timedelta(seconds=next(ticks))

    monkeypatch.setattr(conversation_module, "datetime", Clock)
    monkeypatch.setattr(filters_module, "datetime", Clock)


# ── Conversation memory ─────────────────────────────────────────────────


class TestConversationMemory:
    def test_render_messages(self) -> None:
        text = render_messages(
            [{"role": "user", "content": "find publishers"}, AIMessage(content="here are three")]
        )
        assert text == "user: find publishers\nai: here are three"

    def test_store_record(self, memory: ConversationMemory, memory_store: InMemoryVectorStore) -> None:
        record = memory.store("u1", [HumanMessage(content="hello"), AIMessage(content="hi")])
        assert record.id.startswith("conv_u1_")
        assert record.is_private is True
        assert record.message_count == 2
        assert record.summary == record.content
        assert memory_store.count(namespace_for(NamespaceKind.CONVERSATIONS, "u1")) == 1

    def test_content_is_truncated(self, memory: ConversationMemory) -> None:
        record = memory.store("u1", [{"role": "user", "content": "x" * 5000}])
        assert len(record.content) == 2000
        assert len(record.summary) == 500

    def test_retrieve_without_query_is_newest_first(self, memory: ConversationMemory) -> None:
        first = memory.store("u1", [{"role": "user", "content": "first"}])
        second = memory.store("u1", [{"role": "user", "content": "second"}], summary="latest")
        records = memory.retrieve("u1")
        assert {r.id for r in records} == {first.id, second.id}
        assert [r.timestamp for r in records] == sorted((r.timestamp for r in records), reverse=True)
        assert next(r for r in records if r.id == second.id).summary == "latest"

    @pytest.mark.usefixtures("ticking_clock")
    def test_retrieve_without_query_keeps_newest(self, memory: ConversationMemory) -> None:
        for i in range(12):
            memory.store("u1", [{"role": "user", "content": f"msg {i}"}])
        records = memory.retrieve("u1", limit=3)
        assert [r.content for r in records] == ["user: msg 11", "user: msg 10", "user: msg 9"]

    def test_retrieve_with_query_ranks_by_similarity(self, memory: ConversationMemory) -> None:
        memory.store("u1", [{"role": "user", "content": "pricing question"}])
        target = memory.store("u1", [{"role": "user", "content": "spam score question"}])
        records = memory.retrieve("u1", limit=1, query="user: spam score question")
        assert [r.id for r in records] == [target.id]

    def test_retrieve_is_owner_scoped(self, memory: ConversationMemory) -> None:
        memory.store("u1", [{"role": "user", "content": "mine"}])
        assert memory.retrieve("u2") == []

    def test_retrieve_degrades_on_failure(self, embedder: EmbeddingClient) -> None:
        class BrokenStore(InMemoryVectorStore):
            def query(self, *args, **kwargs):  # noqa: ANN002, ANN003, ANN201
                from structured_rag.exceptions import QueryFailedError

                raise QueryFailedError("down")

        assert ConversationMemory(BrokenStore(), embedder).retrieve("u1") == []

    def test_store_propagates_failure(self, embedder: EmbeddingClient) -> None:
        small = InMemoryVectorStore(dimensions=8)
        with pytest.raises(UpsertFailedError):
            ConversationMemory(small, embedder).store("u1", [{"role": "user", "content": "x"}])

    def test_delete_user_data_spans_namespaces(
        self, memory: ConversationMemory, memory_store: InMemoryVectorStore, embedder: EmbeddingClient
    ) -> None:
        memory.store("u1", [{"role": "user", "content": "a"}])
        memory.store("u2", [{"role": "user", "content": "b"}])
        docs = namespace_for(NamespaceKind.DOCUMENTS, "u1")
        memory_store.upsert(
            docs,
            [VectorRecord(id="d_chunk_0", embedding=embedder.embed_one("doc"), metadata={"owner_id": "u1"})],
        )

        assert memory.delete_user_data("u1") == 2
        assert memory_store.count(docs) == 0
        assert memory.retrieve("u1") == []
        assert len(memory.retrieve("u2")) == 1


# ── Filter validation ───────────────────────────────────────────────────


class TestFilterValidation:
    def test_valid_filters(self) -> None:
        result = FilterConfidenceScorer.validate({"daMin": 20, "daMax": 60, "priceMax": 300})
        assert result.is_valid
        assert result.confidence == 1.0
        assert result.errors == []

    def test_inverted_range_is_penalised(self) -> None:
        inverted = FilterConfidenceScorer.validate({"daMin": 10, "daMax": 5})
        ordered = FilterConfidenceScorer.validate({"daMin": 5, "daMax": 10})
        assert not inverted.is_valid
        assert inverted.errors == ["DA minimum cannot be greater than maximum"]
        assert inverted.confidence == pytest.approx(0.5)
        assert inverted.confidence < ordered.confidence

    def test_out_of_range_values(self) -> None:
        result = FilterConfidenceScorer.validate({"drMax": 150, "priceMin": -5, "spamMin": "abc"})
        assert len(result.errors) == 3
        assert result.confidence == pytest.approx(0.1)

    def test_blank_values_are_ignored(self) -> None:
        assert FilterConfidenceScorer.validate({"daMin": "", "daMax": None}).is_valid


# ── Filter history ──────────────────────────────────────────────────────


class TestFilterSimilarity:
    def test_identical(self) -> None:
        assert filter_similarity({"daMin": 20}, {"daMin": 20}) == pytest.approx(1.0)

    def test_close_numbers(self) -> None:
        # 0.6 * 1 (same keys) + 0.4 * 0.8 (within 10%)
        assert filter_similarity({"daMin": 100}, {"daMin": 95}) == pytest.approx(0.92)

    def test_disjoint_and_empty(self) -> None:
        assert filter_similarity({"a": 1}, {"b": 1}) == 0.0
        assert filter_similarity({}, {}) == 1.0
        assert filter_similarity({"a": 1}, {}) == 0.0


class TestFilterHistory:
    def test_default_without_history(self, scorer: FilterConfidenceScorer) -> None:
        assert scorer.score_against_history("u1", {"daMin": 20}) == 0.5

    def test_similar_history_is_boosted(self, scorer: FilterConfidenceScorer) -> None:
        scorer.record_decision("u1", {"daMin": 20, "daMax": 60}, 0.6, "success")
        scorer.record_decision("u1", {"daMin": 20, "daMax": 60}, 0.7, "success")
        scorer.record_decision("u1", {"priceMax": 10}, 0.1, "failure")
        assert scorer.score_against_history("u1", {"daMin": 20, "daMax": 60}) == pytest.approx(0.85)

    @pytest.mark.usefixtures("ticking_clock")
    def test_recent_decisions_count_past_the_limit(self, scorer: FilterConfidenceScorer) -> None:
        for _ in range(10):
            scorer.record_decision("u1", {"priceMax": 10}, 0.1, "failure")
        scorer.record_decision("u1", {"daMin": 20, "daMax": 60}, 0.7, "success")

        history = scorer.history("u1")
        assert len(history) == 10
        assert history[0].filters == {"daMin": 20, "daMax": 60}
        assert scorer.score_against_history("u1", {"daMin": 20, "daMax": 60}) == pytest.approx(0.9)

    def test_boost_is_capped(self, scorer: FilterConfidenceScorer) -> None:
        scorer.record_decision("u1", {"daMin": 20}, 0.95, "success")
        assert scorer.score_against_history("u1", {"daMin": 20}) == 1.0

    def test_dissimilar_history_gives_default(self, scorer: FilterConfidenceScorer) -> None:
        scorer.record_decision("u1", {"priceMax": 10}, 0.9, "success")
        assert scorer.score_against_history("u1", {"daMin": 20}) == 0.5

    def test_history_is_per_owner(self, scorer: FilterConfidenceScorer) -> None:
        scorer.record_decision("u2", {"daMin": 20}, 0.9, "success")
        assert scorer.history("u1") == []
        assert scorer.score_against_history("u1", {"daMin": 20}) == 0.5

    def test_record_decision(self, scorer: FilterConfidenceScorer, memory_store: InMemoryVectorStore) -> None:
        decision = scorer.record_decision("u1", {"daMin": 20}, 0.8, "success")
        assert isinstance(decision, FilterDecision)
        assert decision.describe().startswith('Filter applied: {"daMin": 20}')

        namespace = namespace_for(NamespaceKind.FILTER_DECISIONS, "u1")
        (match,) = memory_store.query(namespace, [0.0] * EMBEDDING_DIMENSIONS, 5)
        assert match.id.startswith("filter_u1_")
        assert json.loads(match.metadata["filters"]) == {"daMin": 20}
        assert match.metadata["type"] == "filter_decision"

        (restored,) = scorer.history("u1")
        assert restored.filters == {"daMin": 20}
        assert restored.result == "success"
