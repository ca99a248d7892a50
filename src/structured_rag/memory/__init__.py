"""
Memory — per-user conversation history and filter-decision scoring.

Both reuse the retrieval primitives: records live in per-user namespaces
of the same vector store that holds documents.
"""

from structured_rag.memory.conversation import ConversationMemory, ConversationRecord
from structured_rag.memory.filters import FilterConfidenceScorer, FilterDecision, ValidationResult

__all__ = [
    "ConversationMemory",
    "ConversationRecord",
    "FilterConfidenceScorer",
    "FilterDecision",
    "ValidationResult",
]
