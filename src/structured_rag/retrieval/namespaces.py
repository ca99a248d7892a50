"""The one place namespace strings are built.

A namespace is the unit of isolation: every query and delete is scoped
to exactly one of them.
"""

from __future__ import annotations

from enum import Enum

from structured_rag.config import settings


class NamespaceKind(str, Enum):
    DOCUMENTS = "documents"
    CONVERSATIONS = "conversations"
    FILTER_DECISIONS = "filter_decisions"
    CATALOG = "catalog"


def namespace_for(kind: NamespaceKind, owner_id: str | None = None) -> str:
    """Return the namespace holding records of *kind* for *owner_id*.

    Per-user kinds require an owner; the catalog is shared and ignores it.
    """
    if kind is NamespaceKind.CATALOG:
        return settings.catalog_namespace
    if not owner_id:
        raise ValueError(f"owner_id is required for {kind.value} namespaces")
    if kind is NamespaceKind.DOCUMENTS:
        return f"user_{owner_id}_docs"
    if kind is NamespaceKind.CONVERSATIONS:
        return f"user_{owner_id}_conversations"
    if kind is NamespaceKind.FILTER_DECISIONS:
        return f"user_{owner_id}_filters"
    raise ValueError(f"Unknown namespace kind: {kind!r}")


def user_namespaces(owner_id: str) -> list[str]:
    """Every per-user namespace that may hold records owned by *owner_id*."""
    return [namespace_for(kind, owner_id) for kind in NamespaceKind if kind is not NamespaceKind.CATALOG]
