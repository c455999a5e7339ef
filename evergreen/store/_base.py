"""
Document store — storage protocol.

Collections of JSON-able documents addressed by key, plus named counters
that increment atomically. No multi-document transactions are assumed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

type Document = dict[str, Any]


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(slots=True)
class StoreError(Exception):
    """Storage operation failed."""

    message: str

    def __str__(self) -> str:
        return self.message


# ═══════════════════════════════════════════════════════════════════════════════
# DocumentStore Protocol
# ═══════════════════════════════════════════════════════════════════════════════

class DocumentStore(Protocol):
    """
    Minimal document-database contract.

    Implementations raise ``StoreError`` on backend failure.
    """

    async def get(self, collection: str, key: str) -> Document | None:
        """Fetch one document, None if absent."""
        ...

    async def put(self, collection: str, key: str, document: Document) -> None:
        """Insert or replace."""
        ...

    async def delete(self, collection: str, key: str) -> bool:
        """Remove a document. Returns whether it existed."""
        ...

    async def find(self, collection: str) -> list[Document]:
        """All documents of a collection."""
        ...

    async def increment(self, counter: str) -> int:
        """Atomically add one to a named counter and return the new value."""
        ...


__all__ = ("Document", "StoreError", "DocumentStore")
