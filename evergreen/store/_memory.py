"""
In-memory document store — tests and local development.
"""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict

from evergreen.store._base import Document


class MemoryDocumentStore:
    """Dict-backed store. Documents are copied on the way in and out."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, Document]] = defaultdict(dict)
        self._counters: dict[str, int] = defaultdict(int)
        self._lock = asyncio.Lock()

    async def get(self, collection: str, key: str) -> Document | None:
        async with self._lock:
            doc = self._collections[collection].get(key)
            return copy.deepcopy(doc) if doc is not None else None

    async def put(self, collection: str, key: str, document: Document) -> None:
        async with self._lock:
            self._collections[collection][key] = copy.deepcopy(document)

    async def delete(self, collection: str, key: str) -> bool:
        async with self._lock:
            return self._collections[collection].pop(key, None) is not None

    async def find(self, collection: str) -> list[Document]:
        async with self._lock:
            return [copy.deepcopy(d) for d in self._collections[collection].values()]

    async def increment(self, counter: str) -> int:
        async with self._lock:
            self._counters[counter] += 1
            return self._counters[counter]


__all__ = ("MemoryDocumentStore",)
