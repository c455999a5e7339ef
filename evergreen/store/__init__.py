"""
Store — document persistence.

    from evergreen import store

    backend = store.MemoryDocumentStore()
    backend = await store.SQLAlchemyDocumentStore.create(settings.database_url)
"""

from evergreen.store._base import Document, DocumentStore, StoreError
from evergreen.store._memory import MemoryDocumentStore
from evergreen.store._sqlalchemy import SQLAlchemyDocumentStore

__all__ = (
    "Document",
    "DocumentStore",
    "StoreError",
    "MemoryDocumentStore",
    "SQLAlchemyDocumentStore",
)
