"""
Repository — typed collections over a document store.

Domain records are frozen dataclasses; pydantic ``TypeAdapter`` turns them
into JSON-able documents and back.

    repo = Repository(MemoryDocumentStore())
    await repo.products.put(product)
    product = await repo.products.get("p-1")

    async with repo.locked("user", user_id):
        ...  # read-modify-write of one user document
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from pydantic import TypeAdapter

from evergreen.domain import Address, Cart, Category, Coupon, Order, Product, TopUp, User
from evergreen.store import DocumentStore


# ═══════════════════════════════════════════════════════════════════════════════
# Collection[T]
# ═══════════════════════════════════════════════════════════════════════════════

class Collection[T]:
    """One named collection of records of type T."""

    __slots__ = ("_store", "_name", "_adapter", "_key")

    def __init__(
        self,
        store: DocumentStore,
        name: str,
        model: type[T],
        key: Callable[[T], str],
    ) -> None:
        self._store = store
        self._name = name
        self._adapter: TypeAdapter[T] = TypeAdapter(model)
        self._key = key

    @property
    def name(self) -> str:
        return self._name

    def _decode(self, document: dict) -> T:
        return self._adapter.validate_python(document)

    def _encode(self, value: T) -> dict:
        return self._adapter.dump_python(value, mode="json")

    async def get(self, key: str | None) -> T | None:
        if key is None:
            return None
        document = await self._store.get(self._name, key)
        return self._decode(document) if document is not None else None

    async def put(self, value: T) -> T:
        await self._store.put(self._name, self._key(value), self._encode(value))
        return value

    async def delete(self, key: str) -> bool:
        return await self._store.delete(self._name, key)

    async def all(self) -> list[T]:
        return [self._decode(d) for d in await self._store.find(self._name)]

    async def find(self, predicate: Callable[[T], bool]) -> list[T]:
        return [v for v in await self.all() if predicate(v)]

    async def first(self, predicate: Callable[[T], bool]) -> T | None:
        return next((v for v in await self.all() if predicate(v)), None)

    async def count(self) -> int:
        return len(await self._store.find(self._name))


# ═══════════════════════════════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════════════════════════════

class Repository:
    """All commerce collections plus keyed locks and the order counter."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        self.categories = Collection(store, "categories", Category, lambda c: c.id)
        self.products = Collection(store, "products", Product, lambda p: p.id)
        self.addresses = Collection(store, "addresses", Address, lambda a: a.id)
        self.users = Collection(store, "users", User, lambda u: u.id)
        self.carts = Collection(store, "carts", Cart, lambda c: c.user_id)
        self.coupons = Collection(store, "coupons", Coupon, lambda c: c.id)
        self.orders = Collection(store, "orders", Order, lambda o: o.id)
        self.top_ups = Collection(store, "top_ups", TopUp, lambda t: t.gateway_order_id)

    @property
    def store(self) -> DocumentStore:
        return self._store

    @asynccontextmanager
    async def locked(self, kind: str, key: str) -> AsyncIterator[None]:
        """
        Serialize read-modify-write on one document.

        Locks are not reentrant: never nest two locks on the same key.
        """
        async with self._locks[f"{kind}:{key}"]:
            yield

    async def next_order_number(self, year: int) -> str:
        seq = await self._store.increment(f"order:{year}")
        return f"ORD-{year}-{seq:05d}"

    async def coupon_by_code(self, code: str) -> Coupon | None:
        wanted = code.strip().upper()
        return await self.coupons.first(lambda c: c.code.upper() == wanted)

    async def order_by_gateway_id(self, gateway_order_id: str) -> Order | None:
        return await self.orders.first(lambda o: o.gateway_order_id == gateway_order_id)


__all__ = ("Collection", "Repository")
