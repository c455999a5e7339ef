"""Tests for document stores and the repository over them."""

from dataclasses import replace
from decimal import Decimal

import pytest
from conftest import seed_catalog

from evergreen.domain import TxType, Wallet, WalletTransaction
from evergreen.repo import Repository
from evergreen.store import MemoryDocumentStore, SQLAlchemyDocumentStore


@pytest.fixture(params=["memory", "sqlalchemy"])
async def store(request):
    if request.param == "memory":
        yield MemoryDocumentStore()
        return
    backend = await SQLAlchemyDocumentStore.create("sqlite+aiosqlite:///:memory:")
    yield backend
    await backend.close()


class TestDocumentStore:
    async def test_get_put(self, store):
        assert await store.get("things", "a") is None
        await store.put("things", "a", {"n": 1, "tags": ["x"]})
        assert await store.get("things", "a") == {"n": 1, "tags": ["x"]}

    async def test_put_replaces(self, store):
        await store.put("things", "a", {"n": 1})
        await store.put("things", "a", {"n": 2})
        assert await store.get("things", "a") == {"n": 2}

    async def test_find_scoped_to_collection(self, store):
        await store.put("things", "a", {"n": 1})
        await store.put("things", "b", {"n": 2})
        await store.put("others", "a", {"n": 3})
        found = await store.find("things")
        assert sorted(d["n"] for d in found) == [1, 2]

    async def test_delete(self, store):
        await store.put("things", "a", {"n": 1})
        assert await store.delete("things", "a") is True
        assert await store.delete("things", "a") is False
        assert await store.get("things", "a") is None

    async def test_counters(self, store):
        assert [await store.increment("order:2026") for _ in range(3)] == [1, 2, 3]
        assert await store.increment("order:2027") == 1

    async def test_returned_documents_are_copies(self, store):
        await store.put("things", "a", {"tags": ["x"]})
        doc = await store.get("things", "a")
        doc["tags"].append("y")
        assert await store.get("things", "a") == {"tags": ["x"]}


class TestRepository:
    async def test_round_trip(self, store):
        repo = Repository(store)
        catalog = await seed_catalog(repo)

        assert await repo.products.get("p1") == catalog.product
        assert await repo.coupons.get("k1") == catalog.coupon
        assert await repo.addresses.get("a1") == catalog.address

    async def test_money_survives_as_decimal(self, store):
        repo = Repository(store)
        catalog = await seed_catalog(repo)
        tx = WalletTransaction(
            id="t1",
            amount=Decimal("12.34"),
            date=catalog.coupon.expires_at,
            description="Seed",
            type=TxType.CREDIT,
        )
        await repo.users.put(replace(catalog.user, wallet=Wallet(transactions=(tx,))))

        user = await repo.users.get("u1")

        assert isinstance(user.wallet.balance, Decimal)
        assert user.wallet.balance == Decimal("12.34")
        assert user.wallet.transactions == (tx,)

    async def test_lookups(self, store):
        repo = Repository(store)
        await seed_catalog(repo)
        assert (await repo.coupon_by_code(" green10 ")).id == "k1"
        assert await repo.coupon_by_code("NOPE") is None
        assert await repo.next_order_number(2026) == "ORD-2026-00001"
        assert await repo.next_order_number(2026) == "ORD-2026-00002"
        assert await repo.users.count() == 1
