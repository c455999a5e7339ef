"""Tests for the finalization saga and reconciliation."""

from dataclasses import replace
from decimal import Decimal

from conftest import NOW
from kungfu import Error, Ok

from evergreen.domain import (
    FinalizationState,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    Product,
)
from evergreen.errors import ErrorKind


def line(product_id: str, quantity: str, price: str = "100") -> OrderItem:
    qty = Decimal(quantity)
    return OrderItem(
        id=f"i-{product_id}",
        product_id=product_id,
        product_name=product_id,
        price=Decimal(price),
        discounted_price=Decimal(price),
        quantity=qty,
        item_total=Decimal(price) * qty,
    )


def make_order(catalog, *items: OrderItem, number: str = "ORD-2026-00001", **changes) -> Order:
    total = sum((i.item_total for i in items), Decimal("0"))
    order = Order(
        id=f"o-{number}",
        order_number=number,
        user_id="u1",
        items=items,
        address=catalog.address,
        payment_method=PaymentMethod.COD,
        sub_total=total,
        shipping_charge=Decimal("0"),
        total_price=total,
        created_at=NOW,
        coupon_id="k1",
        coupon_code="GREEN10",
    )
    return replace(order, **changes)


class TestFinalize:
    async def test_applies_every_effect(self, services, repo, catalog):
        await services.cart.add_item("u1", "p1")

        result = await services.finalizer.finalize(make_order(catalog, line("p1", "2")))

        assert isinstance(result, Ok)
        order = result.value
        assert order.finalization is FinalizationState.FINALIZED
        assert order.stock_applied and order.cart_cleared
        product = await repo.products.get("p1")
        assert product.stock == Decimal("8")
        assert product.purchase_count == Decimal("2")
        user = await repo.users.get("u1")
        assert user.orders == (order.id,)
        assert user.used_coupons == ("k1",)
        assert await repo.carts.get("u1") is None

    async def test_short_line_rolls_back_everything(self, services, repo, catalog):
        await repo.products.put(Product(
            id="p2", name="Mint", price=Decimal("40"), stock=Decimal("1"), category_id="c1"
        ))
        await services.cart.add_item("u1", "p1")

        result = await services.finalizer.finalize(
            make_order(catalog, line("p1", "2"), line("p2", "5", "40"))
        )

        assert isinstance(result, Error)
        assert result.error.kind is ErrorKind.OUT_OF_STOCK
        p1 = await repo.products.get("p1")
        assert p1.stock == Decimal("10")
        assert p1.purchase_count == Decimal("0")
        assert (await repo.products.get("p2")).stock == Decimal("1")
        user = await repo.users.get("u1")
        assert user.orders == ()
        assert user.used_coupons == ()
        assert await repo.carts.get("u1") is not None

    async def test_stock_never_negative(self, services, repo, catalog):
        await services.finalizer.finalize(make_order(catalog, line("p1", "11")))
        assert (await repo.products.get("p1")).stock == Decimal("10")

    async def test_already_used_coupon_kept_on_rollback(self, services, repo, catalog):
        await repo.users.put(replace(catalog.user, used_coupons=("k1",)))
        await services.finalizer.finalize(make_order(catalog, line("p1", "11")))
        assert (await repo.users.get("u1")).used_coupons == ("k1",)


class TestReconcile:
    async def test_finishes_interrupted_order_once(self, services, repo, catalog):
        await services.cart.add_item("u1", "p1")
        await repo.products.put(replace(catalog.product, stock=Decimal("8")))
        # stock was applied before the process stopped
        stuck = await repo.orders.put(make_order(
            catalog,
            line("p1", "2"),
            finalization=FinalizationState.PENDING,
            stock_applied=True,
        ))

        report = (await services.finalizer.reconcile()).unwrap()

        assert report.finalized == (stuck.order_number,)
        assert report.failed == ()
        assert (await repo.products.get("p1")).stock == Decimal("8")
        assert (await repo.users.get("u1")).orders == (stuck.id,)
        assert await repo.carts.get("u1") is None
        stored = await repo.orders.get(stuck.id)
        assert stored.finalization is FinalizationState.FINALIZED

        again = (await services.finalizer.reconcile()).unwrap()
        assert again.finalized == ()
        assert (await repo.users.get("u1")).orders == (stuck.id,)

    async def test_skips_failed_orders(self, services, repo, catalog):
        await repo.orders.put(make_order(
            catalog,
            line("p1", "1"),
            finalization=FinalizationState.PENDING,
            order_status=OrderStatus.FAILED,
        ))
        report = (await services.finalizer.reconcile()).unwrap()
        assert report.finalized == ()
        assert (await repo.products.get("p1")).stock == Decimal("10")

    async def test_reports_orders_that_still_fail(self, services, repo, catalog):
        stuck = await repo.orders.put(make_order(
            catalog,
            line("p1", "50"),
            finalization=FinalizationState.PENDING,
        ))
        report = (await services.finalizer.reconcile()).unwrap()
        assert report.failed == (stuck.order_number,)
