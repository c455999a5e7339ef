"""Tests for order creation."""

from dataclasses import replace
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from evergreen.domain import FinalizationState, OrderStatus, PaymentMethod, PaymentStatus
from evergreen.errors import ErrorKind
from evergreen.store import StoreError


async def place(services, make_request, method, total, *, with_coupon=False, **kwargs):
    coupon = None
    if with_coupon:
        coupon = (await services.coupons.apply("u1", "GREEN10")).unwrap()
    return await services.checkout.create_order(make_request(method, total, coupon, **kwargs))


class TestCashOnDelivery:
    async def test_end_to_end_with_coupon(self, services, repo, catalog, make_request):
        await services.cart.add_item("u1", "p1")

        result = await place(services, make_request, "COD", "100", with_coupon=True)

        assert isinstance(result, Ok)
        order = result.value.order
        assert result.value.message == "Order placed successfully."
        assert order.order_number == "ORD-2026-00001"
        assert order.total_price == Decimal("90")
        assert order.coupon_discount == Decimal("10")
        assert order.coupon_code == "GREEN10"
        assert order.payment_method is PaymentMethod.COD
        assert order.payment_status is PaymentStatus.PENDING
        assert order.order_status is OrderStatus.PENDING
        assert order.finalization is FinalizationState.FINALIZED
        assert order.address.city == "Kochi"

        product = await repo.products.get("p1")
        assert product.stock == Decimal("9")
        assert product.purchase_count == Decimal("1")
        assert await repo.carts.get("u1") is None

        user = await repo.users.get("u1")
        assert user.orders == (order.id,)
        assert user.used_coupons == ("k1",)
        assert services.session.get("u1") is None

    async def test_order_numbers_increase(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        first = (await place(services, make_request, "COD", "100")).unwrap()
        await services.cart.add_item("u1", "p1")
        second = (await place(services, make_request, "COD", "100")).unwrap()
        assert first.order.order_number == "ORD-2026-00001"
        assert second.order.order_number == "ORD-2026-00002"

    async def test_above_cap_writes_nothing(self, services, repo, catalog, make_request):
        await services.cart.add_item("u1", "p1")

        result = await place(services, make_request, "COD", "1000.01")

        assert isinstance(result, Error)
        assert result.error.kind is ErrorKind.BAD_REQUEST
        assert (await repo.products.get("p1")).stock == Decimal("10")
        assert await repo.orders.all() == []
        assert await repo.carts.get("u1") is not None

    async def test_cap_is_inclusive(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        assert isinstance(await place(services, make_request, "COD", "1000"), Ok)

    async def test_failed_finalization_clears_applied_coupon(
        self, services, repo, catalog, make_request
    ):
        await services.cart.add_item("u1", "p1")
        real_finalize = services.finalizer.finalize

        async def short_stock(order):
            await repo.products.put(replace(catalog.product, stock=Decimal("0")))
            return await real_finalize(order)

        services.finalizer.finalize = short_stock
        result = await place(services, make_request, "COD", "100", with_coupon=True)

        assert result.error.kind is ErrorKind.OUT_OF_STOCK
        assert services.session.get("u1") is None
        [stored] = await repo.orders.all()
        assert stored.order_status is OrderStatus.FAILED

    async def test_rejected_request_keeps_applied_coupon(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")

        result = await place(
            services, make_request, "COD", "100", with_coupon=True, terms_accepted=False
        )

        assert isinstance(result, Error)
        assert services.session.get("u1") is not None


class TestWallet:
    async def test_insufficient_balance(self, services, repo, catalog, make_request):
        await services.wallet.credit("u1", Decimal("500"), "Seed")
        await services.cart.add_item("u1", "p1")

        result = await place(services, make_request, "Wallet", "600")

        assert result.error.kind is ErrorKind.INSUFFICIENT_BALANCE
        assert (await repo.users.get("u1")).wallet.balance == Decimal("500")
        assert await repo.orders.all() == []

    async def test_paid_from_wallet(self, services, repo, catalog, make_request):
        await services.wallet.credit("u1", Decimal("500"), "Seed")
        await services.cart.add_item("u1", "p1")

        order = (await place(services, make_request, "Wallet", "100")).unwrap().order

        assert order.payment_status is PaymentStatus.SUCCESS
        assert order.finalization is FinalizationState.FINALIZED
        user = await repo.users.get("u1")
        assert user.wallet.balance == Decimal("400")
        assert user.wallet.transactions[-1].description == "Order payment"

    async def test_failed_finalization_credits_back(self, services, repo, catalog, make_request):
        await services.wallet.credit("u1", Decimal("500"), "Seed")
        await services.cart.add_item("u1", "p1")
        order_id = None
        real_finalize = services.finalizer.finalize

        async def short_stock(order):
            # stock drops between pricing and finalization
            nonlocal order_id
            order_id = order.id
            await repo.products.put(replace(catalog.product, stock=Decimal("0")))
            return await real_finalize(order)

        services.finalizer.finalize = short_stock
        result = await place(services, make_request, "Wallet", "100")

        assert result.error.kind is ErrorKind.OUT_OF_STOCK
        user = await repo.users.get("u1")
        assert user.wallet.balance == Decimal("500")
        assert user.wallet.transactions[-1].description.endswith("failed.")
        stored = await repo.orders.get(order_id)
        assert stored.order_status is OrderStatus.FAILED
        assert stored.payment_status is PaymentStatus.FAILED

    async def test_store_failure_after_debit_returns_money(
        self, services, repo, catalog, make_request
    ):
        await services.wallet.credit("u1", Decimal("500"), "Seed")
        await services.cart.add_item("u1", "p1")

        async def counter_down(year):
            raise StoreError("counter unavailable")

        repo.next_order_number = counter_down
        result = await place(services, make_request, "Wallet", "100")

        assert result.error.kind is ErrorKind.INTERNAL
        user = await repo.users.get("u1")
        assert user.wallet.balance == Decimal("500")
        assert user.wallet.transactions[-1].description == "Order payment failed."
        assert await repo.orders.all() == []


class TestRazorpay:
    async def test_opens_gateway_order(self, services, repo, gateway, catalog, make_request):
        await services.cart.add_item("u1", "p1")

        result = (await place(services, make_request, "Razorpay", "100")).unwrap()

        assert result.message == "Proceed to payment."
        assert result.gateway_order.amount == 10000
        assert result.gateway_order.currency == "INR"
        assert len(gateway.orders) == 1
        stored = await repo.orders.get(result.order.id)
        assert stored.gateway_order_id == result.gateway_order.id
        assert stored.finalization is FinalizationState.NOT_STARTED
        assert stored.payment_status is PaymentStatus.PENDING
        assert (await repo.products.get("p1")).stock == Decimal("10")
        assert await repo.carts.get("u1") is not None

    async def test_gateway_failure(self, services, repo, gateway, catalog, make_request):
        gateway.fail = True
        await services.cart.add_item("u1", "p1")

        result = await place(services, make_request, "Razorpay", "100")

        assert result.error.message == "Failed to create Razorpay order"
        assert await repo.orders.all() == []


class TestRejections:
    async def test_terms_not_accepted(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        result = await place(services, make_request, "COD", "100", terms_accepted=False)
        assert result.error.message == "Please accept the terms and conditions."

    async def test_unknown_method(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        result = await place(services, make_request, "Barter", "100")
        assert result.error.message == "Invalid payment method."

    async def test_unknown_address(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        result = await place(services, make_request, "COD", "100", address_id="a-missing")
        assert result.error.message == "Invalid shipping address."

    async def test_empty_cart(self, services, catalog, make_request):
        result = await place(services, make_request, "COD", "100")
        assert result.error.message == "Your cart is empty."

    async def test_stock_changed_since_cart(self, services, repo, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        await repo.products.put(replace(catalog.product, stock=Decimal("0.5")))
        result = await place(services, make_request, "COD", "100")
        assert result.error.kind is ErrorKind.OUT_OF_STOCK
        assert await repo.orders.all() == []


class TestStrictTotals:
    @pytest.fixture
    def settings(self, settings):
        return settings.model_copy(update={"strict_client_totals": True})

    async def test_mismatch_rejected(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        result = await place(services, make_request, "COD", "99")
        assert result.error.kind is ErrorKind.BAD_REQUEST

    async def test_match_accepted(self, services, catalog, make_request):
        await services.cart.add_item("u1", "p1")
        assert isinstance(await place(services, make_request, "COD", "100"), Ok)
