"""Tests for the cart aggregate and wishlist."""

from dataclasses import replace
from decimal import Decimal

import pytest
from kungfu import Error, Ok

from evergreen.domain import Offer
from evergreen.errors import ErrorKind


def assert_totals(cart):
    assert cart.sub_total == sum((i.item_total for i in cart.items), Decimal("0"))
    assert cart.total_price == cart.sub_total + cart.shipping_charge


class TestView:
    async def test_creates_empty_cart(self, services, catalog):
        result = await services.cart.view("u1")
        assert isinstance(result, Ok)
        cart = result.value
        assert cart.is_empty
        assert cart.total_price == cart.shipping_charge
        assert await services.repo.carts.get("u1") is not None

    async def test_unknown_user(self, services, catalog):
        result = await services.cart.view("nobody")
        assert isinstance(result, Error)
        assert result.error.kind is ErrorKind.NOT_FOUND


class TestAddItem:
    async def test_new_line_starts_at_one(self, services, catalog):
        cart = (await services.cart.add_item("u1", "p1")).unwrap()
        line = cart.line("p1")
        assert line.quantity == Decimal("1")
        assert line.price == Decimal("100")
        assert line.item_total == Decimal("100")
        assert_totals(cart)

    async def test_existing_line_steps_by_half(self, services, catalog):
        await services.cart.add_item("u1", "p1")
        cart = (await services.cart.add_item("u1", "p1")).unwrap()
        assert cart.line("p1").quantity == Decimal("1.5")
        assert cart.line("p1").item_total == Decimal("150")
        assert_totals(cart)

    async def test_item_total_uses_discounted_price(self, services, repo, catalog):
        await repo.products.put(replace(catalog.product, offer=Offer(percentage_discount=Decimal("20"))))
        cart = (await services.cart.add_item("u1", "p1")).unwrap()
        line = cart.line("p1")
        assert line.price == Decimal("100")
        assert line.item_total == Decimal("80")

    async def test_out_of_stock(self, services, repo, catalog):
        await repo.products.put(replace(catalog.product, stock=Decimal("0")))
        result = await services.cart.add_item("u1", "p1")
        assert isinstance(result, Error)
        assert result.error.kind is ErrorKind.OUT_OF_STOCK

    async def test_step_beyond_stock(self, services, repo, catalog):
        await repo.products.put(replace(catalog.product, stock=Decimal("1")))
        await services.cart.add_item("u1", "p1")
        result = await services.cart.add_item("u1", "p1")
        assert isinstance(result, Error)
        assert result.error.message == "Not enough stock available."

    async def test_unknown_product(self, services, catalog):
        result = await services.cart.add_item("u1", "missing")
        assert result.error.kind is ErrorKind.NOT_FOUND

    async def test_removes_product_from_wishlist(self, services, repo, catalog):
        await services.cart.add_to_wishlist("u1", "p1")
        await services.cart.add_item("u1", "p1")
        user = await repo.users.get("u1")
        assert "p1" not in user.wishlist


class TestUpdateQuantity:
    async def test_recomputes(self, services, catalog):
        await services.cart.add_item("u1", "p1")
        cart = (await services.cart.update_quantity("u1", "p1", "2.5")).unwrap()
        assert cart.line("p1").item_total == Decimal("250")
        assert_totals(cart)

    @pytest.mark.parametrize("quantity", ["0", "0.25", "-1"])
    async def test_below_minimum(self, services, catalog, quantity):
        await services.cart.add_item("u1", "p1")
        result = await services.cart.update_quantity("u1", "p1", quantity)
        assert result.error.kind is ErrorKind.BAD_REQUEST

    async def test_above_stock(self, services, catalog):
        await services.cart.add_item("u1", "p1")
        result = await services.cart.update_quantity("u1", "p1", "11")
        assert result.error.kind is ErrorKind.OUT_OF_STOCK

    async def test_missing_cart(self, services, catalog):
        result = await services.cart.update_quantity("u1", "p1", "2")
        assert result.error.kind is ErrorKind.NOT_FOUND

    async def test_missing_line(self, services, catalog):
        await services.cart.view("u1")
        result = await services.cart.update_quantity("u1", "p1", "2")
        assert result.error.kind is ErrorKind.NOT_FOUND


class TestRemoveItem:
    async def test_removes_and_recomputes(self, services, catalog):
        await services.cart.add_item("u1", "p1")
        cart = (await services.cart.remove_item("u1", "p1")).unwrap()
        assert cart.is_empty
        assert cart.sub_total == Decimal("0")
        assert_totals(cart)

    async def test_missing_line(self, services, catalog):
        await services.cart.view("u1")
        result = await services.cart.remove_item("u1", "p1")
        assert result.error.kind is ErrorKind.NOT_FOUND


class TestWishlist:
    async def test_add_view_remove(self, services, catalog):
        assert (await services.cart.add_to_wishlist("u1", "p1")).unwrap() == ("p1",)
        products = (await services.cart.wishlist("u1")).unwrap()
        assert [p.id for p in products] == ["p1"]
        assert (await services.cart.remove_from_wishlist("u1", "p1")).unwrap() == ()

    async def test_duplicate_rejected(self, services, catalog):
        await services.cart.add_to_wishlist("u1", "p1")
        result = await services.cart.add_to_wishlist("u1", "p1")
        assert result.error.kind is ErrorKind.BAD_REQUEST
