"""
Cart — a user's pending selections.

Every mutation goes through ``Cart.recomputed()`` before it is written, so a
persisted cart always satisfies ``sub_total == Σ item_total`` and
``total_price == sub_total + shipping_charge``.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import Clock, Quantity, money, quantity, utcnow
from evergreen.config import Settings
from evergreen.domain import Cart, CartItem, Product
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.pricing import PriceQuote, PricingPolicy, best_price
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)


class CartService:
    def __init__(self, repo: Repository, settings: Settings, clock: Clock = utcnow) -> None:
        self._repo = repo
        self._settings = settings
        self._clock = clock
        self._policy = PricingPolicy(honor_expiry=settings.honor_offer_expiry)

    async def quote(self, product: Product) -> PriceQuote:
        category = await self._repo.categories.get(product.category_id)
        return best_price(product, category, now=self._clock(), policy=self._policy)

    async def _load(self, user_id: str) -> Cart:
        cart = await self._repo.carts.get(user_id)
        return cart if cart is not None else Cart.empty(user_id, money(self._settings.shipping_charge))

    async def _save(self, cart: Cart) -> Cart:
        return await self._repo.carts.put(cart.recomputed())

    # ───────────────────────────────────────────────────────────────────────────
    # Operations
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("cart.view")
    async def view(self, user_id: str) -> Result[Cart, CommerceError]:
        """Current cart; created on first view."""
        if await self._repo.users.get(user_id) is None:
            return Error(Errors.not_found("User"))
        async with self._repo.locked("cart", user_id):
            cart = await self._repo.carts.get(user_id)
            if cart is None:
                cart = await self._save(
                    Cart.empty(user_id, money(self._settings.shipping_charge))
                )
        return Ok(cart)

    @boundary("cart.add_item")
    async def add_item(self, user_id: str, product_id: str) -> Result[Cart, CommerceError]:
        """
        New lines start at quantity 1; adding an existing line adds
        ``existing_item_step`` (0.5 by default).
        """
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        product = await self._repo.products.get(product_id)
        if product is None:
            return Error(Errors.not_found("Product"))
        if product.stock <= 0:
            return Error(Errors.out_of_stock())

        quote = await self.quote(product)

        async with self._repo.locked("cart", user_id):
            cart = await self._load(user_id)
            line = cart.line(product_id)
            if line is not None:
                new_qty = line.quantity + self._settings.existing_item_step
                if new_qty > product.stock:
                    return Error(Errors.not_enough_stock())
                item = replace(
                    line,
                    quantity=new_qty,
                    item_total=money(quote.discounted_price * new_qty),
                )
            else:
                if Decimal(1) > product.stock:
                    return Error(Errors.not_enough_stock())
                item = CartItem(
                    product_id=product_id,
                    price=money(product.price),
                    quantity=Decimal(1),
                    item_total=quote.discounted_price,
                )
            cart = await self._save(cart.with_line(item))

        if product_id in user.wishlist:
            async with self._repo.locked("user", user_id):
                fresh = await self._repo.users.get(user_id)
                if fresh is not None:
                    await self._repo.users.put(
                        replace(fresh, wishlist=tuple(p for p in fresh.wishlist if p != product_id))
                    )

        logger.info("cart_item_added", user_id=user_id, product_id=product_id, quantity=str(item.quantity))
        return Ok(cart)

    @boundary("cart.update_quantity")
    async def update_quantity(
        self, user_id: str, product_id: str, new_quantity: Quantity | float | str
    ) -> Result[Cart, CommerceError]:
        qty = quantity(new_quantity)
        if qty < self._settings.existing_item_step:
            return Error(Errors.bad_request(
                f"Quantity must be at least {self._settings.existing_item_step}."
            ))

        async with self._repo.locked("cart", user_id):
            cart = await self._repo.carts.get(user_id)
            if cart is None:
                return Error(Errors.not_found("Cart"))
            line = cart.line(product_id)
            if line is None:
                return Error(Errors.not_found("Item in cart"))
            product = await self._repo.products.get(product_id)
            if product is None:
                return Error(Errors.not_found("Product"))
            if qty > product.stock:
                return Error(Errors.not_enough_stock())

            quote = await self.quote(product)
            item = replace(line, quantity=qty, item_total=money(quote.discounted_price * qty))
            cart = await self._save(cart.with_line(item))

        return Ok(cart)

    @boundary("cart.remove_item")
    async def remove_item(self, user_id: str, product_id: str) -> Result[Cart, CommerceError]:
        async with self._repo.locked("cart", user_id):
            cart = await self._repo.carts.get(user_id)
            if cart is None:
                return Error(Errors.not_found("Cart"))
            if cart.line(product_id) is None:
                return Error(Errors.not_found("Product in cart"))
            cart = await self._save(cart.without_line(product_id))
        return Ok(cart)

    # ───────────────────────────────────────────────────────────────────────────
    # Wishlist
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("wishlist.add")
    async def add_to_wishlist(self, user_id: str, product_id: str) -> Result[tuple[str, ...], CommerceError]:
        if await self._repo.products.get(product_id) is None:
            return Error(Errors.not_found("Product"))
        async with self._repo.locked("user", user_id):
            user = await self._repo.users.get(user_id)
            if user is None:
                return Error(Errors.not_found("User"))
            if product_id in user.wishlist:
                return Error(Errors.bad_request("Product already exists in your wishlist."))
            user = await self._repo.users.put(replace(user, wishlist=(*user.wishlist, product_id)))
        return Ok(user.wishlist)

    @boundary("wishlist.remove")
    async def remove_from_wishlist(self, user_id: str, product_id: str) -> Result[tuple[str, ...], CommerceError]:
        async with self._repo.locked("user", user_id):
            user = await self._repo.users.get(user_id)
            if user is None:
                return Error(Errors.not_found("User"))
            if product_id not in user.wishlist:
                return Error(Errors.not_found("Product in wishlist"))
            user = await self._repo.users.put(
                replace(user, wishlist=tuple(p for p in user.wishlist if p != product_id))
            )
        return Ok(user.wishlist)

    @boundary("wishlist.view")
    async def wishlist(self, user_id: str) -> Result[list[Product], CommerceError]:
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        products = [await self._repo.products.get(pid) for pid in user.wishlist]
        return Ok([p for p in products if p is not None])


__all__ = ("CartService",)
