"""
Checkout graph — everything an order needs, gathered concurrently.

    RequestNode ─┬─ UserNode ────┐
                 ├─ CartNode ────┼─ CouponNode ─┐
                 ├─ AddressNode ─┤              ├─ DraftNode
                 └───────────────┴─ LinesNode ──┘

Nodes raise ``CheckoutAbort`` to stop the run with a user-facing error.
"""

from datetime import datetime

import combinators as C
from kungfu import Error, LazyCoroResult, Ok, Result

from evergreen import graph as G
from evergreen._types import ZERO, Money, money, new_id
from evergreen.checkout._types import CheckoutAbort, CheckoutEnv, CheckoutRequest, OrderDraft
from evergreen.coupons import check_coupon
from evergreen.domain import (
    Address,
    Cart,
    CartItem,
    Coupon,
    ItemStatus,
    Order,
    OrderItem,
    PaymentMethod,
    User,
)
from evergreen.errors import CommerceError, Errors
from evergreen.pricing import best_price


# ═══════════════════════════════════════════════════════════════════════════════
# Inputs
# ═══════════════════════════════════════════════════════════════════════════════

@G.node
class RequestNode:
    """Entry point: the submitted request plus the instant it is priced at."""

    def __init__(self, data: CheckoutRequest, method: PaymentMethod, now: datetime) -> None:
        self.data = data
        self.method = method
        self.now = now

    @classmethod
    def __compose__(cls, request: CheckoutRequest, env: CheckoutEnv) -> "RequestNode":
        if not request.terms_accepted:
            raise CheckoutAbort(Errors.bad_request("Please accept the terms and conditions."))
        try:
            method = PaymentMethod(request.payment_method)
        except ValueError:
            raise CheckoutAbort(Errors.bad_request("Invalid payment method.")) from None
        return cls(request, method, env.clock())


@G.node
class UserNode:
    def __init__(self, data: User) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, env: CheckoutEnv) -> "UserNode":
        user = await env.repo.users.get(request.data.user_id)
        if user is None:
            raise CheckoutAbort(Errors.not_found("User"))
        return cls(user)


@G.node
class CartNode:
    def __init__(self, data: Cart) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, env: CheckoutEnv) -> "CartNode":
        cart = await env.repo.carts.get(request.data.user_id)
        if cart is None or cart.is_empty:
            raise CheckoutAbort(Errors.bad_request("Your cart is empty."))
        return cls(cart)


@G.node
class AddressNode:
    def __init__(self, data: Address) -> None:
        self.data = data

    @classmethod
    async def __compose__(cls, request: RequestNode, env: CheckoutEnv) -> "AddressNode":
        address = await env.repo.addresses.get(request.data.address_id)
        if address is None or address.user_id != request.data.user_id:
            raise CheckoutAbort(Errors.bad_request("Invalid shipping address."))
        return cls(address)


# ═══════════════════════════════════════════════════════════════════════════════
# Coupon (recomputed server-side)
# ═══════════════════════════════════════════════════════════════════════════════

@G.node
class CouponNode:
    """The applied coupon re-validated against the cart, or nothing."""

    def __init__(self, coupon: Coupon | None, discount: Money) -> None:
        self.coupon = coupon
        self.discount = discount

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        user: UserNode,
        cart: CartNode,
        env: CheckoutEnv,
    ) -> "CouponNode":
        applied = request.data.coupon
        if applied is None:
            return cls(None, ZERO)

        coupon = await env.repo.coupons.get(applied.coupon_id)
        if coupon is None:
            raise CheckoutAbort(Errors.invalid_coupon())

        match check_coupon(coupon, user.data, cart.data, request.now):
            case Ok(valid):
                return cls(valid, valid.discount_for(cart.data.sub_total))
            case Error(e):
                raise CheckoutAbort(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Lines (each re-priced at this instant)
# ═══════════════════════════════════════════════════════════════════════════════

@G.node
class LinesNode:
    def __init__(self, data: tuple[OrderItem, ...]) -> None:
        self.data = data

    @classmethod
    async def __compose__(
        cls,
        request: RequestNode,
        cart: CartNode,
        env: CheckoutEnv,
    ) -> "LinesNode":
        async def price_line(line: CartItem) -> Result[OrderItem, CommerceError]:
            product = await env.repo.products.get(line.product_id)
            if product is None:
                return Error(Errors.not_found("Product"))
            if line.quantity > product.stock:
                return Error(Errors.not_enough_stock())
            category = await env.repo.categories.get(product.category_id)
            quote = best_price(product, category, now=request.now, policy=env.policy)
            return Ok(OrderItem(
                id=new_id(),
                product_id=product.id,
                product_name=product.name,
                category_id=product.category_id,
                price=line.price,
                discounted_price=quote.discounted_price,
                quantity=line.quantity,
                item_total=money(quote.discounted_price * line.quantity),
                item_status=ItemStatus.PENDING,
            ))

        result = await C.traverse_par(
            list(cart.data.items),
            lambda line: LazyCoroResult(lambda: price_line(line)),
        )
        match result:
            case Ok(items):
                return cls(tuple(items))
            case Error(e):
                raise CheckoutAbort(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Draft
# ═══════════════════════════════════════════════════════════════════════════════

@G.node
class DraftNode:
    """Final node: the unnumbered, unpersisted order."""

    def __init__(self, data: OrderDraft) -> None:
        self.data = data

    @classmethod
    def __compose__(
        cls,
        request: RequestNode,
        user: UserNode,
        cart: CartNode,
        address: AddressNode,
        coupon: CouponNode,
        lines: LinesNode,
        env: CheckoutEnv,
    ) -> "DraftNode":
        declared = money(request.data.total_price)
        server_total = cart.data.total_price
        if env.settings.strict_client_totals and declared != server_total:
            raise CheckoutAbort(Errors.bad_request(
                "Cart total has changed. Please review your order."
            ))

        order = Order(
            id=new_id(),
            order_number="",
            user_id=user.data.id,
            items=lines.data,
            address=address.data,
            payment_method=request.method,
            sub_total=cart.data.sub_total,
            shipping_charge=cart.data.shipping_charge,
            total_price=money(declared - coupon.discount),
            created_at=request.now,
            coupon_id=coupon.coupon.id if coupon.coupon is not None else None,
            coupon_code=coupon.coupon.code if coupon.coupon is not None else None,
            coupon_discount=coupon.discount,
            terms_accepted=request.data.terms_accepted,
        )
        return cls(OrderDraft(order=order, user=user.data))


__all__ = (
    "RequestNode",
    "UserNode",
    "CartNode",
    "AddressNode",
    "CouponNode",
    "LinesNode",
    "DraftNode",
)
