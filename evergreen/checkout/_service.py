"""
CheckoutService — turn a cart into an order.

The graph assembles a draft; the payment method decides what happens next:

    COD       → cap check → number → finalize            (payment Pending)
    Wallet    → debit     → number → finalize            (payment Success)
    Razorpay  → number    → gateway order → persist      (finalized on confirm)

Nothing is written before the draft is complete and the method's own
precondition (COD cap, wallet balance) has passed.
"""

from __future__ import annotations

from dataclasses import replace

import structlog
from kungfu import Error, Ok, Result

from evergreen import graph as G
from evergreen._types import Clock, money, utcnow
from evergreen.checkout._nodes import DraftNode
from evergreen.checkout._types import (
    CheckoutAbort,
    CheckoutEnv,
    CheckoutRequest,
    CheckoutResult,
    OrderDraft,
)
from evergreen.config import Settings
from evergreen.coupons import SessionCoupons
from evergreen.domain import ItemStatus, Order, OrderStatus, PaymentMethod, PaymentStatus
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.finalization import Finalizer
from evergreen.gateway import GatewayError, PaymentGateway, receipt_for, to_minor
from evergreen.pricing import PricingPolicy
from evergreen.repo import Repository
from evergreen.wallet import WalletLedger

logger = structlog.get_logger(__name__)


def failed(order: Order) -> Order:
    """Order, payment and every item marked Failed."""
    return replace(
        order,
        order_status=OrderStatus.FAILED,
        payment_status=PaymentStatus.FAILED,
        items=tuple(replace(i, item_status=ItemStatus.FAILED) for i in order.items),
    )


class CheckoutService:
    def __init__(
        self,
        repo: Repository,
        settings: Settings,
        ledger: WalletLedger,
        finalizer: Finalizer,
        gateway: PaymentGateway | None = None,
        session: SessionCoupons | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._settings = settings
        self._ledger = ledger
        self._finalizer = finalizer
        self._gateway = gateway
        self._session = session
        self._env = CheckoutEnv(
            repo=repo,
            settings=settings,
            policy=PricingPolicy(honor_expiry=settings.honor_offer_expiry),
            clock=clock,
        )

    async def _draft(self, request: CheckoutRequest) -> Result[OrderDraft, CommerceError]:
        try:
            node = await G.run(DraftNode).inject(request).inject(self._env)
        except CheckoutAbort as abort:
            return Error(abort.error)
        return Ok(node.data)

    async def _numbered(self, order: Order) -> Order:
        return replace(order, order_number=await self._repo.next_order_number(order.created_at.year))

    async def _mark_failed(self, order_id: str) -> None:
        async with self._repo.locked("order", order_id):
            current = await self._repo.orders.get(order_id)
            if current is not None:
                await self._repo.orders.put(failed(current))

    # ───────────────────────────────────────────────────────────────────────────
    # Entry point
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("checkout.create_order")
    async def create_order(self, request: CheckoutRequest) -> Result[CheckoutResult, CommerceError]:
        match await self._draft(request):
            case Ok(draft):
                pass
            case Error(e):
                logger.info("checkout_rejected", user_id=request.user_id, reason=e.message)
                return Error(e)

        match draft.order.payment_method:
            case PaymentMethod.COD:
                result = await self._cod(draft.order)
            case PaymentMethod.WALLET:
                result = await self._wallet(draft.order)
            case PaymentMethod.RAZORPAY:
                result = await self._razorpay(draft.order)

        # once an order exists, successful or not, the applied coupon is spent
        if self._session is not None and (
            isinstance(result, Ok) or await self._repo.orders.get(draft.order.id) is not None
        ):
            self._session.clear(request.user_id)
        return result

    # ───────────────────────────────────────────────────────────────────────────
    # Branches
    # ───────────────────────────────────────────────────────────────────────────

    async def _cod(self, order: Order) -> Result[CheckoutResult, CommerceError]:
        limit = self._settings.cod_limit
        if order.total_price > money(limit):
            return Error(Errors.bad_request(f"Orders above Rs.{limit} are not eligible for COD"))

        order = await self._numbered(order)
        match await self._finalizer.finalize(order):
            case Ok(final):
                logger.info("order_created", order_number=final.order_number, method="COD")
                return Ok(CheckoutResult(final, message="Order placed successfully."))
            case Error(e):
                await self._mark_failed(order.id)
                return Error(e)

    async def _wallet(self, order: Order) -> Result[CheckoutResult, CommerceError]:
        match await self._ledger.debit(order.user_id, order.total_price, "Order payment"):
            case Ok(_):
                pass
            case Error(e):
                return Error(e)

        # from here on every exit that is not a finalized order returns the debit
        order = replace(order, payment_status=PaymentStatus.SUCCESS)
        try:
            order = await self._numbered(order)
            result = await self._finalizer.finalize(order)
        except Exception:
            await self._return_debit(order)
            raise

        match result:
            case Ok(final):
                logger.info("order_created", order_number=final.order_number, method="Wallet")
                return Ok(CheckoutResult(final, message="Order placed successfully."))
            case Error(e):
                await self._return_debit(order)
                return Error(e)

    async def _return_debit(self, order: Order) -> None:
        label = f"Order {order.order_number}" if order.order_number else "Order payment"
        match await self._ledger.credit(order.user_id, order.total_price, f"{label} failed."):
            case Ok(_):
                pass
            case Error(e):
                logger.error(
                    "wallet_debit_not_returned",
                    user_id=order.user_id,
                    amount=str(order.total_price),
                    reason=e.message,
                )
        await self._mark_failed(order.id)

    async def _razorpay(self, order: Order) -> Result[CheckoutResult, CommerceError]:
        if self._gateway is None:
            return Error(Errors.bad_request("Online payments are not available."))

        order = await self._numbered(order)
        try:
            remote = await self._gateway.create_order(
                to_minor(order.total_price),
                receipt_for(order.user_id),
                self._settings.currency,
            )
        except GatewayError:
            return Error(Errors.bad_request("Failed to create Razorpay order"))

        order = await self._repo.orders.put(replace(order, gateway_order_id=remote.id))
        logger.info(
            "order_created",
            order_number=order.order_number,
            method="Razorpay",
            gateway_order_id=remote.id,
        )
        return Ok(CheckoutResult(order, gateway_order=remote, message="Proceed to payment."))


__all__ = ("failed", "CheckoutService")
