"""
Payments — gateway callbacks for orders opened at checkout.

``confirm`` checks the callback signature before it touches storage; a
tampered callback never learns whether the gateway order exists.

A payment that lands on an order which can no longer return to Pending
(cancelled while the customer was at the gateway) is not finalized. The
amount goes to the wallet and the order is left where it was.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

import structlog
from kungfu import Error, Ok, Result

from evergreen.checkout import failed
from evergreen.config import Settings
from evergreen.domain import ItemStatus, Order, OrderStatus, PaymentStatus
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.finalization import Finalizer
from evergreen.gateway import to_minor, verify_signature
from evergreen.lifecycle import can_transition
from evergreen.repo import Repository
from evergreen.wallet import WalletLedger

logger = structlog.get_logger(__name__)

ORDER_CLOSED = "This order is no longer open. The payment has been credited to your wallet."


@dataclass(frozen=True, slots=True)
class RetryTicket:
    """What the client needs to reopen the gateway checkout."""

    gateway_order_id: str
    amount: int
    currency: str
    key_id: str


class PaymentService:
    def __init__(
        self,
        repo: Repository,
        settings: Settings,
        finalizer: Finalizer,
        ledger: WalletLedger,
    ) -> None:
        self._repo = repo
        self._settings = settings
        self._finalizer = finalizer
        self._ledger = ledger

    @boundary("payments.confirm")
    async def confirm(
        self,
        gateway_order_id: str,
        payment_id: str,
        signature: str,
    ) -> Result[Order, CommerceError]:
        if not verify_signature(
            self._settings.gateway_key_secret, gateway_order_id, payment_id, signature
        ):
            logger.warning("payment_signature_mismatch", gateway_order_id=gateway_order_id)
            return Error(Errors.invalid_signature())

        async with self._repo.locked("payment", gateway_order_id):
            order = await self._repo.order_by_gateway_id(gateway_order_id)
            if order is None:
                return Error(Errors.not_found("Order"))
            if order.payment_status is PaymentStatus.SUCCESS:
                return Ok(order)
            if not can_transition(order.order_status, OrderStatus.PENDING):
                return await self._credit_closed(order, payment_id)

            paid = replace(
                order,
                payment_status=PaymentStatus.SUCCESS,
                order_status=OrderStatus.PENDING,
                gateway_payment_id=payment_id,
                items=tuple(replace(i, item_status=ItemStatus.PENDING) for i in order.items),
            )
            try:
                result = await self._finalizer.finalize(paid)
            except Exception:
                logger.exception("payment_finalization_crashed", order_number=order.order_number)
                await self._mark_failed(order.id)
                return Error(Errors.payment_failed())

            match result:
                case Ok(final):
                    logger.info("payment_confirmed", order_number=final.order_number)
                    return Ok(final)
                case Error(e):
                    logger.warning(
                        "payment_finalization_failed",
                        order_number=order.order_number,
                        reason=e.message,
                    )
                    await self._mark_failed(order.id)
                    return Error(Errors.payment_failed())

    async def _credit_closed(self, order: Order, payment_id: str) -> Result[Order, CommerceError]:
        """The gateway took money for an order that is closed; hand it back once."""
        if order.payment_status is PaymentStatus.REFUNDED:
            return Error(Errors.bad_request(ORDER_CLOSED))

        match await self._ledger.credit(
            order.user_id, order.total_price, f"Payment for order {order.order_number} returned."
        ):
            case Ok(_):
                pass
            case Error(e):
                return Error(e)

        async with self._repo.locked("order", order.id):
            current = await self._repo.orders.get(order.id) or order
            await self._repo.orders.put(replace(
                current,
                payment_status=PaymentStatus.REFUNDED,
                gateway_payment_id=payment_id,
            ))
        logger.warning(
            "payment_on_closed_order",
            order_number=order.order_number,
            order_status=order.order_status.value,
            amount=str(order.total_price),
        )
        return Error(Errors.bad_request(ORDER_CLOSED))

    async def _mark_failed(self, order_id: str) -> Order | None:
        async with self._repo.locked("order", order_id):
            order = await self._repo.orders.get(order_id)
            if order is None:
                return None
            return await self._repo.orders.put(failed(order))

    @boundary("payments.fail")
    async def fail(self, gateway_order_id: str) -> Result[Order, CommerceError]:
        """Gateway reported a failed payment. No stock, wallet or cart effects."""
        order = await self._repo.order_by_gateway_id(gateway_order_id)
        if order is None:
            return Error(Errors.not_found("Order"))
        updated = await self._mark_failed(order.id)
        if updated is None:
            return Error(Errors.not_found("Order"))
        logger.info("payment_failed", order_number=updated.order_number)
        return Ok(updated)

    @boundary("payments.retry")
    async def retry(self, user_id: str, order_id: str) -> Result[RetryTicket, CommerceError]:
        order = await self._repo.orders.get(order_id)
        if order is None or order.user_id != user_id:
            return Error(Errors.not_found("Order"))
        if order.payment_status not in (PaymentStatus.FAILED, PaymentStatus.PENDING):
            return Error(Errors.bad_request("Payment already completed."))
        if not can_transition(order.order_status, OrderStatus.PENDING):
            return Error(Errors.bad_request("This order can no longer be paid."))
        if order.gateway_order_id is None:
            return Error(Errors.bad_request("This order was not paid online."))

        return Ok(RetryTicket(
            gateway_order_id=order.gateway_order_id,
            amount=to_minor(order.total_price),
            currency=self._settings.currency,
            key_id=self._settings.gateway_key_id,
        ))


__all__ = ("RetryTicket", "PaymentService")
