"""
Refunds — one path for cancellations and approved returns.

Who gets money back is decided by ``REFUND_POLICY``, keyed by scope kind and
payment method. Credits always land in the wallet ledger.

    outcome = await refunds.refund(order.id, WholeOrder())
    outcome = await refunds.refund(order.id, ItemScope(item.id))
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Literal

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import ZERO, Money
from evergreen.domain import (
    ItemStatus,
    Order,
    OrderItem,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    ReturnStatus,
)
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.repo import Repository
from evergreen.wallet import WalletLedger

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Scopes
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class WholeOrder:
    kind: Literal["order"] = "order"


@dataclass(frozen=True, slots=True)
class ItemScope:
    item_id: str
    kind: Literal["item"] = "item"


type RefundScope = WholeOrder | ItemScope


@dataclass(frozen=True, slots=True)
class RefundOutcome:
    amount: Money
    order: Order


# ═══════════════════════════════════════════════════════════════════════════════
# Policy
# ═══════════════════════════════════════════════════════════════════════════════

type RefundRule = Callable[[Order, OrderItem | None], Money]


def _collected(order: Order, _: OrderItem | None) -> Money:
    # only money that actually reached us goes back
    return order.total_price if order.payment_status is PaymentStatus.SUCCESS else ZERO


def _nothing(order: Order, _: OrderItem | None) -> Money:
    return ZERO


def _item_total(order: Order, item: OrderItem | None) -> Money:
    return item.item_total if item is not None else ZERO


REFUND_POLICY: dict[tuple[str, PaymentMethod], RefundRule] = {
    ("order", PaymentMethod.RAZORPAY): _collected,
    ("order", PaymentMethod.WALLET): _collected,
    ("order", PaymentMethod.COD): _nothing,
    ("item", PaymentMethod.RAZORPAY): _item_total,
    ("item", PaymentMethod.WALLET): _item_total,
    ("item", PaymentMethod.COD): _item_total,
}


def refund_amount(scope: RefundScope, order: Order, item: OrderItem | None = None) -> Money:
    return REFUND_POLICY[(scope.kind, order.payment_method)](order, item)


# ═══════════════════════════════════════════════════════════════════════════════
# RefundService
# ═══════════════════════════════════════════════════════════════════════════════

class RefundService:
    def __init__(self, repo: Repository, ledger: WalletLedger) -> None:
        self._repo = repo
        self._ledger = ledger

    @boundary("refunds.refund")
    async def refund(self, order_id: str, scope: RefundScope) -> Result[RefundOutcome, CommerceError]:
        async with self._repo.locked("order", order_id):
            order = await self._repo.orders.get(order_id)
            if order is None:
                return Error(Errors.not_found("Order"))

            match scope:
                case ItemScope(item_id=item_id):
                    item = order.item(item_id)
                    if item is None:
                        return Error(Errors.not_found("Item"))
                    if item.refund_status is RefundStatus.COMPLETED:
                        return Error(Errors.bad_request("This item has already been refunded."))
                    amount = refund_amount(scope, order, item)
                    updated = order.with_item(replace(
                        item,
                        item_status=ItemStatus.RETURNED,
                        return_status=ReturnStatus.APPROVED,
                        refund_status=RefundStatus.COMPLETED,
                    ))
                    description = f"Refund for item {item.product_name}."
                case WholeOrder():
                    if order.payment_status is PaymentStatus.REFUNDED:
                        return Error(Errors.bad_request("This order has already been refunded."))
                    amount = refund_amount(scope, order)
                    updated = (
                        replace(order, payment_status=PaymentStatus.REFUNDED) if amount > 0 else order
                    )
                    description = f"Order {order.order_number} cancelled."

            if amount > 0:
                match await self._ledger.credit(order.user_id, amount, description):
                    case Ok(_):
                        pass
                    case Error(e):
                        return Error(e)

            updated = await self._repo.orders.put(updated)

        logger.info(
            "refund_processed",
            order_number=order.order_number,
            scope=scope.kind,
            amount=str(amount),
        )
        return Ok(RefundOutcome(amount=amount, order=updated))


__all__ = (
    "WholeOrder",
    "ItemScope",
    "RefundScope",
    "RefundOutcome",
    "REFUND_POLICY",
    "refund_amount",
    "RefundService",
)
