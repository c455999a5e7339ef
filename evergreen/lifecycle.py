"""
Order lifecycle — status tables and the operations that move orders.

Every status change goes through ``can_transition``. Staying in the same
state is always allowed; anything not listed fails with IllegalTransition.

    Pending ─→ Processing ─→ Shipped ─→ Delivered ─→ Returned | Exchanged
       │            │           │
       └────────────┴───────────┴─→ Cancelled | Failed
    Failed ─→ Pending (payment retried) | Cancelled

Items follow the same track with Out for Delivery between Shipped and
Delivered.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, replace

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import Money
from evergreen.domain import (
    ExchangeStatus,
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RefundStatus,
    ReturnStatus,
)
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.refunds import ItemScope, RefundService, WholeOrder
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Transition tables
# ═══════════════════════════════════════════════════════════════════════════════

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    }),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    }),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
        OrderStatus.FAILED,
    }),
    OrderStatus.FAILED: frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED, OrderStatus.EXCHANGED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
    OrderStatus.EXCHANGED: frozenset(),
}

ITEM_TRANSITIONS: dict[ItemStatus, frozenset[ItemStatus]] = {
    ItemStatus.PENDING: frozenset({
        ItemStatus.PROCESSING,
        ItemStatus.SHIPPED,
        ItemStatus.OUT_FOR_DELIVERY,
        ItemStatus.DELIVERED,
        ItemStatus.CANCELLED,
        ItemStatus.FAILED,
    }),
    ItemStatus.PROCESSING: frozenset({
        ItemStatus.SHIPPED,
        ItemStatus.OUT_FOR_DELIVERY,
        ItemStatus.DELIVERED,
        ItemStatus.CANCELLED,
        ItemStatus.FAILED,
    }),
    ItemStatus.SHIPPED: frozenset({
        ItemStatus.OUT_FOR_DELIVERY,
        ItemStatus.DELIVERED,
        ItemStatus.CANCELLED,
        ItemStatus.FAILED,
    }),
    ItemStatus.OUT_FOR_DELIVERY: frozenset({
        ItemStatus.DELIVERED,
        ItemStatus.CANCELLED,
        ItemStatus.FAILED,
    }),
    ItemStatus.FAILED: frozenset({ItemStatus.PENDING, ItemStatus.CANCELLED}),
    ItemStatus.DELIVERED: frozenset({ItemStatus.RETURNED, ItemStatus.EXCHANGED}),
    ItemStatus.CANCELLED: frozenset(),
    ItemStatus.RETURNED: frozenset(),
    ItemStatus.EXCHANGED: frozenset(),
}


def can_transition(current: OrderStatus | ItemStatus, target: OrderStatus | ItemStatus) -> bool:
    if current == target:
        return True
    # both enums share values ("Pending", ...), so pick the table by type
    if isinstance(current, OrderStatus):
        return target in ORDER_TRANSITIONS[current]
    return target in ITEM_TRANSITIONS[current]


NON_CANCELLABLE = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.CANCELLED,
    OrderStatus.RETURNED,
    OrderStatus.EXCHANGED,
})


@dataclass(frozen=True, slots=True)
class CancelResult:
    order: Order
    refund_amount: Money


class _Rejected(Exception):
    def __init__(self, error: CommerceError) -> None:
        super().__init__(error.message)
        self.error = error


def _item_or_reject(order: Order, item_id: str) -> OrderItem:
    item = order.item(item_id)
    if item is None:
        raise _Rejected(Errors.not_found("Item"))
    return item


def _moved_item(item: OrderItem, target: ItemStatus) -> OrderItem:
    if not can_transition(item.item_status, target):
        raise _Rejected(Errors.illegal_transition("item", item.item_status, target))
    return replace(item, item_status=target)


# ═══════════════════════════════════════════════════════════════════════════════
# LifecycleService
# ═══════════════════════════════════════════════════════════════════════════════

class LifecycleService:
    def __init__(self, repo: Repository, refunds: RefundService) -> None:
        self._repo = repo
        self._refunds = refunds

    async def _edit(
        self,
        order_id: str,
        change: Callable[[Order], Order],
        *,
        owner: str | None = None,
    ) -> Result[Order, CommerceError]:
        """Load, change, write back under the order lock."""
        async with self._repo.locked("order", order_id):
            order = await self._repo.orders.get(order_id)
            if order is None or (owner is not None and order.user_id != owner):
                return Error(Errors.not_found("Order"))
            try:
                updated = change(order)
            except _Rejected as rejected:
                return Error(rejected.error)
            return Ok(await self._repo.orders.put(updated))

    async def _cancel(self, order_id: str, *, owner: str | None) -> Result[CancelResult, CommerceError]:
        """Cancel, refund, release the coupon. Shared by customer and admin."""

        def cancel(order: Order) -> Order:
            if order.order_status in NON_CANCELLABLE:
                raise _Rejected(Errors.bad_request("This order cannot be cancelled."))
            if not can_transition(order.order_status, OrderStatus.CANCELLED):
                raise _Rejected(Errors.illegal_transition(
                    "order", order.order_status, OrderStatus.CANCELLED
                ))
            return replace(
                order,
                order_status=OrderStatus.CANCELLED,
                items=tuple(
                    replace(i, item_status=ItemStatus.CANCELLED)
                    if can_transition(i.item_status, ItemStatus.CANCELLED) else i
                    for i in order.items
                ),
            )

        match await self._edit(order_id, cancel, owner=owner):
            case Ok(cancelled):
                pass
            case Error(e):
                return Error(e)

        match await self._refunds.refund(order_id, WholeOrder()):
            case Ok(outcome):
                pass
            case Error(e):
                return Error(e)

        if cancelled.coupon_id is not None:
            async with self._repo.locked("user", cancelled.user_id):
                user = await self._repo.users.get(cancelled.user_id)
                if user is not None and user.has_used(cancelled.coupon_id):
                    await self._repo.users.put(replace(
                        user,
                        used_coupons=tuple(c for c in user.used_coupons if c != cancelled.coupon_id),
                    ))

        logger.info(
            "order_cancelled",
            order_number=cancelled.order_number,
            refund=str(outcome.amount),
        )
        return Ok(CancelResult(order=outcome.order, refund_amount=outcome.amount))

    # ───────────────────────────────────────────────────────────────────────────
    # Customer operations
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("lifecycle.cancel_order")
    async def cancel_order(self, user_id: str, order_id: str) -> Result[CancelResult, CommerceError]:
        return await self._cancel(order_id, owner=user_id)

    @boundary("lifecycle.request_return")
    async def request_return(
        self, user_id: str, order_id: str, item_id: str, reason: str
    ) -> Result[Order, CommerceError]:
        def request(order: Order) -> Order:
            item = _item_or_reject(order, item_id)
            if item.item_status is not ItemStatus.DELIVERED:
                raise _Rejected(Errors.bad_request("Only delivered items can be returned."))
            if item.return_status is not None:
                raise _Rejected(Errors.bad_request("A return has already been requested for this item."))
            return order.with_item(replace(
                item,
                return_status=ReturnStatus.REQUESTED,
                return_reason=reason,
                refund_status=RefundStatus.REQUESTED,
            ))

        return await self._edit(order_id, request, owner=user_id)

    @boundary("lifecycle.request_exchange")
    async def request_exchange(
        self, user_id: str, order_id: str, item_id: str, reason: str
    ) -> Result[Order, CommerceError]:
        def request(order: Order) -> Order:
            item = _item_or_reject(order, item_id)
            if item.item_status is not ItemStatus.DELIVERED:
                raise _Rejected(Errors.bad_request("Only delivered items can be exchanged."))
            if item.exchange_status is not None:
                raise _Rejected(Errors.bad_request("An exchange has already been requested for this item."))
            return order.with_item(replace(
                item,
                exchange_status=ExchangeStatus.REQUESTED,
                exchange_reason=reason,
            ))

        return await self._edit(order_id, request, owner=user_id)

    # ───────────────────────────────────────────────────────────────────────────
    # Admin operations
    # ───────────────────────────────────────────────────────────────────────────

    @boundary("lifecycle.update_order_status")
    async def update_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[Order, CommerceError]:
        """
        Move the order; items follow wherever their own table allows.

        Cancelled takes the customer cancellation path, refund included.
        """
        if status is OrderStatus.CANCELLED:
            match await self._cancel(order_id, owner=None):
                case Ok(cancelled):
                    logger.info("order_status_changed", order_id=order_id, status=status.value)
                    return Ok(cancelled.order)
                case Error(e):
                    return Error(e)

        def move(order: Order) -> Order:
            if not can_transition(order.order_status, status):
                raise _Rejected(Errors.illegal_transition("order", order.order_status, status))
            target = ItemStatus(status.value)
            updated = replace(
                order,
                order_status=status,
                items=tuple(
                    replace(i, item_status=target) if can_transition(i.item_status, target) else i
                    for i in order.items
                ),
            )
            if order.payment_method is PaymentMethod.COD and status is OrderStatus.DELIVERED:
                updated = replace(updated, payment_status=PaymentStatus.SUCCESS)
            return updated

        result = await self._edit(order_id, move)
        if isinstance(result, Ok):
            logger.info("order_status_changed", order_id=order_id, status=status.value)
        return result

    @boundary("lifecycle.update_item_status")
    async def update_item_status(
        self, order_id: str, item_id: str, status: ItemStatus
    ) -> Result[Order, CommerceError]:
        return await self._edit(
            order_id,
            lambda order: order.with_item(_moved_item(_item_or_reject(order, item_id), status)),
        )

    @boundary("lifecycle.update_return_status")
    async def update_return_status(
        self,
        order_id: str,
        item_id: str,
        status: ReturnStatus,
        reject_reason: str | None = None,
    ) -> Result[Order, CommerceError]:
        """Approved hands the item to the refund service; it pays ``item_total``."""
        if status is ReturnStatus.APPROVED:
            order = await self._repo.orders.get(order_id)
            if order is None:
                return Error(Errors.not_found("Order"))
            item = order.item(item_id)
            if item is None:
                return Error(Errors.not_found("Item"))
            if not can_transition(item.item_status, ItemStatus.RETURNED):
                return Error(Errors.illegal_transition("item", item.item_status, ItemStatus.RETURNED))
            match await self._refunds.refund(order_id, ItemScope(item_id)):
                case Ok(outcome):
                    return Ok(outcome.order)
                case Error(e):
                    return Error(e)

        def assign(order: Order) -> Order:
            item = _item_or_reject(order, item_id)
            if reject_reason:
                item = replace(
                    item,
                    return_reject_reason=reject_reason,
                    refund_status=RefundStatus.REJECTED,
                    refund_reject_reason=reject_reason,
                )
            return order.with_item(replace(item, return_status=status))

        return await self._edit(order_id, assign)

    @boundary("lifecycle.update_exchange_status")
    async def update_exchange_status(
        self,
        order_id: str,
        item_id: str,
        status: ExchangeStatus,
        reject_reason: str | None = None,
    ) -> Result[Order, CommerceError]:
        def assign(order: Order) -> Order:
            item = replace(_item_or_reject(order, item_id), exchange_status=status)
            if reject_reason:
                item = replace(item, exchange_reject_reason=reject_reason)
            if status is ExchangeStatus.COMPLETED:
                item = _moved_item(item, ItemStatus.EXCHANGED)
            return order.with_item(item)

        return await self._edit(order_id, assign)

    @boundary("lifecycle.update_refund_status")
    async def update_refund_status(
        self,
        order_id: str,
        item_id: str,
        status: RefundStatus,
        reject_reason: str | None = None,
    ) -> Result[Order, CommerceError]:
        def assign(order: Order) -> Order:
            item = replace(_item_or_reject(order, item_id), refund_status=status)
            if reject_reason:
                item = replace(item, refund_reject_reason=reject_reason)
            return order.with_item(item)

        return await self._edit(order_id, assign)


__all__ = (
    "ORDER_TRANSITIONS",
    "ITEM_TRANSITIONS",
    "NON_CANCELLABLE",
    "can_transition",
    "CancelResult",
    "LifecycleService",
)
