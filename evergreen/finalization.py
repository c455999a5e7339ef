"""
Finalization — the writes that make an order real.

Modeled as a saga over independent documents:

    persist order (PendingFinalization)
      → link order/coupon to user        ⟲ unlink
      → stock −qty, purchase_count +qty  ⟲ restore   (lines in parallel)
      → delete cart                      ⟲ restore snapshot
      → mark Finalized

Each step records a marker (user already lists the order, ``stock_applied``,
``cart_cleared``) so ``reconcile()`` can re-run an interrupted order without
applying anything twice.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

import combinators as C
import structlog
from combinators import lift as L
from kungfu import Error, Ok, Result

from evergreen import saga as S
from evergreen.domain import Cart, FinalizationState, Order, OrderItem, OrderStatus, PaymentStatus
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Errors inside steps
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(slots=True)
class StepFailed(Exception):
    """A step failed for a business reason; carries the user-facing error."""

    error: CommerceError

    def __str__(self) -> str:
        return self.error.message


def _as_error(exc: Exception) -> CommerceError:
    if isinstance(exc, StepFailed):
        return exc.error
    logger.error("finalization_step_crashed", error=repr(exc))
    return Errors.internal()


@dataclass(frozen=True, slots=True)
class UserLink:
    order_added: bool
    coupon_added: bool


@dataclass(frozen=True, slots=True)
class ReconcileReport:
    finalized: tuple[str, ...]
    failed: tuple[str, ...]


# ═══════════════════════════════════════════════════════════════════════════════
# Finalizer
# ═══════════════════════════════════════════════════════════════════════════════

class Finalizer:
    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    # ───────────────────────────────────────────────────────────────────────────
    # Order document helpers
    # ───────────────────────────────────────────────────────────────────────────

    async def _update_order(self, order_id: str, **changes: object) -> Order:
        async with self._repo.locked("order", order_id):
            order = await self._repo.orders.get(order_id)
            if order is None:
                raise StepFailed(Errors.not_found("Order"))
            return await self._repo.orders.put(replace(order, **changes))

    async def _reload(self, order_id: str) -> Order:
        order = await self._repo.orders.get(order_id)
        if order is None:
            raise StepFailed(Errors.not_found("Order"))
        return order

    # ───────────────────────────────────────────────────────────────────────────
    # Step: user links
    # ───────────────────────────────────────────────────────────────────────────

    async def _link_user(self, order: Order) -> UserLink:
        async with self._repo.locked("user", order.user_id):
            user = await self._repo.users.get(order.user_id)
            if user is None:
                raise StepFailed(Errors.not_found("User"))
            order_added = order.id not in user.orders
            coupon_added = order.coupon_id is not None and not user.has_used(order.coupon_id)
            if order_added or coupon_added:
                await self._repo.users.put(replace(
                    user,
                    orders=(*user.orders, order.id) if order_added else user.orders,
                    used_coupons=(
                        (*user.used_coupons, order.coupon_id) if coupon_added else user.used_coupons
                    ),
                ))
        return UserLink(order_added, coupon_added)

    async def _unlink_user(self, order: Order, link: UserLink) -> None:
        async with self._repo.locked("user", order.user_id):
            user = await self._repo.users.get(order.user_id)
            if user is None:
                return
            await self._repo.users.put(replace(
                user,
                orders=tuple(o for o in user.orders if not (link.order_added and o == order.id)),
                used_coupons=tuple(
                    c for c in user.used_coupons
                    if not (link.coupon_added and c == order.coupon_id)
                ),
            ))

    # ───────────────────────────────────────────────────────────────────────────
    # Step: stock
    # ───────────────────────────────────────────────────────────────────────────

    async def _adjust(self, product_id: str, delta: Decimal) -> None:
        """stock += delta, purchase_count −= delta. Stock never goes negative."""
        async with self._repo.locked("product", product_id):
            product = await self._repo.products.get(product_id)
            if product is None:
                raise StepFailed(Errors.not_found("Product"))
            stock = product.stock + delta
            if stock < 0:
                raise StepFailed(Errors.not_enough_stock())
            await self._repo.products.put(replace(
                product,
                stock=stock,
                purchase_count=product.purchase_count - delta,
            ))

    async def _apply_stock(self, order_id: str) -> tuple[OrderItem, ...]:
        order = await self._reload(order_id)
        if order.stock_applied:
            return ()

        applied: list[OrderItem] = []

        def take(item: OrderItem) -> C.LCR[OrderItem, CommerceError]:
            async def impl() -> OrderItem:
                await self._adjust(item.product_id, -item.quantity)
                applied.append(item)
                return item
            return L.catching_async(impl, on_error=_as_error)

        result = await C.traverse_par(list(order.items), take)
        match result:
            case Ok(_):
                await self._update_order(order_id, stock_applied=True)
                return tuple(applied)
            case Error(e):
                # lines that went through before the failure
                for item in applied:
                    await self._adjust(item.product_id, item.quantity)
                raise StepFailed(e)

    async def _restore_stock(self, order_id: str, applied: tuple[OrderItem, ...]) -> None:
        if not applied:
            return
        for item in applied:
            await self._adjust(item.product_id, item.quantity)
        await self._update_order(order_id, stock_applied=False)

    # ───────────────────────────────────────────────────────────────────────────
    # Step: cart
    # ───────────────────────────────────────────────────────────────────────────

    async def _clear_cart(self, order_id: str) -> Cart | None:
        order = await self._reload(order_id)
        if order.cart_cleared:
            return None
        async with self._repo.locked("cart", order.user_id):
            snapshot = await self._repo.carts.get(order.user_id)
            await self._repo.carts.delete(order.user_id)
        await self._update_order(order_id, cart_cleared=True)
        return snapshot

    async def _restore_cart(self, order_id: str, snapshot: Cart | None) -> None:
        if snapshot is None:
            return
        async with self._repo.locked("cart", snapshot.user_id):
            if await self._repo.carts.get(snapshot.user_id) is None:
                await self._repo.carts.put(snapshot)
        await self._update_order(order_id, cart_cleared=False)

    # ───────────────────────────────────────────────────────────────────────────
    # Saga
    # ───────────────────────────────────────────────────────────────────────────

    def _steps(self, order: Order) -> list[S.SagaStep[object, CommerceError]]:
        return [
            S.from_async(
                "link_user",
                lambda: self._link_user(order),
                on_error=_as_error,
                compensate=lambda link: self._unlink_user(order, link),
            ),
            S.from_async(
                "apply_stock",
                lambda: self._apply_stock(order.id),
                on_error=_as_error,
                compensate=lambda applied: self._restore_stock(order.id, applied),
            ),
            S.from_async(
                "clear_cart",
                lambda: self._clear_cart(order.id),
                on_error=_as_error,
                compensate=lambda snapshot: self._restore_cart(order.id, snapshot),
            ),
        ]

    async def _run(self, order: Order) -> Result[Order, CommerceError]:
        match await S.run(self._steps(order)):
            case Ok(_):
                final = await self._update_order(order.id, finalization=FinalizationState.FINALIZED)
                logger.info("order_finalized", order_number=order.order_number)
                return Ok(final)
            case Error(saga_error):
                logger.warning(
                    "order_finalization_failed",
                    order_number=order.order_number,
                    step=saga_error.step_failed,
                    rollback_complete=saga_error.rollback_complete,
                )
                return Error(saga_error.error)

    async def finalize(self, order: Order) -> Result[Order, CommerceError]:
        """Persist ``order`` as PendingFinalization and run the saga."""
        order = await self._repo.orders.put(
            replace(order, finalization=FinalizationState.PENDING)
        )
        return await self._run(order)

    @boundary("finalization.reconcile")
    async def reconcile(self) -> Result[ReconcileReport, CommerceError]:
        """Finish orders left in PendingFinalization by an interrupted run."""
        stuck = await self._repo.orders.find(
            lambda o: o.finalization == FinalizationState.PENDING
            and o.order_status != OrderStatus.FAILED
            and o.payment_status != PaymentStatus.FAILED
        )
        finalized: list[str] = []
        failed: list[str] = []
        for order in stuck:
            match await self._run(order):
                case Ok(_):
                    finalized.append(order.order_number)
                case Error(_):
                    failed.append(order.order_number)
        logger.info("reconcile_done", finalized=len(finalized), failed=len(failed))
        return Ok(ReconcileReport(tuple(finalized), tuple(failed)))


__all__ = ("StepFailed", "UserLink", "ReconcileReport", "Finalizer")
