"""
Coupons — validation and pricing against a cart.

``apply`` returns a ``PricingContext``: an explicit value the caller hands to
checkout. Nothing is kept in ambient state here; ``SessionCoupons`` is an
optional per-user holder for callers (HTTP) that need to carry the context
between requests.

Admin side: ``create``, ``update`` and ``toggle`` manage the coupon records
themselves. Codes are unique regardless of case.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal

import structlog
from kungfu import Error, Ok, Result

from evergreen._types import ZERO, Clock, Money, money, new_id, utcnow
from evergreen.config import Settings
from evergreen.domain import Cart, Coupon, DiscountType, User
from evergreen.errors import CommerceError, Errors, boundary
from evergreen.repo import Repository

logger = structlog.get_logger(__name__)

CODE_PATTERN = re.compile(r"^[A-Za-z0-9]{3,}$")


# ═══════════════════════════════════════════════════════════════════════════════
# PricingContext
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class PricingContext:
    """An applied coupon, priced against the cart it was applied to."""

    coupon_id: str
    code: str
    discount: Money
    sub_total: Money
    total_price: Money


def check_coupon(
    coupon: Coupon | None,
    user: User,
    cart: Cart,
    now: datetime,
) -> Result[Coupon, CommerceError]:
    """Eligibility checks, in the order users see them."""
    if coupon is None or not coupon.is_active:
        return Error(Errors.coupon_not_found())
    if cart.is_empty:
        return Error(Errors.bad_request("Cart is empty or not found."))
    if user.has_used(coupon.id):
        return Error(Errors.coupon_used())
    if now > coupon.expires_at:
        return Error(Errors.coupon_expired())
    if cart.sub_total < coupon.minimum_purchase:
        return Error(Errors.below_minimum(money(coupon.minimum_purchase)))
    return Ok(coupon)


def price_coupon(coupon: Coupon, cart: Cart) -> PricingContext:
    discount = coupon.discount_for(cart.sub_total)
    return PricingContext(
        coupon_id=coupon.id,
        code=coupon.code,
        discount=discount,
        sub_total=cart.sub_total,
        total_price=money(cart.sub_total + cart.shipping_charge - discount),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Admin input
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CouponFields:
    """Everything an admin sets on a coupon."""

    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expires_at: datetime
    minimum_purchase: Money = ZERO
    is_active: bool = True


def check_fields(fields: CouponFields) -> Result[CouponFields, CommerceError]:
    code = fields.code.strip()
    if not CODE_PATTERN.match(code):
        return Error(Errors.bad_request(
            "Coupon code must be at least 3 characters long and contain only letters and numbers."
        ))
    if fields.discount_value <= 0:
        return Error(Errors.bad_request("Discount value must be greater than zero."))
    if fields.discount_type is DiscountType.PERCENTAGE and fields.discount_value > 100:
        return Error(Errors.bad_request("Percentage discount cannot exceed 100."))
    if fields.minimum_purchase < 0:
        return Error(Errors.bad_request("Minimum purchase amount cannot be negative."))
    return Ok(replace(fields, code=code))


# ═══════════════════════════════════════════════════════════════════════════════
# Session holder
# ═══════════════════════════════════════════════════════════════════════════════

class SessionCoupons:
    """Per-user applied coupon, for callers without their own session store."""

    def __init__(self) -> None:
        self._applied: dict[str, PricingContext] = {}

    def get(self, user_id: str) -> PricingContext | None:
        return self._applied.get(user_id)

    def set(self, user_id: str, context: PricingContext) -> None:
        self._applied[user_id] = context

    def clear(self, user_id: str) -> PricingContext | None:
        return self._applied.pop(user_id, None)


# ═══════════════════════════════════════════════════════════════════════════════
# CouponService
# ═══════════════════════════════════════════════════════════════════════════════

class CouponService:
    def __init__(
        self,
        repo: Repository,
        settings: Settings,
        session: SessionCoupons | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._repo = repo
        self._settings = settings
        self._session = session if session is not None else SessionCoupons()
        self._clock = clock

    @property
    def session(self) -> SessionCoupons:
        return self._session

    @boundary("coupons.apply")
    async def apply(self, user_id: str, code: str) -> Result[PricingContext, CommerceError]:
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        coupon = await self._repo.coupon_by_code(code)
        cart = await self._repo.carts.get(user_id) or Cart(user_id=user_id)

        match check_coupon(coupon, user, cart, self._clock()):
            case Ok(valid):
                context = price_coupon(valid, cart)
                self._session.set(user_id, context)
                logger.info("coupon_applied", user_id=user_id, code=valid.code, discount=str(context.discount))
                return Ok(context)
            case Error(e):
                return Error(e)

    @boundary("coupons.remove")
    async def remove(self, user_id: str) -> Result[Cart, CommerceError]:
        """Drop the applied coupon; returns the undiscounted cart."""
        cart = await self._repo.carts.get(user_id)
        if cart is None or cart.is_empty:
            return Error(Errors.bad_request("Cart is empty or not found."))
        if self._session.clear(user_id) is None:
            return Error(Errors.bad_request("No coupon applied to remove."))
        return Ok(cart)

    @boundary("coupons.available")
    async def available(self, user_id: str) -> Result[list[Coupon], CommerceError]:
        user = await self._repo.users.get(user_id)
        if user is None:
            return Error(Errors.not_found("User"))
        now = self._clock()
        return Ok(await self._repo.coupons.find(
            lambda c: c.is_active and c.expires_at >= now and not user.has_used(c.id)
        ))

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    async def _code_taken(self, code: str, except_id: str | None = None) -> bool:
        existing = await self._repo.coupon_by_code(code)
        return existing is not None and existing.id != except_id

    @boundary("coupons.all")
    async def all(self) -> Result[list[Coupon], CommerceError]:
        coupons = await self._repo.coupons.all()
        return Ok(sorted(coupons, key=lambda c: c.expires_at, reverse=True))

    @boundary("coupons.create")
    async def create(self, fields: CouponFields) -> Result[Coupon, CommerceError]:
        match check_fields(fields):
            case Ok(valid):
                pass
            case Error(e):
                return Error(e)
        if valid.expires_at <= self._clock():
            return Error(Errors.bad_request("Expiration date must be in the future."))

        async with self._repo.locked("coupon_code", valid.code.upper()):
            if await self._code_taken(valid.code):
                return Error(Errors.bad_request("Coupon code already exists."))
            coupon = await self._repo.coupons.put(Coupon(
                id=new_id(),
                code=valid.code,
                discount_type=valid.discount_type,
                discount_value=valid.discount_value,
                expires_at=valid.expires_at,
                minimum_purchase=money(valid.minimum_purchase),
                is_active=valid.is_active,
            ))

        logger.info("coupon_created", code=coupon.code, coupon_id=coupon.id)
        return Ok(coupon)

    @boundary("coupons.update")
    async def update(self, coupon_id: str, fields: CouponFields) -> Result[Coupon, CommerceError]:
        match check_fields(fields):
            case Ok(valid):
                pass
            case Error(e):
                return Error(e)

        async with self._repo.locked("coupon_code", valid.code.upper()):
            async with self._repo.locked("coupon", coupon_id):
                current = await self._repo.coupons.get(coupon_id)
                if current is None:
                    return Error(Errors.not_found("Coupon"))
                if await self._code_taken(valid.code, except_id=coupon_id):
                    return Error(Errors.bad_request("Coupon code already exists."))
                coupon = await self._repo.coupons.put(replace(
                    current,
                    code=valid.code,
                    discount_type=valid.discount_type,
                    discount_value=valid.discount_value,
                    expires_at=valid.expires_at,
                    minimum_purchase=money(valid.minimum_purchase),
                    is_active=valid.is_active,
                ))

        logger.info("coupon_updated", code=coupon.code, coupon_id=coupon.id)
        return Ok(coupon)

    @boundary("coupons.toggle")
    async def toggle(self, coupon_id: str) -> Result[Coupon, CommerceError]:
        async with self._repo.locked("coupon", coupon_id):
            current = await self._repo.coupons.get(coupon_id)
            if current is None:
                return Error(Errors.not_found("Coupon"))
            coupon = await self._repo.coupons.put(replace(current, is_active=not current.is_active))
        logger.info("coupon_toggled", code=coupon.code, is_active=coupon.is_active)
        return Ok(coupon)


__all__ = (
    "PricingContext",
    "check_coupon",
    "price_coupon",
    "CouponFields",
    "check_fields",
    "SessionCoupons",
    "CouponService",
)
