"""
Pricing — best applicable offer for a product.

Order of evaluation is fixed:

    list price
      → product offer   (fixed first, then percentage)
      → category offer  (fixed first, then percentage)

A candidate replaces the running best only when strictly lower, so a
category offer overrides a product offer only if it is better.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from evergreen._types import ZERO, Money, money, utcnow
from evergreen.domain import Category, Offer, Product


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

class DiscountSource(StrEnum):
    NONE = "none"
    PRODUCT_FIXED = "product_fixed"
    PRODUCT_PERCENTAGE = "product_percentage"
    CATEGORY_FIXED = "category_fixed"
    CATEGORY_PERCENTAGE = "category_percentage"


@dataclass(frozen=True, slots=True)
class PricingPolicy:
    """honor_expiry: skip offers whose expiration instant has passed."""

    honor_expiry: bool = True


@dataclass(frozen=True, slots=True)
class PriceQuote:
    list_price: Money
    discounted_price: Money
    discount_percentage: Decimal
    fixed_discount: Money
    source: DiscountSource

    @property
    def discount_type(self) -> str | None:
        match self.source:
            case DiscountSource.PRODUCT_FIXED | DiscountSource.CATEGORY_FIXED:
                return "fixed"
            case DiscountSource.PRODUCT_PERCENTAGE | DiscountSource.CATEGORY_PERCENTAGE:
                return "percentage"
            case _:
                return None


# ═══════════════════════════════════════════════════════════════════════════════
# Engine
# ═══════════════════════════════════════════════════════════════════════════════

def _applicable(offer: Offer | None, now: datetime, policy: PricingPolicy) -> Offer | None:
    if offer is None or not offer.is_active:
        return None
    if policy.honor_expiry and offer.is_expired(now):
        return None
    return offer


def _candidate(
    price: Money,
    offer: Offer,
    fixed: DiscountSource,
    percentage: DiscountSource,
) -> PriceQuote | None:
    # fixed wins when both are set
    if offer.fixed_discount > 0:
        discounted = money(max(price - offer.fixed_discount, ZERO))
        pct = money(offer.fixed_discount / price * 100) if price > 0 else ZERO
        return PriceQuote(price, discounted, pct, money(offer.fixed_discount), fixed)
    if offer.percentage_discount > 0:
        discounted = money(max(price * (1 - offer.percentage_discount / 100), ZERO))
        return PriceQuote(
            price,
            discounted,
            Decimal(offer.percentage_discount),
            money(price - discounted),
            percentage,
        )
    return None


def best_price(
    product: Product,
    category: Category | None = None,
    *,
    now: datetime | None = None,
    policy: PricingPolicy = PricingPolicy(),
) -> PriceQuote:
    """
    Lowest price reachable through the product's or its category's offer.

    Pure: same inputs, same quote.
    """
    now = now or utcnow()
    price = money(product.price)
    best = PriceQuote(price, price, ZERO, ZERO, DiscountSource.NONE)

    tiers = (
        (product.offer, DiscountSource.PRODUCT_FIXED, DiscountSource.PRODUCT_PERCENTAGE),
        (
            category.offer if category is not None else None,
            DiscountSource.CATEGORY_FIXED,
            DiscountSource.CATEGORY_PERCENTAGE,
        ),
    )
    for offer, fixed, percentage in tiers:
        active = _applicable(offer, now, policy)
        if active is None:
            continue
        candidate = _candidate(price, active, fixed, percentage)
        if candidate is not None and candidate.discounted_price < best.discounted_price:
            best = candidate

    return best


__all__ = ("DiscountSource", "PricingPolicy", "PriceQuote", "best_price")
