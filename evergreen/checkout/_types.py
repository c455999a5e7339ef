"""
Checkout types — request, environment, draft, result.
"""

from __future__ import annotations

from dataclasses import dataclass

from evergreen._types import Clock, Money
from evergreen.config import Settings
from evergreen.coupons import PricingContext
from evergreen.domain import Order, User
from evergreen.errors import CommerceError
from evergreen.gateway import GatewayOrder
from evergreen.pricing import PricingPolicy
from evergreen.repo import Repository


@dataclass(frozen=True, slots=True)
class CheckoutRequest:
    """
    What the client submits.

    ``total_price`` is the cart total the client was shown, before any
    coupon; the server subtracts its own recomputed coupon discount.
    """

    user_id: str
    payment_method: str
    total_price: Money
    address_id: str
    coupon: PricingContext | None = None
    terms_accepted: bool = False


@dataclass(frozen=True, slots=True)
class CheckoutEnv:
    """Collaborators the checkout graph reads from."""

    repo: Repository
    settings: Settings
    policy: PricingPolicy
    clock: Clock


@dataclass(slots=True)
class CheckoutAbort(Exception):
    """Raised inside graph nodes; turned back into ``Error`` by the service."""

    error: CommerceError

    def __str__(self) -> str:
        return self.error.message


@dataclass(frozen=True, slots=True)
class OrderDraft:
    """An assembled order that has not been numbered or persisted yet."""

    order: Order
    user: User


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    order: Order
    gateway_order: GatewayOrder | None = None
    message: str = ""


__all__ = (
    "CheckoutRequest",
    "CheckoutEnv",
    "CheckoutAbort",
    "OrderDraft",
    "CheckoutResult",
)
