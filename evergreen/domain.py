"""
Domain — catalog, cart, coupons, orders, wallets, users.

All records are frozen; changes are expressed with ``dataclasses.replace``
and written back through the repository.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from evergreen._types import ZERO, Money, Quantity, money


# ═══════════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════════

class PaymentMethod(StrEnum):
    COD = "COD"
    WALLET = "Wallet"
    RAZORPAY = "Razorpay"


class OrderStatus(StrEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    EXCHANGED = "Exchanged"


class ItemStatus(StrEnum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    FAILED = "Failed"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"
    EXCHANGED = "Exchanged"


class PaymentStatus(StrEnum):
    PENDING = "Pending"
    FAILED = "Failed"
    SUCCESS = "Success"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


class ReturnStatus(StrEnum):
    REQUESTED = "Requested"
    RECEIVED = "Received"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ExchangeStatus(StrEnum):
    REQUESTED = "Requested"
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    COMPLETED = "Completed"


class RefundStatus(StrEnum):
    REQUESTED = "Requested"
    PENDING = "Pending"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class FinalizationState(StrEnum):
    NOT_STARTED = "NotStarted"
    PENDING = "PendingFinalization"
    FINALIZED = "Finalized"


class DiscountType(StrEnum):
    FIXED = "FIXED"
    PERCENTAGE = "PERCENTAGE"


class TxType(StrEnum):
    CREDIT = "credit"
    DEBIT = "debit"


class TxStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# ═══════════════════════════════════════════════════════════════════════════════
# Catalog
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Offer:
    """Discount attached to a product or a category.

    Both amounts may be set; pricing checks ``fixed_discount`` first.
    ``minimum_purchase`` is advisory: it is stored and shown to shoppers,
    but per-product pricing has no cart total to compare it against.
    """

    is_active: bool = True
    fixed_discount: Money = ZERO
    percentage_discount: Decimal = ZERO
    minimum_purchase: Money = ZERO
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    offer: Offer | None = None
    is_listed: bool = True


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    price: Money
    stock: Quantity
    category_id: str | None = None
    offer: Offer | None = None
    purchase_count: Quantity = ZERO


@dataclass(frozen=True, slots=True)
class Address:
    id: str
    user_id: str
    address: str
    city: str
    state: str
    zip_code: str
    is_default: bool = False

    @property
    def one_line(self) -> str:
        return f"{self.address}, {self.city}, {self.state}"


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CartItem:
    product_id: str
    price: Money
    quantity: Quantity
    item_total: Money


@dataclass(frozen=True, slots=True)
class Cart:
    """
    A user's pending selections. One per user, keyed by ``user_id``.

    Invariant: ``sub_total == Σ item_total`` and
    ``total_price == sub_total + shipping_charge``. Build persisted carts
    through ``recomputed()``.
    """

    user_id: str
    items: tuple[CartItem, ...] = ()
    sub_total: Money = ZERO
    shipping_charge: Money = ZERO
    total_price: Money = ZERO

    @classmethod
    def empty(cls, user_id: str, shipping_charge: Money) -> Cart:
        return cls(user_id=user_id, shipping_charge=shipping_charge).recomputed()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def line(self, product_id: str) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def with_line(self, item: CartItem) -> Cart:
        if self.line(item.product_id) is None:
            return replace(self, items=(*self.items, item))
        return replace(
            self,
            items=tuple(item if i.product_id == item.product_id else i for i in self.items),
        )

    def without_line(self, product_id: str) -> Cart:
        return replace(self, items=tuple(i for i in self.items if i.product_id != product_id))

    def recomputed(self) -> Cart:
        sub_total = money(sum((i.item_total for i in self.items), ZERO))
        return replace(
            self,
            sub_total=sub_total,
            total_price=money(sub_total + self.shipping_charge),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# Coupons
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Coupon:
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    expires_at: datetime
    minimum_purchase: Money = ZERO
    is_active: bool = True

    def discount_for(self, sub_total: Money) -> Money:
        """Coupon value against a subtotal, never more than the subtotal."""
        if self.discount_type is DiscountType.PERCENTAGE:
            amount = money(sub_total * self.discount_value / 100)
        else:
            amount = money(self.discount_value)
        return min(amount, sub_total)


# ═══════════════════════════════════════════════════════════════════════════════
# Orders
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class OrderItem:
    """Immutable snapshot of one cart line plus its own status track."""

    id: str
    product_id: str
    product_name: str
    price: Money
    discounted_price: Money
    quantity: Quantity
    item_total: Money
    category_id: str | None = None
    item_status: ItemStatus = ItemStatus.PENDING
    return_status: ReturnStatus | None = None
    return_reason: str | None = None
    return_reject_reason: str | None = None
    exchange_status: ExchangeStatus | None = None
    exchange_reason: str | None = None
    exchange_reject_reason: str | None = None
    refund_status: RefundStatus | None = None
    refund_reject_reason: str | None = None

    @property
    def offer_discount(self) -> Money:
        return money((self.price - self.discounted_price) * self.quantity)


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    order_number: str
    user_id: str
    items: tuple[OrderItem, ...]
    address: Address
    payment_method: PaymentMethod
    sub_total: Money
    shipping_charge: Money
    total_price: Money
    created_at: datetime
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    coupon_id: str | None = None
    coupon_code: str | None = None
    coupon_discount: Money = ZERO
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    terms_accepted: bool = True
    finalization: FinalizationState = FinalizationState.NOT_STARTED
    stock_applied: bool = False
    cart_cleared: bool = False

    def item(self, item_id: str) -> OrderItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def with_item(self, item: OrderItem) -> Order:
        return replace(
            self,
            items=tuple(item if i.id == item.id else i for i in self.items),
        )

    @property
    def payable(self) -> Money:
        return money(self.total_price - self.coupon_discount)

    @property
    def offer_discount(self) -> Money:
        return money(sum((i.offer_discount for i in self.items), ZERO))


# ═══════════════════════════════════════════════════════════════════════════════
# Wallet & users
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class WalletTransaction:
    id: str
    amount: Money
    date: datetime
    description: str
    type: TxType
    status: TxStatus = TxStatus.COMPLETED


@dataclass(frozen=True, slots=True)
class Wallet:
    """Append-only ledger. The balance is derived, never stored."""

    transactions: tuple[WalletTransaction, ...] = ()

    @property
    def balance(self) -> Money:
        total = ZERO
        for tx in self.transactions:
            if tx.status is not TxStatus.COMPLETED:
                continue
            total += tx.amount if tx.type is TxType.CREDIT else -tx.amount
        return money(total)

    def append(self, tx: WalletTransaction) -> Wallet:
        return Wallet(transactions=(*self.transactions, tx))


@dataclass(frozen=True, slots=True)
class TopUp:
    """A gateway order opened to add money to a wallet. Credited at most once."""

    gateway_order_id: str
    user_id: str
    amount: Money
    created_at: datetime
    payment_id: str | None = None

    @property
    def is_credited(self) -> bool:
        return self.payment_id is not None


@dataclass(frozen=True, slots=True)
class User:
    id: str
    first_name: str
    last_name: str
    email: str
    is_blocked: bool = False
    wallet: Wallet = field(default_factory=Wallet)
    orders: tuple[str, ...] = ()
    used_coupons: tuple[str, ...] = ()
    wishlist: tuple[str, ...] = ()
    referral_code: str | None = None
    referred_by: str | None = None
    referred_users: tuple[str, ...] = ()

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def has_used(self, coupon_id: str) -> bool:
        return coupon_id in self.used_coupons


__all__ = (
    "PaymentMethod",
    "OrderStatus",
    "ItemStatus",
    "PaymentStatus",
    "ReturnStatus",
    "ExchangeStatus",
    "RefundStatus",
    "FinalizationState",
    "DiscountType",
    "TxType",
    "TxStatus",
    "Offer",
    "Category",
    "Product",
    "Address",
    "CartItem",
    "Cart",
    "Coupon",
    "OrderItem",
    "Order",
    "WalletTransaction",
    "Wallet",
    "TopUp",
    "User",
)
