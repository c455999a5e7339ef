"""
Wire models. ``XIn.to_domain()`` builds the domain request;
``XOut.from_domain()`` renders the domain value.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import AwareDatetime, BaseModel, Field

from evergreen.checkout import CheckoutRequest, CheckoutResult
from evergreen.coupons import CouponFields, PricingContext
from evergreen.domain import (
    Cart,
    CartItem,
    Coupon,
    DiscountType,
    ExchangeStatus,
    ItemStatus,
    Order,
    OrderItem,
    OrderStatus,
    RefundStatus,
    ReturnStatus,
    WalletTransaction,
)
from evergreen.finalization import ReconcileReport
from evergreen.gateway import GatewayOrder
from evergreen.lifecycle import CancelResult
from evergreen.payments import RetryTicket
from evergreen.reports import ChartData, Dashboard, SalesReport, SalesRow, TopEntry
from evergreen.wallet import WalletView


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════

class AddItemIn(BaseModel):
    product_id: str


class UpdateQuantityIn(BaseModel):
    quantity: Decimal


class ApplyCouponIn(BaseModel):
    code: str = Field(min_length=1)


class CouponIn(BaseModel):
    code: str = Field(min_length=1)
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    expires_at: AwareDatetime
    minimum_purchase: Decimal = Field(default=Decimal("0"), ge=0)
    is_active: bool = True

    def to_domain(self) -> CouponFields:
        return CouponFields(
            code=self.code,
            discount_type=self.discount_type,
            discount_value=self.discount_value,
            expires_at=self.expires_at,
            minimum_purchase=self.minimum_purchase,
            is_active=self.is_active,
        )


class PlaceOrderIn(BaseModel):
    payment_method: str
    total_price: Decimal
    address_id: str
    terms_accepted: bool = False

    def to_domain(self, user_id: str, coupon: PricingContext | None) -> CheckoutRequest:
        return CheckoutRequest(
            user_id=user_id,
            payment_method=self.payment_method,
            total_price=self.total_price,
            address_id=self.address_id,
            coupon=coupon,
            terms_accepted=self.terms_accepted,
        )


class ReasonIn(BaseModel):
    reason: str = Field(min_length=1)


class VerifyPaymentIn(BaseModel):
    gateway_order_id: str
    payment_id: str
    signature: str


class PaymentFailedIn(BaseModel):
    gateway_order_id: str


class TopUpIn(BaseModel):
    amount: Decimal = Field(gt=0)


class ReferralIn(BaseModel):
    code: str


class OrderStatusIn(BaseModel):
    status: OrderStatus


class ItemStatusIn(BaseModel):
    status: ItemStatus


class ReturnStatusIn(BaseModel):
    status: ReturnStatus
    reject_reason: str | None = None


class ExchangeStatusIn(BaseModel):
    status: ExchangeStatus
    reject_reason: str | None = None


class RefundStatusIn(BaseModel):
    status: RefundStatus
    reject_reason: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Responses
# ═══════════════════════════════════════════════════════════════════════════════

class CartItemOut(BaseModel):
    product_id: str
    price: Decimal
    quantity: Decimal
    item_total: Decimal

    @classmethod
    def from_domain(cls, item: CartItem) -> CartItemOut:
        return cls(
            product_id=item.product_id,
            price=item.price,
            quantity=item.quantity,
            item_total=item.item_total,
        )


class CartOut(BaseModel):
    items: list[CartItemOut]
    sub_total: Decimal
    shipping_charge: Decimal
    total_price: Decimal

    @classmethod
    def from_domain(cls, cart: Cart) -> CartOut:
        return cls(
            items=[CartItemOut.from_domain(i) for i in cart.items],
            sub_total=cart.sub_total,
            shipping_charge=cart.shipping_charge,
            total_price=cart.total_price,
        )


class PricingOut(BaseModel):
    coupon_id: str
    code: str
    discount: Decimal
    sub_total: Decimal
    total_price: Decimal

    @classmethod
    def from_domain(cls, ctx: PricingContext) -> PricingOut:
        return cls(
            coupon_id=ctx.coupon_id,
            code=ctx.code,
            discount=ctx.discount,
            sub_total=ctx.sub_total,
            total_price=ctx.total_price,
        )


class CouponOut(BaseModel):
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    minimum_purchase: Decimal
    expires_at: datetime
    is_active: bool

    @classmethod
    def from_domain(cls, coupon: Coupon) -> CouponOut:
        return cls(
            id=coupon.id,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
            minimum_purchase=coupon.minimum_purchase,
            expires_at=coupon.expires_at,
            is_active=coupon.is_active,
        )


class CouponListOut(BaseModel):
    coupons: list[CouponOut]

    @classmethod
    def from_domain(cls, coupons: list[Coupon]) -> CouponListOut:
        return cls(coupons=[CouponOut.from_domain(c) for c in coupons])


class OrderItemOut(BaseModel):
    id: str
    product_id: str
    product_name: str
    price: Decimal
    discounted_price: Decimal
    quantity: Decimal
    item_total: Decimal
    item_status: str
    return_status: str | None
    exchange_status: str | None
    refund_status: str | None

    @classmethod
    def from_domain(cls, item: OrderItem) -> OrderItemOut:
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.product_name,
            price=item.price,
            discounted_price=item.discounted_price,
            quantity=item.quantity,
            item_total=item.item_total,
            item_status=item.item_status.value,
            return_status=item.return_status.value if item.return_status else None,
            exchange_status=item.exchange_status.value if item.exchange_status else None,
            refund_status=item.refund_status.value if item.refund_status else None,
        )


class OrderOut(BaseModel):
    id: str
    order_number: str
    payment_method: str
    payment_status: str
    order_status: str
    sub_total: Decimal
    shipping_charge: Decimal
    total_price: Decimal
    coupon_code: str | None
    coupon_discount: Decimal
    created_at: datetime
    items: list[OrderItemOut]

    @classmethod
    def from_domain(cls, order: Order) -> OrderOut:
        return cls(
            id=order.id,
            order_number=order.order_number,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            sub_total=order.sub_total,
            shipping_charge=order.shipping_charge,
            total_price=order.total_price,
            coupon_code=order.coupon_code,
            coupon_discount=order.coupon_discount,
            created_at=order.created_at,
            items=[OrderItemOut.from_domain(i) for i in order.items],
        )


class GatewayOrderOut(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str

    @classmethod
    def from_domain(cls, order: GatewayOrder) -> GatewayOrderOut:
        return cls(id=order.id, amount=order.amount, currency=order.currency, receipt=order.receipt)


class CheckoutOut(BaseModel):
    order: OrderOut
    gateway_order: GatewayOrderOut | None = None

    @classmethod
    def from_domain(cls, result: CheckoutResult) -> CheckoutOut:
        return cls(
            order=OrderOut.from_domain(result.order),
            gateway_order=(
                GatewayOrderOut.from_domain(result.gateway_order)
                if result.gateway_order is not None else None
            ),
        )


class CancelOut(BaseModel):
    order: OrderOut
    refund_amount: Decimal

    @classmethod
    def from_domain(cls, result: CancelResult) -> CancelOut:
        return cls(order=OrderOut.from_domain(result.order), refund_amount=result.refund_amount)


class RetryOut(BaseModel):
    gateway_order_id: str
    amount: int
    currency: str
    key_id: str

    @classmethod
    def from_domain(cls, ticket: RetryTicket) -> RetryOut:
        return cls(
            gateway_order_id=ticket.gateway_order_id,
            amount=ticket.amount,
            currency=ticket.currency,
            key_id=ticket.key_id,
        )


class WalletTxOut(BaseModel):
    id: str
    amount: Decimal
    date: datetime
    description: str
    type: str
    status: str

    @classmethod
    def from_domain(cls, tx: WalletTransaction) -> WalletTxOut:
        return cls(
            id=tx.id,
            amount=tx.amount,
            date=tx.date,
            description=tx.description,
            type=tx.type.value,
            status=tx.status.value,
        )


class WalletOut(BaseModel):
    balance: Decimal
    transactions: list[WalletTxOut]

    @classmethod
    def from_domain(cls, view: WalletView) -> WalletOut:
        return cls(
            balance=view.balance,
            transactions=[WalletTxOut.from_domain(t) for t in view.transactions],
        )


class SalesRowOut(BaseModel):
    order_number: str
    date: datetime
    customer: str
    products: str
    shipping: str
    payment_method: str
    status: str
    total: Decimal
    coupon_code: str
    coupon_discount: Decimal
    payable: Decimal
    category_discount: Decimal

    @classmethod
    def from_domain(cls, row: SalesRow) -> SalesRowOut:
        return cls(
            order_number=row.order_number,
            date=row.date,
            customer=row.customer,
            products=row.products,
            shipping=row.shipping,
            payment_method=row.payment_method,
            status=row.status,
            total=row.total,
            coupon_code=row.coupon_code,
            coupon_discount=row.coupon_discount,
            payable=row.payable,
            category_discount=row.category_discount,
        )


class SalesReportOut(BaseModel):
    orders: list[SalesRowOut]
    total_orders: int
    total_amount: Decimal
    total_discount: Decimal

    @classmethod
    def from_domain(cls, report: SalesReport) -> SalesReportOut:
        return cls(
            orders=[SalesRowOut.from_domain(r) for r in report.rows],
            total_orders=report.totals.total_orders,
            total_amount=report.totals.total_amount,
            total_discount=report.totals.total_discount,
        )


class TopEntryOut(BaseModel):
    id: str
    name: str
    quantity: Decimal

    @classmethod
    def from_domain(cls, entry: TopEntry) -> TopEntryOut:
        return cls(id=entry.id, name=entry.name, quantity=entry.quantity)


class DashboardOut(BaseModel):
    total_users: int
    total_products: int
    total_orders: int
    total_revenue: Decimal
    top_categories: list[TopEntryOut]
    top_products: list[TopEntryOut]

    @classmethod
    def from_domain(cls, dashboard: Dashboard) -> DashboardOut:
        return cls(
            total_users=dashboard.total_users,
            total_products=dashboard.total_products,
            total_orders=dashboard.delivered_orders,
            total_revenue=dashboard.revenue,
            top_categories=[TopEntryOut.from_domain(e) for e in dashboard.top_categories],
            top_products=[TopEntryOut.from_domain(e) for e in dashboard.top_products],
        )


class ReconcileOut(BaseModel):
    finalized: list[str]
    failed: list[str]

    @classmethod
    def from_domain(cls, report: ReconcileReport) -> ReconcileOut:
        return cls(finalized=list(report.finalized), failed=list(report.failed))


class ChartOut(BaseModel):
    labels: list[str]
    values: list[Decimal]

    @classmethod
    def from_domain(cls, chart: ChartData) -> ChartOut:
        return cls(labels=list(chart.labels), values=list(chart.values))


__all__ = (
    "AddItemIn",
    "UpdateQuantityIn",
    "ApplyCouponIn",
    "CouponIn",
    "PlaceOrderIn",
    "ReasonIn",
    "VerifyPaymentIn",
    "PaymentFailedIn",
    "TopUpIn",
    "ReferralIn",
    "OrderStatusIn",
    "ItemStatusIn",
    "ReturnStatusIn",
    "ExchangeStatusIn",
    "RefundStatusIn",
    "CartItemOut",
    "CartOut",
    "PricingOut",
    "CouponOut",
    "CouponListOut",
    "OrderItemOut",
    "OrderOut",
    "GatewayOrderOut",
    "CheckoutOut",
    "CancelOut",
    "RetryOut",
    "WalletTxOut",
    "WalletOut",
    "SalesRowOut",
    "SalesReportOut",
    "TopEntryOut",
    "DashboardOut",
    "ChartOut",
    "ReconcileOut",
)
