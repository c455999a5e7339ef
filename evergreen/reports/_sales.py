"""
Sales report — one row per delivered order in a window.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime

from evergreen._types import ZERO, Money, money
from evergreen.domain import Order, User
from evergreen.reports._ranges import DateRange


@dataclass(frozen=True, slots=True)
class SalesRow:
    order_number: str
    date: datetime
    customer: str
    products: str
    shipping: str
    payment_method: str
    status: str
    total: Money
    coupon_code: str
    coupon_discount: Money
    payable: Money
    category_discount: Money


@dataclass(frozen=True, slots=True)
class SalesTotals:
    total_orders: int
    total_amount: Money
    total_discount: Money


@dataclass(frozen=True, slots=True)
class SalesReport:
    range: DateRange
    rows: tuple[SalesRow, ...]
    totals: SalesTotals


def sales_row(order: Order, customer: User | None) -> SalesRow:
    return SalesRow(
        order_number=order.order_number,
        date=order.created_at,
        customer=customer.full_name if customer is not None else "N/A",
        products=", ".join(
            f"{i.product_name} - {i.quantity} x {i.price} - ₹{i.item_total}" for i in order.items
        ),
        shipping=order.address.one_line,
        payment_method=order.payment_method.value,
        status=order.order_status.value,
        total=order.total_price,
        coupon_code=order.coupon_code or "",
        coupon_discount=order.coupon_discount,
        payable=order.payable,
        category_discount=order.offer_discount,
    )


def sales_totals(orders: Iterable[Order]) -> SalesTotals:
    orders = list(orders)
    return SalesTotals(
        total_orders=len(orders),
        total_amount=money(sum((o.total_price for o in orders), ZERO)),
        total_discount=money(sum((o.coupon_discount for o in orders), ZERO)),
    )


def build_sales_report(
    window: DateRange,
    orders: Iterable[Order],
    users: Mapping[str, User],
) -> SalesReport:
    """Orders must already be filtered to the delivered ones in ``window``."""
    ordered = sorted(orders, key=lambda o: o.created_at)
    return SalesReport(
        range=window,
        rows=tuple(sales_row(o, users.get(o.user_id)) for o in ordered),
        totals=sales_totals(ordered),
    )


__all__ = (
    "SalesRow",
    "SalesTotals",
    "SalesReport",
    "sales_row",
    "sales_totals",
    "build_sales_report",
)
