"""
Dashboard and chart projections over orders.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from evergreen._types import ZERO, Money, Quantity
from evergreen.domain import Category, Order, OrderItem


class ChartKind(StrEnum):
    PRODUCTS = "products"
    CATEGORIES = "categories"


@dataclass(frozen=True, slots=True)
class TopEntry:
    id: str
    name: str
    quantity: Quantity


@dataclass(frozen=True, slots=True)
class Dashboard:
    total_users: int
    total_products: int
    delivered_orders: int
    revenue: Money
    top_categories: tuple[TopEntry, ...]
    top_products: tuple[TopEntry, ...]


@dataclass(frozen=True, slots=True)
class ChartData:
    labels: tuple[str, ...]
    values: tuple[Quantity, ...]


def top_by_quantity(
    orders: Iterable[Order],
    key: Callable[[OrderItem], str | None],
    name: Callable[[str], str],
    limit: int,
) -> tuple[TopEntry, ...]:
    """Sum line quantities per key, largest first; ties by name."""
    totals: defaultdict[str, Decimal] = defaultdict(lambda: ZERO)
    for order in orders:
        for item in order.items:
            k = key(item)
            if k is not None:
                totals[k] += item.quantity
    entries = [TopEntry(k, name(k), q) for k, q in totals.items()]
    entries.sort(key=lambda e: (-e.quantity, e.name))
    return tuple(entries[:limit])


def product_names(orders: Iterable[Order]) -> dict[str, str]:
    return {i.product_id: i.product_name for o in orders for i in o.items}


def top_products(orders: list[Order], limit: int) -> tuple[TopEntry, ...]:
    names = product_names(orders)
    return top_by_quantity(orders, lambda i: i.product_id, lambda k: names.get(k, k), limit)


def top_categories(
    orders: list[Order],
    categories: Mapping[str, Category],
    limit: int,
) -> tuple[TopEntry, ...]:
    def name(category_id: str) -> str:
        category = categories.get(category_id)
        return category.name if category is not None else category_id

    return top_by_quantity(orders, lambda i: i.category_id, name, limit)


def as_chart(entries: Iterable[TopEntry]) -> ChartData:
    entries = tuple(entries)
    return ChartData(
        labels=tuple(e.name for e in entries),
        values=tuple(e.quantity for e in entries),
    )


__all__ = (
    "ChartKind",
    "TopEntry",
    "Dashboard",
    "ChartData",
    "top_by_quantity",
    "top_products",
    "top_categories",
    "as_chart",
)
