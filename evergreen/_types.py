"""
Shared primitives — money, quantities, clocks, ids.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

Money = Decimal
"""Currency amount, always rounded to two places."""

Quantity = Decimal
"""Product quantity; fractional units (kg, L) are allowed."""

CENT = Decimal("0.01")
ZERO = Decimal("0")


def money(value: Decimal | int | float | str) -> Money:
    """Round to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def quantity(value: Decimal | int | float | str) -> Quantity:
    return Decimal(str(value))


# ═══════════════════════════════════════════════════════════════════════════════
# Clock & ids
# ═══════════════════════════════════════════════════════════════════════════════

type Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return uuid.uuid4().hex


__all__ = (
    "Money",
    "Quantity",
    "CENT",
    "ZERO",
    "money",
    "quantity",
    "Clock",
    "utcnow",
    "new_id",
)
