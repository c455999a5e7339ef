"""
Payment gateway — remote order creation and callback signatures.

The gateway is an external service: ``create_order`` opens a payment for an
amount in minor units, and the client later posts back
``(gateway_order_id, payment_id, signature)``. The signature is a hex
HMAC-SHA256 of ``"{gateway_order_id}|{payment_id}"`` keyed by the API secret.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

import httpx
import structlog

from evergreen._types import Money

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class GatewayOrder:
    id: str
    amount: int
    currency: str
    receipt: str


@dataclass(slots=True)
class GatewayError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


class PaymentGateway(Protocol):
    async def create_order(self, amount_minor: int, receipt: str, currency: str) -> GatewayOrder:
        """Open a remote order. Raises GatewayError."""
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════════

def to_minor(amount: Money) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_minor(amount_minor: int) -> Money:
    return (Decimal(amount_minor) / 100).quantize(Decimal("0.01"))


def receipt_for(user_id: str) -> str:
    # gateway caps receipts at 40 chars
    return f"order_rcptid_{user_id}"[:40]


def sign(secret: str, gateway_order_id: str, payment_id: str) -> str:
    body = f"{gateway_order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, gateway_order_id: str, payment_id: str, signature: str) -> bool:
    expected = sign(secret, gateway_order_id, payment_id)
    return hmac.compare_digest(expected, signature)


# ═══════════════════════════════════════════════════════════════════════════════
# Razorpay
# ═══════════════════════════════════════════════════════════════════════════════

class RazorpayGateway:
    """``POST /orders`` with basic auth over httpx."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        *,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
        )

    async def create_order(self, amount_minor: int, receipt: str, currency: str) -> GatewayOrder:
        try:
            response = await self._client.post(
                "/orders",
                json={"amount": amount_minor, "currency": currency, "receipt": receipt},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("gateway_order_failed", receipt=receipt, error=str(e))
            raise GatewayError(f"gateway order creation failed: {e}") from e

        data = response.json()
        return GatewayOrder(
            id=data["id"],
            amount=int(data["amount"]),
            currency=data.get("currency", currency),
            receipt=data.get("receipt", receipt),
        )

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = (
    "GatewayOrder",
    "GatewayError",
    "PaymentGateway",
    "to_minor",
    "from_minor",
    "receipt_for",
    "sign",
    "verify_signature",
    "RazorpayGateway",
)
