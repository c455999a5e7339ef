"""Tests for gateway helpers and the Razorpay client."""

import json
from decimal import Decimal

import httpx
import pytest

from evergreen.gateway import (
    GatewayError,
    RazorpayGateway,
    from_minor,
    receipt_for,
    sign,
    to_minor,
    verify_signature,
)


class TestHelpers:
    def test_minor_units(self):
        assert to_minor(Decimal("90.005")) == 9001
        assert to_minor(Decimal("100")) == 10000
        assert from_minor(12345) == Decimal("123.45")

    def test_receipt_capped(self):
        assert len(receipt_for("u" * 60)) == 40

    def test_signature(self):
        signature = sign("secret", "order_1", "pay_1")
        assert len(signature) == 64
        assert verify_signature("secret", "order_1", "pay_1", signature)
        assert not verify_signature("secret", "order_1", "pay_2", signature)
        assert not verify_signature("other", "order_1", "pay_1", signature)


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url="https://gateway.test/v1",
        auth=("key", "secret"),
        transport=httpx.MockTransport(handler),
    )


class TestRazorpayGateway:
    async def test_create_order(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers["authorization"]
            return httpx.Response(200, json={
                "id": "order_abc", "amount": 9000, "currency": "INR", "receipt": "r1",
            })

        gateway = RazorpayGateway("key", "secret", client=client_for(handler))
        order = await gateway.create_order(9000, "r1", "INR")
        await gateway.aclose()

        assert order.id == "order_abc"
        assert order.amount == 9000
        assert seen["path"] == "/v1/orders"
        assert seen["body"] == {"amount": 9000, "currency": "INR", "receipt": "r1"}
        assert seen["auth"].startswith("Basic ")

    async def test_http_failure(self):
        gateway = RazorpayGateway(
            "key", "secret", client=client_for(lambda request: httpx.Response(500))
        )
        with pytest.raises(GatewayError):
            await gateway.create_order(9000, "r1", "INR")
        await gateway.aclose()
