"""Tests for the FastAPI surface."""

import asyncio
from decimal import Decimal

import pytest
from conftest import SECRET
from fastapi.testclient import TestClient

from evergreen.gateway import sign
from evergreen.http import create_app

USER = {"X-User-Id": "u1"}


@pytest.fixture
def client(services, repo, seeder):
    asyncio.run(seeder(repo))
    with TestClient(create_app(services)) as client:
        yield client


def place_cod(client, total="100"):
    client.post("/cart/items", json={"product_id": "p1"}, headers=USER)
    return client.post(
        "/orders",
        json={
            "payment_method": "COD",
            "total_price": total,
            "address_id": "a1",
            "terms_accepted": True,
        },
        headers=USER,
    )


class TestCart:
    def test_add_and_view(self, client):
        added = client.post("/cart/items", json={"product_id": "p1"}, headers=USER)
        assert added.status_code == 200
        body = added.json()
        assert body["success"] is True
        assert body["message"] == "Product added to cart."
        assert isinstance(body["items"][0]["item_total"], str)
        assert Decimal(body["items"][0]["item_total"]) == Decimal("100")
        assert Decimal(body["total_price"]) == Decimal("100")

        viewed = client.get("/cart", headers=USER).json()
        assert viewed["items"][0]["product_id"] == "p1"

    def test_missing_user_header(self, client):
        assert client.get("/cart").status_code == 422

    def test_unknown_product(self, client):
        response = client.post("/cart/items", json={"product_id": "nope"}, headers=USER)
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Product not found."}


class TestCheckout:
    def test_coupon_then_cod(self, client):
        client.post("/cart/items", json={"product_id": "p1"}, headers=USER)
        applied = client.post("/coupons/apply", json={"code": "GREEN10"}, headers=USER)
        assert Decimal(applied.json()["discount"]) == Decimal("10")

        placed = place_cod(client)

        assert placed.status_code == 200
        body = placed.json()
        assert body["message"] == "Order placed successfully."
        assert body["order"]["order_number"] == "ORD-2026-00001"
        assert Decimal(body["order"]["total_price"]) == Decimal("90")
        assert body["order"]["coupon_code"] == "GREEN10"

    def test_cod_cap(self, client):
        response = place_cod(client, total="1000.01")
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_cancel(self, client):
        order_id = place_cod(client).json()["order"]["id"]
        response = client.post(f"/orders/{order_id}/cancel", headers=USER)
        body = response.json()
        assert response.status_code == 200
        assert body["order"]["order_status"] == "Cancelled"
        assert Decimal(body["refund_amount"]) == 0


class TestPayments:
    def test_online_order_verified(self, client, gateway):
        client.post("/cart/items", json={"product_id": "p1"}, headers=USER)
        placed = client.post(
            "/orders",
            json={
                "payment_method": "Razorpay",
                "total_price": "100",
                "address_id": "a1",
                "terms_accepted": True,
            },
            headers=USER,
        ).json()
        gid = placed["gateway_order"]["id"]
        assert placed["gateway_order"]["amount"] == 10000

        verified = client.post("/payments/verify", json={
            "gateway_order_id": gid,
            "payment_id": "pay_1",
            "signature": sign(SECRET, gid, "pay_1"),
        })

        assert verified.status_code == 200
        assert verified.json()["order"]["payment_status"] == "Success"

    def test_bad_signature(self, client):
        response = client.post("/payments/verify", json={
            "gateway_order_id": "order_1",
            "payment_id": "pay_1",
            "signature": "bad",
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid payment signature."


class TestAdmin:
    def test_status_change_and_illegal_move(self, client):
        order_id = place_cod(client).json()["order"]["id"]

        delivered = client.patch(f"/admin/orders/{order_id}/status", json={"status": "Delivered"})
        assert delivered.json()["message"] == "Order status changed to Delivered."
        assert delivered.json()["payment_status"] == "Success"

        back = client.patch(f"/admin/orders/{order_id}/status", json={"status": "Pending"})
        assert back.status_code == 409

    def test_sales_report_csv(self, client):
        order_id = place_cod(client).json()["order"]["id"]
        client.patch(f"/admin/orders/{order_id}/status", json={"status": "Delivered"})

        json_report = client.get("/admin/reports/sales", params={"type": "yearly"}).json()
        assert json_report["total_orders"] == 1

        csv_report = client.get("/admin/reports/sales", params={"type": "yearly", "csv": "true"})
        assert csv_report.headers["content-type"].startswith("text/csv")
        assert "ORD-2026-00001" in csv_report.text

    def test_coupon_admin(self, client):
        payload = {
            "code": "SPRING20",
            "discount_type": "FIXED",
            "discount_value": "20",
            "expires_at": "2026-04-30T00:00:00+00:00",
        }

        created = client.post("/admin/coupons", json=payload)
        assert created.json()["message"] == "SPRING20 added successfully."
        coupon_id = created.json()["id"]

        duplicate = client.post("/admin/coupons", json={**payload, "code": "spring20"})
        assert duplicate.status_code == 400

        edited = client.put(f"/admin/coupons/{coupon_id}", json={**payload, "discount_value": "25"})
        assert Decimal(edited.json()["discount_value"]) == Decimal("25")

        toggled = client.patch(f"/admin/coupons/{coupon_id}/toggle")
        assert toggled.json()["message"] == "Coupon deactivated successfully."
        assert toggled.json()["is_active"] is False

        listed = client.get("/admin/coupons").json()
        assert sorted(c["code"] for c in listed["coupons"]) == ["GREEN10", "SPRING20"]

    def test_dashboard(self, client):
        body = client.get("/admin/dashboard").json()
        assert body["total_users"] == 1
        assert body["total_orders"] == 0

    def test_reconcile(self, client):
        body = client.post("/admin/reconcile").json()
        assert body == {
            "success": True,
            "message": "Reconciliation finished.",
            "finalized": [],
            "failed": [],
        }
