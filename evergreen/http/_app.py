"""
FastAPI surface.

Every route answers ``{"success": bool, "message": str, ...}``; failures use
the status code of their error kind. The caller is identified by the
``X-User-Id`` header, set by whatever authenticates in front of this app.

    app = create_app(build_services(repo, settings))
"""

import io
from collections.abc import Callable
from datetime import date
from typing import Annotated, Any

from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse, Response
from kungfu import Error, Ok, Result
from pydantic import BaseModel

from evergreen.errors import CommerceError
from evergreen.http._models import (
    AddItemIn,
    ApplyCouponIn,
    CancelOut,
    CartOut,
    ChartOut,
    CheckoutOut,
    CouponIn,
    CouponListOut,
    CouponOut,
    DashboardOut,
    ExchangeStatusIn,
    GatewayOrderOut,
    ItemStatusIn,
    OrderOut,
    OrderStatusIn,
    PaymentFailedIn,
    PlaceOrderIn,
    PricingOut,
    ReasonIn,
    ReconcileOut,
    ReferralIn,
    RefundStatusIn,
    RetryOut,
    ReturnStatusIn,
    SalesReportOut,
    TopUpIn,
    UpdateQuantityIn,
    VerifyPaymentIn,
    WalletOut,
    WalletTxOut,
)
from evergreen.reports import write_csv
from evergreen.services import Services

UserId = Annotated[str, Header(alias="X-User-Id")]


def reply[T](
    result: Result[T, CommerceError],
    render: Callable[[T], BaseModel | None] = lambda _: None,
    message: str = "",
) -> JSONResponse:
    match result:
        case Ok(value):
            body: dict[str, Any] = {"success": True, "message": message}
            rendered = render(value)
            if rendered is not None:
                body.update(rendered.model_dump(mode="json"))
            return JSONResponse(body, status_code=200)
        case Error(e):
            return JSONResponse({"success": False, "message": e.message}, status_code=e.status)


def create_app(services: Services) -> FastAPI:
    app = FastAPI(title="EverGreen")
    s = services

    # ───────────────────────────────────────────────────────────────────────────
    # Cart
    # ───────────────────────────────────────────────────────────────────────────

    @app.get("/cart")
    async def view_cart(user_id: UserId) -> JSONResponse:
        return reply(await s.cart.view(user_id), CartOut.from_domain)

    @app.post("/cart/items")
    async def add_to_cart(user_id: UserId, body: AddItemIn) -> JSONResponse:
        return reply(
            await s.cart.add_item(user_id, body.product_id),
            CartOut.from_domain,
            "Product added to cart.",
        )

    @app.patch("/cart/items/{product_id}")
    async def update_cart_item(
        user_id: UserId, product_id: str, body: UpdateQuantityIn
    ) -> JSONResponse:
        return reply(
            await s.cart.update_quantity(user_id, product_id, body.quantity),
            CartOut.from_domain,
            "Cart updated.",
        )

    @app.delete("/cart/items/{product_id}")
    async def remove_cart_item(user_id: UserId, product_id: str) -> JSONResponse:
        return reply(
            await s.cart.remove_item(user_id, product_id),
            CartOut.from_domain,
            "Product removed from cart.",
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Coupons
    # ───────────────────────────────────────────────────────────────────────────

    @app.post("/coupons/apply")
    async def apply_coupon(user_id: UserId, body: ApplyCouponIn) -> JSONResponse:
        return reply(
            await s.coupons.apply(user_id, body.code),
            PricingOut.from_domain,
            "Coupon applied successfully.",
        )

    @app.delete("/coupons/apply")
    async def remove_coupon(user_id: UserId) -> JSONResponse:
        return reply(
            await s.coupons.remove(user_id),
            CartOut.from_domain,
            "Coupon removed successfully.",
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Orders
    # ───────────────────────────────────────────────────────────────────────────

    @app.post("/orders")
    async def place_order(user_id: UserId, body: PlaceOrderIn) -> JSONResponse:
        request = body.to_domain(user_id, s.session.get(user_id))
        result = await s.checkout.create_order(request)
        message = result.value.message if isinstance(result, Ok) else ""
        return reply(result, CheckoutOut.from_domain, message)

    @app.post("/orders/{order_id}/cancel")
    async def cancel_order(user_id: UserId, order_id: str) -> JSONResponse:
        return reply(
            await s.lifecycle.cancel_order(user_id, order_id),
            CancelOut.from_domain,
            "Order has been cancelled successfully.",
        )

    @app.post("/orders/{order_id}/items/{item_id}/return")
    async def return_item(
        user_id: UserId, order_id: str, item_id: str, body: ReasonIn
    ) -> JSONResponse:
        return reply(
            await s.lifecycle.request_return(user_id, order_id, item_id, body.reason),
            OrderOut.from_domain,
            "Return requested.",
        )

    @app.post("/orders/{order_id}/items/{item_id}/exchange")
    async def exchange_item(
        user_id: UserId, order_id: str, item_id: str, body: ReasonIn
    ) -> JSONResponse:
        return reply(
            await s.lifecycle.request_exchange(user_id, order_id, item_id, body.reason),
            OrderOut.from_domain,
            "Exchange requested.",
        )

    @app.post("/orders/{order_id}/retry")
    async def retry_payment(user_id: UserId, order_id: str) -> JSONResponse:
        return reply(await s.payments.retry(user_id, order_id), RetryOut.from_domain)

    # ───────────────────────────────────────────────────────────────────────────
    # Payments
    # ───────────────────────────────────────────────────────────────────────────

    @app.post("/payments/verify")
    async def verify_payment(body: VerifyPaymentIn) -> JSONResponse:
        return reply(
            await s.payments.confirm(body.gateway_order_id, body.payment_id, body.signature),
            lambda order: CheckoutOut(order=OrderOut.from_domain(order)),
            "Payment verified successfully.",
        )

    @app.post("/payments/failed")
    async def payment_failed(body: PaymentFailedIn) -> JSONResponse:
        return reply(
            await s.payments.fail(body.gateway_order_id),
            lambda order: CheckoutOut(order=OrderOut.from_domain(order)),
            "Payment failed. You can retry the payment from your orders page.",
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Wallet & referrals
    # ───────────────────────────────────────────────────────────────────────────

    @app.get("/wallet")
    async def wallet(user_id: UserId) -> JSONResponse:
        return reply(await s.wallet.view(user_id), WalletOut.from_domain)

    @app.post("/wallet/top-up")
    async def start_top_up(user_id: UserId, body: TopUpIn) -> JSONResponse:
        return reply(await s.wallet.start_top_up(user_id, body.amount), GatewayOrderOut.from_domain)

    @app.post("/wallet/top-up/verify")
    async def complete_top_up(user_id: UserId, body: VerifyPaymentIn) -> JSONResponse:
        return reply(
            await s.wallet.complete_top_up(
                user_id, body.gateway_order_id, body.payment_id, body.signature
            ),
            WalletTxOut.from_domain,
            "Payment verified and wallet updated.",
        )

    @app.post("/referrals/verify")
    async def verify_referral(body: ReferralIn) -> JSONResponse:
        return reply(
            await s.referrals.validate(body.code),
            message="Referral code verified successfully.",
        )

    # ───────────────────────────────────────────────────────────────────────────
    # Admin
    # ───────────────────────────────────────────────────────────────────────────

    @app.patch("/admin/orders/{order_id}/status")
    async def update_order_status(order_id: str, body: OrderStatusIn) -> JSONResponse:
        return reply(
            await s.lifecycle.update_order_status(order_id, body.status),
            OrderOut.from_domain,
            f"Order status changed to {body.status.value}.",
        )

    @app.patch("/admin/orders/{order_id}/items/{item_id}/status")
    async def update_item_status(order_id: str, item_id: str, body: ItemStatusIn) -> JSONResponse:
        return reply(
            await s.lifecycle.update_item_status(order_id, item_id, body.status),
            OrderOut.from_domain,
            f"Item status changed to {body.status.value}.",
        )

    @app.patch("/admin/orders/{order_id}/items/{item_id}/return")
    async def update_return_status(
        order_id: str, item_id: str, body: ReturnStatusIn
    ) -> JSONResponse:
        return reply(
            await s.lifecycle.update_return_status(
                order_id, item_id, body.status, body.reject_reason
            ),
            OrderOut.from_domain,
            f"Return status updated to {body.status.value}.",
        )

    @app.patch("/admin/orders/{order_id}/items/{item_id}/exchange")
    async def update_exchange_status(
        order_id: str, item_id: str, body: ExchangeStatusIn
    ) -> JSONResponse:
        return reply(
            await s.lifecycle.update_exchange_status(
                order_id, item_id, body.status, body.reject_reason
            ),
            OrderOut.from_domain,
            "Exchange status updated successfully",
        )

    @app.patch("/admin/orders/{order_id}/items/{item_id}/refund")
    async def update_refund_status(
        order_id: str, item_id: str, body: RefundStatusIn
    ) -> JSONResponse:
        return reply(
            await s.lifecycle.update_refund_status(
                order_id, item_id, body.status, body.reject_reason
            ),
            OrderOut.from_domain,
            "Refund status updated successfully",
        )

    @app.get("/admin/coupons")
    async def list_coupons() -> JSONResponse:
        return reply(await s.coupons.all(), CouponListOut.from_domain)

    @app.post("/admin/coupons")
    async def add_coupon(body: CouponIn) -> JSONResponse:
        return reply(
            await s.coupons.create(body.to_domain()),
            CouponOut.from_domain,
            f"{body.code.strip()} added successfully.",
        )

    @app.put("/admin/coupons/{coupon_id}")
    async def edit_coupon(coupon_id: str, body: CouponIn) -> JSONResponse:
        return reply(
            await s.coupons.update(coupon_id, body.to_domain()),
            CouponOut.from_domain,
            f"{body.code.strip()} updated successfully.",
        )

    @app.patch("/admin/coupons/{coupon_id}/toggle")
    async def toggle_coupon(coupon_id: str) -> JSONResponse:
        result = await s.coupons.toggle(coupon_id)
        state = "activated" if isinstance(result, Ok) and result.value.is_active else "deactivated"
        return reply(result, CouponOut.from_domain, f"Coupon {state} successfully.")

    @app.get("/admin/reports/sales", response_model=None)
    async def sales_report(
        kind: Annotated[str, Query(alias="type")] = "daily",
        start: date | None = None,
        end: date | None = None,
        as_csv: Annotated[bool, Query(alias="csv")] = False,
    ) -> Response:
        result = await s.reports.sales_report(kind, start, end)
        if as_csv and isinstance(result, Ok):
            buffer = io.StringIO()
            write_csv(result.value, buffer)
            return Response(
                buffer.getvalue(),
                media_type="text/csv",
                headers={"Content-Disposition": "attachment; filename=sales_report.csv"},
            )
        return reply(result, SalesReportOut.from_domain)

    @app.get("/admin/dashboard")
    async def dashboard() -> JSONResponse:
        return reply(await s.reports.dashboard(), DashboardOut.from_domain)

    @app.get("/admin/chart")
    async def chart(
        kind: str = "products",
        period: str = "today",
        day: date | None = None,
    ) -> JSONResponse:
        return reply(await s.reports.chart(kind, period, day), ChartOut.from_domain)

    @app.post("/admin/reconcile")
    async def reconcile() -> JSONResponse:
        return reply(await s.finalizer.reconcile(), ReconcileOut.from_domain, "Reconciliation finished.")

    return app


__all__ = ("UserId", "reply", "create_app")
