"""
Checkout — order assembly from a cart.

    from evergreen.checkout import CheckoutRequest, CheckoutService

    result = await checkout.create_order(CheckoutRequest(
        user_id=user.id,
        payment_method="COD",
        total_price=cart.total_price,
        address_id=address.id,
        coupon=applied,
        terms_accepted=True,
    ))
"""

from evergreen.checkout._nodes import (
    AddressNode,
    CartNode,
    CouponNode,
    DraftNode,
    LinesNode,
    RequestNode,
    UserNode,
)
from evergreen.checkout._service import CheckoutService, failed
from evergreen.checkout._types import (
    CheckoutAbort,
    CheckoutEnv,
    CheckoutRequest,
    CheckoutResult,
    OrderDraft,
)

__all__ = (
    "CheckoutRequest",
    "CheckoutEnv",
    "CheckoutAbort",
    "CheckoutResult",
    "OrderDraft",
    "CheckoutService",
    "failed",
    "RequestNode",
    "UserNode",
    "CartNode",
    "AddressNode",
    "CouponNode",
    "LinesNode",
    "DraftNode",
)
