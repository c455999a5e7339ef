"""
Errors — one taxonomy for every operation.

Operations return ``Result[T, CommerceError]``. Expected failures are built
through ``Errors``; anything unexpected is caught at the operation boundary
by ``@boundary``, logged, and surfaced as ``Errors.internal()``.

    @boundary("cart.add_item")
    async def add_item(self, user_id: str, product_id: str) -> Result[Cart, CommerceError]:
        ...
"""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

import structlog
from kungfu import Error, Result

from evergreen._types import Money

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ErrorKind
# ═══════════════════════════════════════════════════════════════════════════════

class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    OUT_OF_STOCK = "out_of_stock"
    INVALID_COUPON = "invalid_coupon"
    ALREADY_USED = "already_used"
    EXPIRED = "expired"
    BELOW_MINIMUM = "below_minimum"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    INVALID_SIGNATURE = "invalid_signature"
    ILLEGAL_TRANSITION = "illegal_transition"
    PAYMENT_FAILED = "payment_failed"
    INTERNAL = "internal"

    @property
    def status(self) -> int:
        return _HTTP_STATUS[self]


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.OUT_OF_STOCK: 400,
    ErrorKind.INVALID_COUPON: 400,
    ErrorKind.ALREADY_USED: 400,
    ErrorKind.EXPIRED: 400,
    ErrorKind.BELOW_MINIMUM: 400,
    ErrorKind.INSUFFICIENT_BALANCE: 400,
    ErrorKind.INVALID_SIGNATURE: 400,
    ErrorKind.ILLEGAL_TRANSITION: 409,
    ErrorKind.PAYMENT_FAILED: 402,
    ErrorKind.INTERNAL: 500,
}


# ═══════════════════════════════════════════════════════════════════════════════
# CommerceError
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class CommerceError:
    """Structured failure: machine kind + human message."""

    kind: ErrorKind
    message: str

    @property
    def status(self) -> int:
        return self.kind.status


INTERNAL_MESSAGE = "Something went wrong. Please try again later."


class Errors:
    """Factory for every user-facing failure."""

    @staticmethod
    def not_found(what: str) -> CommerceError:
        return CommerceError(ErrorKind.NOT_FOUND, f"{what} not found.")

    @staticmethod
    def bad_request(message: str) -> CommerceError:
        return CommerceError(ErrorKind.BAD_REQUEST, message)

    @staticmethod
    def out_of_stock() -> CommerceError:
        return CommerceError(ErrorKind.OUT_OF_STOCK, "Product is out of stock.")

    @staticmethod
    def not_enough_stock() -> CommerceError:
        return CommerceError(ErrorKind.OUT_OF_STOCK, "Not enough stock available.")

    @staticmethod
    def coupon_not_found() -> CommerceError:
        return CommerceError(ErrorKind.INVALID_COUPON, "Coupon not found.")

    @staticmethod
    def invalid_coupon() -> CommerceError:
        return CommerceError(ErrorKind.INVALID_COUPON, "Invalid coupon.")

    @staticmethod
    def coupon_used() -> CommerceError:
        return CommerceError(ErrorKind.ALREADY_USED, "You have already used this coupon.")

    @staticmethod
    def coupon_expired() -> CommerceError:
        return CommerceError(ErrorKind.EXPIRED, "Coupon has expired.")

    @staticmethod
    def below_minimum(minimum: Money) -> CommerceError:
        return CommerceError(
            ErrorKind.BELOW_MINIMUM,
            f"Minimum purchase amount for this coupon is ₹{minimum}.",
        )

    @staticmethod
    def insufficient_balance() -> CommerceError:
        return CommerceError(ErrorKind.INSUFFICIENT_BALANCE, "Insufficient balance in wallet.")

    @staticmethod
    def invalid_signature() -> CommerceError:
        return CommerceError(ErrorKind.INVALID_SIGNATURE, "Invalid payment signature.")

    @staticmethod
    def illegal_transition(what: str, current: str, target: str) -> CommerceError:
        return CommerceError(
            ErrorKind.ILLEGAL_TRANSITION,
            f"Cannot move {what} from '{current}' to '{target}'.",
        )

    @staticmethod
    def payment_failed() -> CommerceError:
        return CommerceError(
            ErrorKind.PAYMENT_FAILED,
            "Order payment failed. You can retry the payment from your orders page.",
        )

    @staticmethod
    def internal() -> CommerceError:
        return CommerceError(ErrorKind.INTERNAL, INTERNAL_MESSAGE)


# ═══════════════════════════════════════════════════════════════════════════════
# Operation boundary
# ═══════════════════════════════════════════════════════════════════════════════

def boundary[**P, T](
    operation: str,
) -> Callable[
    [Callable[P, Awaitable[Result[T, CommerceError]]]],
    Callable[P, Awaitable[Result[T, CommerceError]]],
]:
    """
    Catch anything unexpected, log it with full detail, return the generic error.

    The caller never sees raw exception text.
    """

    def decorate(
        fn: Callable[P, Awaitable[Result[T, CommerceError]]],
    ) -> Callable[P, Awaitable[Result[T, CommerceError]]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> Result[T, CommerceError]:
            try:
                return await fn(*args, **kwargs)
            except Exception:
                logger.exception("operation_failed", operation=operation)
                return Error(Errors.internal())

        return wrapper

    return decorate


__all__ = (
    "ErrorKind",
    "CommerceError",
    "Errors",
    "INTERNAL_MESSAGE",
    "boundary",
)
