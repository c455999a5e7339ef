"""Pytest fixtures for evergreen tests."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from evergreen.checkout import CheckoutRequest
from evergreen.config import Settings
from evergreen.coupons import PricingContext
from evergreen.domain import (
    Address,
    Category,
    Coupon,
    DiscountType,
    Product,
    User,
)
from evergreen.gateway import GatewayError, GatewayOrder
from evergreen.log import configure_logging
from evergreen.repo import Repository
from evergreen.services import build_services
from evergreen.store import MemoryDocumentStore

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)
SECRET = "test_secret"


def fixed_clock() -> datetime:
    return NOW


class FakeGateway:
    """Records orders instead of calling the network."""

    def __init__(self) -> None:
        self.orders: list[GatewayOrder] = []
        self.fail = False

    async def create_order(self, amount_minor: int, receipt: str, currency: str) -> GatewayOrder:
        if self.fail:
            raise GatewayError("gateway unavailable")
        order = GatewayOrder(
            id=f"order_{len(self.orders) + 1}",
            amount=amount_minor,
            currency=currency,
            receipt=receipt,
        )
        self.orders.append(order)
        return order


@dataclass
class Catalog:
    user: User
    address: Address
    category: Category
    product: Product
    coupon: Coupon


async def seed_catalog(repo: Repository) -> Catalog:
    """One user with an address, one product at 100 with stock 10, a 10% coupon."""
    user = await repo.users.put(User(
        id="u1", first_name="Asha", last_name="Nair", email="asha@example.com"
    ))
    address = await repo.addresses.put(Address(
        id="a1",
        user_id="u1",
        address="12 MG Road",
        city="Kochi",
        state="Kerala",
        zip_code="682001",
        is_default=True,
    ))
    category = await repo.categories.put(Category(id="c1", name="Herbs"))
    product = await repo.products.put(Product(
        id="p1",
        name="Basil",
        price=Decimal("100"),
        stock=Decimal("10"),
        category_id="c1",
    ))
    coupon = await repo.coupons.put(Coupon(
        id="k1",
        code="GREEN10",
        discount_type=DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        minimum_purchase=Decimal("50"),
        expires_at=NOW + timedelta(days=30),
    ))
    return Catalog(user, address, category, product, coupon)


def checkout_request(
    method: str,
    total: str | Decimal,
    coupon: PricingContext | None = None,
    *,
    user_id: str = "u1",
    address_id: str = "a1",
    terms_accepted: bool = True,
) -> CheckoutRequest:
    return CheckoutRequest(
        user_id=user_id,
        payment_method=method,
        total_price=Decimal(total),
        address_id=address_id,
        coupon=coupon,
        terms_accepted=terms_accepted,
    )


@pytest.fixture(scope="session", autouse=True)
def structured_logging():
    """Route structlog through stdlib logging so stdout stays clean."""
    configure_logging(log_level="INFO", add_timestamp=False)


@pytest.fixture
def settings():
    """Shipping is zero so totals read as plain product prices."""
    return Settings(
        _env_file=None,
        shipping_charge=Decimal("0"),
        gateway_key_id="key_test",
        gateway_key_secret=SECRET,
    )


@pytest.fixture
def repo():
    return Repository(MemoryDocumentStore())


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def services(repo, settings, gateway):
    return build_services(repo, settings, gateway=gateway, clock=fixed_clock)


@pytest.fixture
async def catalog(repo):
    return await seed_catalog(repo)


@pytest.fixture
def seeder():
    return seed_catalog


@pytest.fixture
def make_request():
    return checkout_request
