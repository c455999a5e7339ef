"""
Services — every operation wired over one repository.

    services = build_services(Repository(MemoryDocumentStore()), Settings())
    await services.cart.add_item(user_id, product_id)

``open_services`` builds the production set from settings: SQLAlchemy store,
Razorpay gateway when credentials are configured.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from evergreen._types import Clock, utcnow
from evergreen.cart import CartService
from evergreen.checkout import CheckoutService
from evergreen.config import Settings
from evergreen.coupons import CouponService, SessionCoupons
from evergreen.finalization import Finalizer
from evergreen.gateway import PaymentGateway, RazorpayGateway
from evergreen.lifecycle import LifecycleService
from evergreen.payments import PaymentService
from evergreen.referrals import ReferralService
from evergreen.refunds import RefundService
from evergreen.reports import ReportService
from evergreen.repo import Repository
from evergreen.store import SQLAlchemyDocumentStore
from evergreen.wallet import WalletLedger

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Services:
    settings: Settings
    repo: Repository
    session: SessionCoupons
    cart: CartService
    coupons: CouponService
    checkout: CheckoutService
    payments: PaymentService
    finalizer: Finalizer
    wallet: WalletLedger
    refunds: RefundService
    lifecycle: LifecycleService
    referrals: ReferralService
    reports: ReportService
    gateway: PaymentGateway | None = None


def build_services(
    repo: Repository,
    settings: Settings,
    *,
    gateway: PaymentGateway | None = None,
    clock: Clock = utcnow,
) -> Services:
    session = SessionCoupons()
    finalizer = Finalizer(repo)
    wallet = WalletLedger(repo, settings, gateway, clock)
    refunds = RefundService(repo, wallet)
    return Services(
        settings=settings,
        repo=repo,
        session=session,
        cart=CartService(repo, settings, clock),
        coupons=CouponService(repo, settings, session, clock),
        checkout=CheckoutService(repo, settings, wallet, finalizer, gateway, session, clock),
        payments=PaymentService(repo, settings, finalizer, wallet),
        finalizer=finalizer,
        wallet=wallet,
        refunds=refunds,
        lifecycle=LifecycleService(repo, refunds),
        referrals=ReferralService(repo, settings, wallet),
        reports=ReportService(repo, clock),
        gateway=gateway,
    )


async def open_services(settings: Settings) -> tuple[Services, SQLAlchemyDocumentStore]:
    """Production wiring. Close the returned store on shutdown."""
    store = await SQLAlchemyDocumentStore.create(settings.database_url)
    gateway: PaymentGateway | None = None
    if settings.gateway_key_id and settings.gateway_key_secret:
        gateway = RazorpayGateway(
            settings.gateway_key_id,
            settings.gateway_key_secret,
            base_url=settings.gateway_base_url,
            timeout=settings.gateway_timeout,
        )
    else:
        logger.warning("gateway_not_configured")
    return build_services(Repository(store), settings, gateway=gateway), store


__all__ = ("Services", "build_services", "open_services")
