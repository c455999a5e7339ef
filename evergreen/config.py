"""
Settings — environment-driven configuration.

    EVERGREEN_COD_LIMIT=1500 EVERGREEN_GATEWAY_KEY_SECRET=... uvicorn ...
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Commerce settings, loaded from ``EVERGREEN_*`` variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="EVERGREEN_",
        env_file=".env",
        extra="ignore",
    )

    # Cart & checkout
    shipping_charge: Decimal = Field(
        default=Decimal("30"),
        description="Flat shipping charge added to every cart",
    )
    cod_limit: Decimal = Field(
        default=Decimal("1000"),
        description="Orders above this total are not eligible for cash on delivery",
    )
    existing_item_step: Decimal = Field(
        default=Decimal("0.5"),
        description="Quantity added when an item already in the cart is added again",
    )
    strict_client_totals: bool = Field(
        default=False,
        description="Reject orders whose declared total differs from the server cart total",
    )
    honor_offer_expiry: bool = Field(
        default=True,
        description="Ignore product/category offers whose expiration date has passed",
    )

    # Payment gateway
    currency: str = Field(default="INR", description="Gateway currency code")
    gateway_key_id: str = Field(default="", description="Gateway API key id")
    gateway_key_secret: str = Field(
        default="",
        description="Gateway API secret, also the HMAC key for payment signatures",
    )
    gateway_base_url: str = Field(
        default="https://api.razorpay.com/v1",
        description="Gateway REST base URL",
    )
    gateway_timeout: float = Field(default=10.0, description="Gateway request timeout (s)")

    # Referrals
    referral_reward: Decimal = Field(
        default=Decimal("250"),
        description="Wallet credit for the referrer",
    )
    referral_bonus: Decimal = Field(
        default=Decimal("100"),
        description="Wallet credit for the newly referred user",
    )

    # Infrastructure
    database_url: str = Field(
        default="sqlite+aiosqlite:///:memory:",
        description="SQLAlchemy async database URL",
    )
    log_level: str = Field(default="INFO", description="Minimum log level")
    log_json: bool = Field(default=False, description="Render logs as JSON")


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ("Settings", "get_settings")
