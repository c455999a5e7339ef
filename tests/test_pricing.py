"""Tests for the pricing engine."""

from datetime import timedelta
from decimal import Decimal

from conftest import NOW

from evergreen.domain import Category, Offer, Product
from evergreen.pricing import DiscountSource, PricingPolicy, best_price


def product(price="100", offer=None):
    return Product(
        id="p1",
        name="Basil",
        price=Decimal(price),
        stock=Decimal("10"),
        category_id="c1",
        offer=offer,
    )


def category(offer=None):
    return Category(id="c1", name="Herbs", offer=offer)


class TestNoOffer:
    def test_list_price(self):
        quote = best_price(product(), category(), now=NOW)
        assert quote.discounted_price == Decimal("100")
        assert quote.source is DiscountSource.NONE
        assert quote.discount_type is None

    def test_inactive_offer_ignored(self):
        offer = Offer(is_active=False, percentage_discount=Decimal("50"))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("100")


class TestProductOffer:
    def test_fixed_checked_before_percentage(self):
        offer = Offer(fixed_discount=Decimal("10"), percentage_discount=Decimal("50"))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("90")
        assert quote.discount_percentage == Decimal("10")
        assert quote.source is DiscountSource.PRODUCT_FIXED
        assert quote.discount_type == "fixed"

    def test_percentage(self):
        offer = Offer(percentage_discount=Decimal("25"))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("75")
        assert quote.fixed_discount == Decimal("25")
        assert quote.source is DiscountSource.PRODUCT_PERCENTAGE

    def test_never_below_zero(self):
        offer = Offer(fixed_discount=Decimal("150"))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("0")

    def test_minimum_purchase_is_advisory(self):
        offer = Offer(percentage_discount=Decimal("20"), minimum_purchase=Decimal("500"))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("80")


class TestCategoryOffer:
    def test_category_wins_when_lower(self):
        quote = best_price(
            product(offer=Offer(percentage_discount=Decimal("10"))),
            category(Offer(percentage_discount=Decimal("20"))),
            now=NOW,
        )
        assert quote.discounted_price == Decimal("80")
        assert quote.source is DiscountSource.CATEGORY_PERCENTAGE

    def test_equal_category_offer_keeps_product_offer(self):
        quote = best_price(
            product(offer=Offer(fixed_discount=Decimal("20"))),
            category(Offer(percentage_discount=Decimal("20"))),
            now=NOW,
        )
        assert quote.discounted_price == Decimal("80")
        assert quote.source is DiscountSource.PRODUCT_FIXED


class TestExpiry:
    def test_expired_offer_skipped_by_default(self):
        offer = Offer(percentage_discount=Decimal("50"), expires_at=NOW - timedelta(days=1))
        quote = best_price(product(offer=offer), now=NOW)
        assert quote.discounted_price == Decimal("100")

    def test_expired_offer_applied_when_expiry_not_honored(self):
        offer = Offer(percentage_discount=Decimal("50"), expires_at=NOW - timedelta(days=1))
        quote = best_price(product(offer=offer), now=NOW, policy=PricingPolicy(honor_expiry=False))
        assert quote.discounted_price == Decimal("50")


class TestPurity:
    def test_repeated_calls_identical(self):
        p = product(offer=Offer(percentage_discount=Decimal("12.5")))
        c = category(Offer(fixed_discount=Decimal("5")))
        assert best_price(p, c, now=NOW) == best_price(p, c, now=NOW)
