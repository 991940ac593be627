"""Tests for the pure discount arithmetic and event price precedence."""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from artisan_market.model.types import DiscountType, EventDiscountType
from artisan_market.services.pricing import (
    DiscountRule, EventLevelRule, NoDiscount, ProductOverride, SpecialPrice,
    compute_discount, percent_of, resolve_event_price, select_price_source,
)


def _event(kind=None, value=None, cap=None):
    return SimpleNamespace(discount_type=kind, discount_value=value, max_discount=cap)


def _override(special=None, kind=None, value=None, cap=None, active=True):
    return SimpleNamespace(special_price=special, discount_type=kind, discount_value=value,
                           max_discount=cap, is_active=active)


def test_percentage_discount():
    rule = DiscountRule.of(DiscountType.PERCENTAGE, "20")
    assert compute_discount(Decimal("200"), rule) == Decimal("40")


def test_percentage_discount_is_capped():
    rule = DiscountRule.of(DiscountType.PERCENTAGE, "50", cap="30")
    assert compute_discount(Decimal("200"), rule) == Decimal("30")


def test_fixed_amount_never_exceeds_base():
    rule = DiscountRule.of(DiscountType.FIXED_AMOUNT, "50")
    assert compute_discount(Decimal("30"), rule) == Decimal("30")
    assert compute_discount(Decimal("80"), rule) == Decimal("50")


def test_free_shipping_discounts_nothing_on_items():
    rule = DiscountRule.of(DiscountType.FREE_SHIPPING, "0")
    assert compute_discount(Decimal("120"), rule) == Decimal("0")


def test_empty_base_gives_zero():
    rule = DiscountRule.of(DiscountType.PERCENTAGE, "20")
    assert compute_discount(Decimal("0"), rule) == Decimal("0")


def test_event_kind_maps_onto_discount_kind():
    rule = DiscountRule.of(EventDiscountType.FIXED_AMOUNT, "5")
    assert rule.kind is DiscountType.FIXED_AMOUNT


def test_percent_of_rounds_to_two_places():
    assert percent_of(Decimal("30"), Decimal("10")) == Decimal("33.33")
    assert percent_of(Decimal("0"), Decimal("10")) == Decimal("0")


def test_special_price_sets_the_price():
    quote = resolve_event_price(Decimal("100"), ProductOverride(SpecialPrice(Decimal("70"))))
    assert quote.discounted_price == Decimal("70")
    assert quote.discount_amount == Decimal("30")
    assert quote.discount_percent == Decimal("30.00")
    assert quote.is_discounted


def test_special_price_above_regular_is_not_a_discount():
    quote = resolve_event_price(Decimal("100"), ProductOverride(SpecialPrice(Decimal("120"))))
    assert quote.discount_amount == Decimal("0")
    assert not quote.is_discounted


def test_no_discount_keeps_regular_price():
    quote = resolve_event_price(Decimal("45.50"), NoDiscount())
    assert quote.discounted_price == Decimal("45.50")
    assert not quote.is_discounted


def test_override_beats_event_rule():
    event = _event(EventDiscountType.PERCENTAGE, Decimal("10"))
    source = select_price_source(event, _override(special=Decimal("60")))
    assert source == ProductOverride(SpecialPrice(Decimal("60")))
    assert resolve_event_price(Decimal("100"), source).discounted_price == Decimal("60")


def test_special_price_beats_override_kind():
    override = _override(special=Decimal("90"), kind=EventDiscountType.PERCENTAGE, value=Decimal("50"))
    quote = resolve_event_price(Decimal("100"), select_price_source(_event(), override))
    assert quote.discounted_price == Decimal("90")


def test_override_rule_applies_to_regular_price():
    override = _override(kind=EventDiscountType.FIXED_AMOUNT, value=Decimal("15"))
    quote = resolve_event_price(Decimal("100"), select_price_source(_event(), override))
    assert quote.discounted_price == Decimal("85")
    assert quote.discount_percent == Decimal("15.00")


def test_inactive_override_falls_back_to_event_rule():
    event = _event(EventDiscountType.PERCENTAGE, Decimal("25"))
    source = select_price_source(event, _override(special=Decimal("10"), active=False))
    assert isinstance(source, EventLevelRule)
    assert resolve_event_price(Decimal("80"), source).discounted_price == Decimal("60")


@pytest.mark.parametrize("event", [_event(), _event(EventDiscountType.PERCENTAGE, Decimal("0")), None])
def test_event_without_rule_means_no_discount(event):
    assert select_price_source(event) == NoDiscount()
