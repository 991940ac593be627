# artisan_market/services/pricing.py
"""
Discount arithmetic shared by discount codes and sale events.

Everything here is pure: no session access, no clock. Amounts are Decimal
and are left unrounded; callers quantize with ``round_money`` at the point
where a value is persisted or returned.
"""
from __future__ import annotations

from dataclasses import dataclass

from ..model.types import DiscountType, EventDiscountType
from ..utils.money import D, Money, ZERO, HUNDRED, round_percent


@dataclass(frozen=True)
class DiscountRule:
    kind: DiscountType
    value: Money
    cap: Money | None = None

    @classmethod
    def of(cls, kind, value, cap=None) -> "DiscountRule":
        # event rules use a narrower enum with the same member names
        if isinstance(kind, EventDiscountType):
            kind = DiscountType(kind.value)
        return cls(kind=DiscountType(kind), value=D(value), cap=None if cap is None else D(cap))


def compute_discount(base, rule: DiscountRule) -> Money:
    base = D(base)
    if base <= 0:
        return ZERO

    if rule.kind is DiscountType.PERCENTAGE:
        amount = base * rule.value / HUNDRED
        if rule.cap is not None:
            amount = min(amount, rule.cap)
    elif rule.kind is DiscountType.FIXED_AMOUNT:
        amount = min(rule.value, base)
    elif rule.kind is DiscountType.FREE_SHIPPING:
        # shipping is priced elsewhere
        amount = ZERO
    else:
        raise ValueError(f"unsupported discount kind: {rule.kind!r}")

    return max(amount, ZERO)


def percent_of(base, amount) -> Money:
    base = D(base)
    if base <= 0:
        return ZERO
    return round_percent(D(amount) / base * HUNDRED)


# ---- event price sources ---------------------------------------------------

@dataclass(frozen=True)
class NoDiscount:
    pass


@dataclass(frozen=True)
class EventLevelRule:
    rule: DiscountRule


@dataclass(frozen=True)
class SpecialPrice:
    price: Money


@dataclass(frozen=True)
class ProductOverride:
    terms: SpecialPrice | DiscountRule


PriceSource = NoDiscount | EventLevelRule | ProductOverride


@dataclass(frozen=True)
class PriceQuote:
    base_price: Money
    discounted_price: Money
    discount_amount: Money
    discount_percent: Money

    @property
    def is_discounted(self) -> bool:
        return self.discount_amount > 0


def select_price_source(event, override=None) -> PriceSource:
    """Override beats event-level rule beats no discount."""
    if override is not None and override.is_active:
        if override.special_price is not None:
            return ProductOverride(SpecialPrice(D(override.special_price)))
        if override.discount_type is not None and override.discount_value is not None:
            return ProductOverride(DiscountRule.of(
                override.discount_type, override.discount_value, override.max_discount))

    if event is not None and event.discount_type is not None and D(event.discount_value) > 0:
        return EventLevelRule(DiscountRule.of(event.discount_type, event.discount_value, event.max_discount))

    return NoDiscount()


def resolve_event_price(regular_price, source: PriceSource) -> PriceQuote:
    base = D(regular_price)

    if isinstance(source, NoDiscount):
        return PriceQuote(base, base, ZERO, ZERO)

    if isinstance(source, ProductOverride) and isinstance(source.terms, SpecialPrice):
        special = max(source.terms.price, ZERO)
        amount = max(base - special, ZERO)
        return PriceQuote(base, special, amount, percent_of(base, amount))

    if isinstance(source, EventLevelRule):
        rule = source.rule
    elif isinstance(source, ProductOverride):
        rule = source.terms
    else:
        raise ValueError(f"unsupported price source: {source!r}")

    amount = compute_discount(base, rule)
    return PriceQuote(base, max(base - amount, ZERO), amount, percent_of(base, amount))
