# artisan_market/services/eligibility.py
from __future__ import annotations

from dataclasses import dataclass, field

from ..utils.money import D, Money, ZERO
from .errors import ValidationError
from .payload import parse_opt_decimal, parse_opt_int


@dataclass(frozen=True)
class LineItem:
    product_id: int | str | None
    price: Money
    quantity: int
    category_id: int | str | None = None

    @property
    def line_total(self) -> Money:
        return D(self.price) * self.quantity


def _keys(values) -> frozenset:
    # ids may arrive as ints or strings depending on the caller
    return frozenset(str(v) for v in (values or []) if v is not None and str(v) != "")


@dataclass(frozen=True)
class DiscountScope:
    applicable_to_all: bool = True
    applicable_products: frozenset = field(default_factory=frozenset)
    applicable_categories: frozenset = field(default_factory=frozenset)
    excluded_products: frozenset = field(default_factory=frozenset)

    @classmethod
    def of(cls, discount) -> "DiscountScope":
        return cls(
            applicable_to_all=bool(discount.applicable_to_all),
            applicable_products=_keys(discount.applicable_products),
            applicable_categories=_keys(discount.applicable_categories),
            excluded_products=_keys(discount.excluded_products),
        )


@dataclass(frozen=True)
class EligibleItems:
    items: tuple
    subtotal: Money

    @property
    def applicable(self) -> bool:
        return self.subtotal > 0


def is_eligible(item: LineItem, scope: DiscountScope) -> bool:
    pid = None if item.product_id is None else str(item.product_id)
    if pid is not None and pid in scope.excluded_products:
        return False
    if scope.applicable_to_all:
        return True

    # empty allow-list means "no restriction"; both lists must match when set
    product_ok = not scope.applicable_products or pid in scope.applicable_products
    category_ok = (
        not scope.applicable_categories
        or item.category_id is None
        or str(item.category_id) in scope.applicable_categories
    )
    return product_ok and category_ok


def filter_eligible(scope: DiscountScope, items) -> EligibleItems:
    eligible = tuple(it for it in items if is_eligible(it, scope))
    subtotal = sum((it.line_total for it in eligible), ZERO)
    return EligibleItems(items=eligible, subtotal=subtotal)


def cart_total(items) -> Money:
    return sum((it.line_total for it in items), ZERO)


def line_items_from_payload(cart_items) -> list[LineItem]:
    """Parse storefront cart items: [{price, quantity, productId?, category?}]."""
    if not isinstance(cart_items, (list, tuple)):
        raise ValidationError("cart items must be a list")

    items = []
    for idx, raw in enumerate(cart_items):
        if not isinstance(raw, dict):
            raise ValidationError(f"cart item {idx} must be an object")
        price = parse_opt_decimal(raw.get("price"), f"cart item {idx} price")
        if price is None:
            raise ValidationError(f"cart item {idx} price is required")
        quantity = parse_opt_int(raw.get("quantity", 1), f"cart item {idx} quantity", minimum=0)
        if quantity is None:
            raise ValidationError(f"cart item {idx} quantity is required")
        items.append(LineItem(
            product_id=raw.get("product_id", raw.get("productId")),
            price=price,
            quantity=quantity,
            category_id=raw.get("category_id", raw.get("category")),
        ))
    return items


def order_line_items(order) -> list[LineItem]:
    return [
        LineItem(
            product_id=it.product_id,
            price=D(it.unit_price),
            quantity=int(it.quantity or 0),
            category_id=it.product.category_id if it.product else None,
        )
        for it in order.items
    ]
