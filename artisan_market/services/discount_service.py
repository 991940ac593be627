# artisan_market/services/discount_service.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from sqlalchemy import func, update

from ..extensions import db
from ..model import DiscountCode, DiscountUsage, DiscountType, Product
from ..utils.dates import utcnow
from ..utils.money import D, Money, ZERO, round_money, to_float
from .eligibility import LineItem, cart_total, line_items_from_payload
from .errors import (
    Conflict, Expired, Inactive, MinimumNotMet, NotFound, PerUserLimitReached,
    ShopMismatch, UsageLimitReached, ValidationError,
)
from .payload import (
    pick, parse_bool, parse_enum, parse_id_list, parse_opt_datetime,
    parse_opt_decimal, parse_opt_int, parse_str,
)
from .pricing import DiscountRule, compute_discount
from .tx import transaction


logger = logging.getLogger(__name__)


CODE_RE = re.compile(r"^[A-Z0-9]{3,20}$")


def normalize_code(code) -> str:
    return (str(code) if code is not None else "").strip().upper()


# ---- payload cleaning --------------------------------------------------------

def _parse_code(v):
    code = normalize_code(v)
    if not CODE_RE.match(code):
        raise ValidationError("discount code must be 3-20 characters, letters and digits only")
    return code


def _parse_value(v):
    d = parse_opt_decimal(v, "discount_value", minimum=0)
    if d is None:
        raise ValidationError("discount_value is required")
    return d


_ALIASES = {
    "public_name": ("public_name", "publicName"),
    "description": ("description",),
    "discount_type": ("discount_type", "discountType"),
    "discount_value": ("discount_value", "discountValue"),
    "discount_code": ("discount_code", "discountCode", "code"),
    "minimum_order_amount": ("minimum_order_amount", "minimumOrderAmount"),
    "maximum_discount_amount": ("maximum_discount_amount", "maximumDiscountAmount"),
    "usage_limit": ("usage_limit", "usageLimit"),
    "usage_limit_per_user": ("usage_limit_per_user", "usageLimitPerUser"),
    "valid_from": ("valid_from", "validFrom"),
    "valid_until": ("valid_until", "validUntil"),
    "is_active": ("is_active", "isActive"),
    "applicable_to_all": ("applicable_to_all", "applicableToAll"),
    "applicable_categories": ("applicable_categories", "applicableCategories"),
    "applicable_products": ("applicable_products", "applicableProducts"),
    "excluded_products": ("excluded_products", "excludedProducts"),
}


_PARSERS = {
    "public_name": lambda v: parse_str(v, "public_name", max_len=100, required=True),
    "description": lambda v: parse_str(v, "description", max_len=500),
    "discount_type": lambda v: parse_enum(v, DiscountType, "discount_type", required=True),
    "discount_value": _parse_value,
    "discount_code": _parse_code,
    "minimum_order_amount": lambda v: parse_opt_decimal(v, "minimum_order_amount", minimum=0),
    "maximum_discount_amount": lambda v: parse_opt_decimal(v, "maximum_discount_amount", minimum=0),
    "usage_limit": lambda v: parse_opt_int(v, "usage_limit", minimum=1),
    "usage_limit_per_user": lambda v: parse_opt_int(v, "usage_limit_per_user", minimum=1),
    "valid_from": lambda v: parse_opt_datetime(v, "valid_from"),
    "valid_until": lambda v: parse_opt_datetime(v, "valid_until"),
    "is_active": lambda v: parse_bool(v, "is_active"),
    "applicable_to_all": lambda v: parse_bool(v, "applicable_to_all"),
    "applicable_categories": lambda v: parse_id_list(v, "applicable_categories"),
    "applicable_products": lambda v: parse_id_list(v, "applicable_products"),
    "excluded_products": lambda v: parse_id_list(v, "excluded_products"),
}


_REQUIRED = ("public_name", "discount_type", "discount_value", "discount_code")


_DEFAULTS = {
    "description": None,
    "minimum_order_amount": None,
    "maximum_discount_amount": None,
    "usage_limit": None,
    "usage_limit_per_user": None,
    "valid_until": None,
    "is_active": True,
    "applicable_to_all": True,
    "applicable_categories": [],
    "applicable_products": [],
    "excluded_products": [],
}


def _clean(payload, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("payload must be a JSON object")
    fields = {}
    for name, parser in _PARSERS.items():
        found, value = pick(payload, *_ALIASES[name])
        if found:
            fields[name] = parser(value)
        elif not partial and name in _REQUIRED:
            fields[name] = parser(None)
    return fields


def _check_rule(state: dict):
    kind, value = state["discount_type"], D(state["discount_value"])
    if kind is DiscountType.PERCENTAGE and value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")
    if kind is DiscountType.FREE_SHIPPING and value != 0:
        raise ValidationError("Free shipping discounts must have a discount value of 0")
    if state["maximum_discount_amount"] is not None and kind is not DiscountType.PERCENTAGE:
        raise ValidationError("maximum_discount_amount only applies to percentage discounts")
    if state["valid_until"] is not None and state["valid_until"] <= state["valid_from"]:
        raise ValidationError("Valid until date must be after valid from date")


def _check_products_in_shop(shop, product_ids):
    if not product_ids:
        return
    found = (db.session.query(func.count(Product.id))
             .filter(Product.id.in_(product_ids), Product.shop_id == shop.id)
             .scalar())
    if found != len(product_ids):
        raise ValidationError("Some applicable products don't belong to your shop")


def _ensure_code_free(code, exclude_id=None):
    q = DiscountCode.query.filter(DiscountCode.discount_code == code)
    if exclude_id is not None:
        q = q.filter(DiscountCode.id != exclude_id)
    if q.first():
        raise Conflict("Discount code already exists")


def _get_owned(discount_id, shop) -> DiscountCode:
    discount = DiscountCode.query.filter_by(id=discount_id, shop_id=shop.id).first()
    if discount is None:
        raise NotFound("Discount code not found or unauthorized")
    return discount


# ---- lifecycle ---------------------------------------------------------------

def create_discount_code(shop, payload) -> DiscountCode:
    fields = _clean(payload, partial=False)
    if fields.get("valid_from") is None:
        fields["valid_from"] = utcnow()

    state = {**_DEFAULTS, **fields}
    _check_rule(state)
    _check_products_in_shop(shop, state["applicable_products"])
    _ensure_code_free(state["discount_code"])

    discount = DiscountCode(**state, shop_id=shop.id, seller_id=shop.seller_id, current_usage_count=0)
    with transaction("create discount code", on_integrity_error=Conflict("Discount code already exists")):
        db.session.add(discount)

    logger.info("discount code %s created for shop %s", discount.discount_code, shop.id)
    return discount


def update_discount_code(discount_id, shop, patch) -> DiscountCode:
    discount = _get_owned(discount_id, shop)
    found, _ = pick(patch or {}, "current_usage_count", "currentUsageCount")
    if found:
        raise ValidationError("current_usage_count cannot be edited")

    fields = _clean(patch, partial=True)
    if "valid_from" in fields and fields["valid_from"] is None:
        fields.pop("valid_from")

    state = {name: getattr(discount, name) for name in _PARSERS}
    state.update(fields)
    _check_rule(state)
    if "applicable_products" in fields:
        _check_products_in_shop(shop, fields["applicable_products"])
    if "discount_code" in fields and fields["discount_code"] != discount.discount_code:
        _ensure_code_free(fields["discount_code"], exclude_id=discount.id)

    new_limit = fields.pop("usage_limit", discount.usage_limit)
    with transaction("update discount code", on_integrity_error=Conflict("Discount code already exists")):
        if new_limit != discount.usage_limit:
            # guarded against a redemption landing between the read and this write
            stmt = update(DiscountCode).where(DiscountCode.id == discount.id)
            if new_limit is not None:
                stmt = stmt.where(DiscountCode.current_usage_count <= new_limit)
            rows = db.session.execute(
                stmt.values(usage_limit=new_limit).execution_options(synchronize_session=False)
            ).rowcount
            if rows != 1:
                raise ValidationError(
                    f"usage_limit cannot be lower than the current usage count ({discount.current_usage_count})")
        for name, value in fields.items():
            setattr(discount, name, value)

    logger.info("discount code %s updated (%s)", discount.id, ", ".join(sorted(fields)) or "usage_limit")
    return discount


def delete_discount_code(discount_id, shop) -> None:
    discount = _get_owned(discount_id, shop)
    if (discount.current_usage_count or 0) > 0 or discount.usage_history.count() > 0:
        raise Conflict("Cannot delete discount code that has been used. You can deactivate it instead.")

    code = discount.discount_code
    with transaction("delete discount code"):
        db.session.delete(discount)
    logger.info("discount code %s deleted", code)


def get_usage_stats(discount_id, shop, recent: int = 5) -> dict:
    discount = _get_owned(discount_id, shop)
    count, total = (
        db.session.query(func.count(DiscountUsage.id), func.coalesce(func.sum(DiscountUsage.discount_amount), 0))
        .filter(DiscountUsage.discount_code_id == discount.id)
        .one()
    )
    usage_rate = None
    if discount.usage_limit:
        usage_rate = round(discount.current_usage_count / discount.usage_limit * 100, 2)
    return {
        "discount": discount.as_api(),
        "stats": {
            "total_usages": int(count or 0),
            "total_discount_given": to_float(D(total)),
            "remaining_uses": discount.remaining_uses(),
            "usage_rate": usage_rate,
        },
        "recent_usages": [u.as_api() for u in discount.usage_history.limit(recent).all()],
    }


# ---- read path -----------------------------------------------------------------

@dataclass(frozen=True)
class DiscountQuote:
    discount: DiscountCode
    discount_amount: Money
    cart_total: Money
    final_amount: Money

    def as_api(self):
        return {
            "discount_code": self.discount.discount_code,
            "discount_type": self.discount.discount_type.value,
            "discount_value": to_float(self.discount.discount_value),
            "discount_amount": to_float(self.discount_amount),
            "cart_total": to_float(self.cart_total),
            "final_amount": to_float(self.final_amount),
            "savings": to_float(self.discount_amount),
        }


def find_discount(code) -> DiscountCode | None:
    normalized = normalize_code(code)
    if not normalized:
        return None
    return DiscountCode.query.filter_by(discount_code=normalized).first()


def rule_of(discount) -> DiscountRule:
    return DiscountRule.of(discount.discount_type, discount.discount_value, discount.maximum_discount_amount)


def ensure_usable(discount, shop_id=None, now=None):
    now = now or utcnow()
    if not discount.is_active:
        raise Inactive("Discount code is inactive")
    if now < discount.valid_from:
        raise Inactive("Discount code is not valid yet")
    if discount.valid_until is not None and now > discount.valid_until:
        raise Expired("Discount code has expired")
    if shop_id is not None and str(shop_id) != str(discount.shop_id):
        raise ShopMismatch("Discount code is not valid for this shop")
    if discount.usage_limit is not None and discount.current_usage_count >= discount.usage_limit:
        raise UsageLimitReached("Discount code usage limit exceeded")


def user_usage_count(discount_id, user_id) -> int:
    return DiscountUsage.query.filter_by(discount_code_id=discount_id, user_id=user_id).count()


def ensure_user_allowance(discount, user_id):
    if user_id is None or discount.usage_limit_per_user is None:
        return
    if user_usage_count(discount.id, user_id) >= discount.usage_limit_per_user:
        raise PerUserLimitReached("You have reached the usage limit for this discount code")


def ensure_minimum(discount, total: Money):
    if discount.minimum_order_amount is not None and total < D(discount.minimum_order_amount):
        minimum = round_money(discount.minimum_order_amount)
        raise MinimumNotMet(f"Minimum order amount of {minimum} required",
                            data={"minimum_order_amount": float(minimum)})


def validate_discount(code, cart_items, shop_id=None, user_id=None, now=None) -> DiscountQuote:
    """
    Quote a code against a cart without writing anything.

    The full cart total is the base for both the minimum-order check and the
    discount; narrowing to eligible items happens at redemption. Safe to call
    repeatedly for a live preview.
    """
    if isinstance(cart_items, (list, tuple)) and all(isinstance(it, LineItem) for it in cart_items):
        items = list(cart_items)
    else:
        items = line_items_from_payload(cart_items)

    discount = find_discount(code)
    if discount is None:
        raise NotFound("Invalid discount code")
    ensure_usable(discount, shop_id, now)
    ensure_user_allowance(discount, user_id)

    total = cart_total(items)
    ensure_minimum(discount, total)

    amount = round_money(compute_discount(total, rule_of(discount)))
    final_amount = round_money(max(total - amount, ZERO))
    return DiscountQuote(discount, amount, round_money(total), final_amount)
