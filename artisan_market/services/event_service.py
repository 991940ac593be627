# artisan_market/services/event_service.py
"""
Sale event lifecycle: create, edit, replace products, delete, and the
public listing of live events.

A product belongs to at most one event at a time. Every change that can move
a price (rule fields, overrides, membership, activation) reprices the
affected products in the same transaction as the change itself.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..model import Event, EventProductDiscount, EventDiscountType, EventType, Product, ProductPricing, PricingSource
from ..utils.dates import utcnow
from . import event_pricing
from .errors import Conflict, NotFound, ValidationError
from .payload import (
    pick, parse_bool, parse_enum, parse_id_list, parse_opt_datetime,
    parse_opt_decimal, parse_opt_int, parse_str,
)
from .tx import transaction

logger = logging.getLogger(__name__)

EVENT_STATUSES = ("all", "active", "upcoming", "expired")


# ---- payload -------------------------------------------------------------------

def _required_date(field):
    def parse(v):
        dt = parse_opt_datetime(v, field)
        if dt is None:
            raise ValidationError(f"{field} is required")
        return dt
    return parse


_PARSERS = {
    "title": lambda v: parse_str(v, "title", max_len=100, required=True),
    "description": lambda v: parse_str(v, "description", max_len=500) or "",
    "event_type": lambda v: parse_enum(v, EventType, "event_type", required=True),
    "discount_type": lambda v: parse_enum(v, EventDiscountType, "discount_type"),
    "discount_value": lambda v: parse_opt_decimal(v, "discount_value", minimum=0),
    "max_discount": lambda v: parse_opt_decimal(v, "max_discount", minimum=0),
    "min_order_value": lambda v: parse_opt_decimal(v, "min_order_value", minimum=0),
    "starting_date": _required_date("starting_date"),
    "ending_date": _required_date("ending_date"),
    "is_active": lambda v: parse_bool(v, "is_active"),
}

_ALIASES = {
    "title": ("title",),
    "description": ("description",),
    "event_type": ("event_type", "eventType"),
    "discount_type": ("discount_type", "discountType"),
    "discount_value": ("discount_value", "discountValue"),
    "max_discount": ("max_discount", "maxDiscount"),
    "min_order_value": ("min_order_value", "minOrderValue"),
    "starting_date": ("starting_date", "startingDate"),
    "ending_date": ("ending_date", "endingDate"),
    "is_active": ("is_active", "isActive"),
}

_REQUIRED = ("title", "event_type", "starting_date", "ending_date")

_DEFAULTS = {
    "description": "",
    "discount_type": None,
    "discount_value": None,
    "max_discount": None,
    "min_order_value": None,
    "is_active": True,
}

# fields whose change can move a product price
_PRICE_FIELDS = frozenset({
    "title", "discount_type", "discount_value", "max_discount",
    "starting_date", "ending_date", "is_active",
})


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

    # older clients send a bare percentage
    found, value = pick(payload, "discount_percent", "discountPercent")
    if found and "discount_type" not in fields:
        pct = parse_opt_decimal(value, "discount_percent", minimum=0, maximum=100)
        fields["discount_type"] = EventDiscountType.PERCENTAGE if pct else None
        fields["discount_value"] = pct or None
        fields.setdefault("max_discount", None)
    return fields


def _check_event(state: dict):
    if state["starting_date"] >= state["ending_date"]:
        raise ValidationError("End date must be after start date")

    kind, value, cap = state["discount_type"], state["discount_value"], state["max_discount"]
    if kind is None:
        if value is not None and value > 0:
            raise ValidationError("discount_value needs a discount_type")
        if cap is not None:
            raise ValidationError("max_discount needs a percentage discount_type")
        return
    if value is None or value <= 0:
        raise ValidationError("discount_value must be greater than 0 when discount_type is set")
    if kind is EventDiscountType.PERCENTAGE and value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")
    if cap is not None and kind is not EventDiscountType.PERCENTAGE:
        raise ValidationError("max_discount only applies to percentage discounts")


def _product_ids(payload):
    found, value = pick(payload, "product_ids", "productIds", "products")
    return found, parse_id_list(value, "product_ids") if found else []


def _parse_override(raw, idx) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError(f"product_discounts[{idx}] must be an object")
    field = f"product_discounts[{idx}]"

    _, pid = pick(raw, "product_id", "productId")
    product_id = parse_opt_int(pid, f"{field}.product_id", minimum=1)
    if product_id is None:
        raise ValidationError(f"{field}.product_id is required")

    kind = parse_enum(pick(raw, "discount_type", "discountType")[1], EventDiscountType, f"{field}.discount_type")
    value = parse_opt_decimal(pick(raw, "discount_value", "discountValue")[1], f"{field}.discount_value")
    cap = parse_opt_decimal(pick(raw, "max_discount", "maxDiscount")[1], f"{field}.max_discount")
    special = parse_opt_decimal(pick(raw, "special_price", "specialPrice")[1], f"{field}.special_price")
    min_qty = parse_opt_int(pick(raw, "min_quantity", "minQuantity")[1], f"{field}.min_quantity", minimum=1)
    max_qty = parse_opt_int(pick(raw, "max_quantity", "maxQuantity")[1], f"{field}.max_quantity", minimum=1)
    found, active = pick(raw, "is_active", "isActive")
    is_active = parse_bool(active, f"{field}.is_active") if found else True

    if special is None and (kind is None or value is None):
        raise ValidationError(f"{field} needs special_price or discount_type with discount_value")
    if kind is EventDiscountType.PERCENTAGE and value is not None and value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")
    if cap is not None and kind is not EventDiscountType.PERCENTAGE:
        raise ValidationError(f"{field}.max_discount only applies to percentage discounts")
    if min_qty is not None and max_qty is not None and min_qty > max_qty:
        raise ValidationError(f"{field}.min_quantity cannot exceed max_quantity")

    return {
        "product_id": product_id,
        "discount_type": kind,
        "discount_value": value,
        "max_discount": cap,
        "special_price": special,
        "min_quantity": min_qty,
        "max_quantity": max_qty,
        "is_active": is_active,
    }


def _overrides(payload):
    found, value = pick(payload, "product_discounts", "productDiscounts")
    if not found:
        return False, []
    if value is None:
        return True, []
    if not isinstance(value, (list, tuple)):
        raise ValidationError("product_discounts must be a list")
    parsed = [_parse_override(raw, idx) for idx, raw in enumerate(value)]
    ids = [o["product_id"] for o in parsed]
    if len(ids) != len(set(ids)):
        raise ValidationError("product_discounts lists a product more than once")
    return True, parsed


# ---- membership ----------------------------------------------------------------

def _get_owned(event_id, shop) -> Event:
    event = Event.query.filter_by(id=event_id, shop_id=shop.id).first()
    if event is None:
        raise NotFound("Event not found or unauthorized")
    return event


def _load_shop_products(shop, product_ids):
    if not product_ids:
        return []
    products = (Product.query
                .filter(Product.id.in_(product_ids), Product.shop_id == shop.id)
                .order_by(Product.id)
                .all())
    if len(products) != len(product_ids):
        raise ValidationError("Some products don't belong to your shop")
    return products


def _attach(event, product, now):
    current = product.event
    if current is event:
        return
    if current is not None:
        if current.is_active and current.ending_date > now:
            raise Conflict(
                f"Product {product.id} is already part of another active event",
                data={"product_id": product.id, "event_id": current.id},
            )
        # finished or switched-off event: release the product first
        event_pricing.reset_product(product, current.id, now)
    product.event = event


def _detach(event, product, now):
    event_pricing.reset_product(product, event.id, now)
    product.event = None


def _replace_members(event, products, now):
    keep = {p.id for p in products}
    for p in list(event.products):
        if p.id not in keep:
            _detach(event, p, now)
    for p in products:
        _attach(event, p, now)
    for pd in list(event.product_discounts):
        if pd.product_id not in keep:
            event.product_discounts.remove(pd)


def _replace_overrides(event, overrides, member_ids):
    for o in overrides:
        if o["product_id"] not in member_ids:
            raise ValidationError(f"Product {o['product_id']} has a discount but is not part of the event")
    event.product_discounts.clear()
    # (event_id, product_id) is unique; old rows must be gone before the new insert
    db.session.flush()
    for o in overrides:
        event.product_discounts.append(EventProductDiscount(**o))


# ---- lifecycle -----------------------------------------------------------------

def create_event(shop, payload, now=None) -> Event:
    now = now or utcnow()
    fields = _clean(payload, partial=False)
    _, product_ids = _product_ids(payload)
    _, overrides = _overrides(payload)

    state = {**_DEFAULTS, **fields}
    _check_event(state)
    products = _load_shop_products(shop, product_ids)

    event = Event(**state, shop_id=shop.id, seller_id=shop.seller_id, views=0, clicks=0)
    with transaction("create event"):
        db.session.add(event)
        db.session.flush()
        for p in products:
            _attach(event, p, now)
        _replace_overrides(event, overrides, {p.id for p in products})
        event_pricing.sync_event(event.id, commit=False, now=now)

    logger.info("event %s created for shop %s with %d product(s)", event.id, shop.id, len(products))
    return event


def update_event(event_id, shop, patch, now=None) -> Event:
    now = now or utcnow()
    event = _get_owned(event_id, shop)
    fields = _clean(patch, partial=True)
    found_products, product_ids = _product_ids(patch)
    found_overrides, overrides = _overrides(patch)

    state = {name: getattr(event, name) for name in _PARSERS}
    state.update(fields)
    _check_event(state)
    products = _load_shop_products(shop, product_ids) if found_products else None

    reprice = found_products or found_overrides or bool(_PRICE_FIELDS & fields.keys())
    with transaction("update event"):
        for name, value in fields.items():
            setattr(event, name, value)
        if products is not None:
            _replace_members(event, products, now)
        if found_overrides:
            _replace_overrides(event, overrides, {p.id for p in event.products})
        if reprice:
            event_pricing.sync_event(event.id, commit=False, now=now)

    logger.info("event %s updated (%s)", event.id, ", ".join(sorted(fields)) or "products")
    return event


def set_event_products(event_id, shop, product_ids, now=None) -> Event:
    """Replace the event's product set in one step."""
    now = now or utcnow()
    event = _get_owned(event_id, shop)
    products = _load_shop_products(shop, parse_id_list(product_ids, "product_ids"))

    with transaction("set event products"):
        _replace_members(event, products, now)
        event_pricing.sync_event(event.id, commit=False, now=now)

    logger.info("event %s now has %d product(s)", event.id, len(products))
    return event


def delete_event(event_id, shop, now=None) -> None:
    now = now or utcnow()
    event = _get_owned(event_id, shop)
    eid = event.id

    with transaction("delete event"):
        for p in list(event.products):
            _detach(event, p, now)
        # rows left open by products that were removed earlier
        (ProductPricing.query
         .filter_by(source_id=eid, discount_source=PricingSource.EVENT, is_active=True)
         .update({ProductPricing.is_active: False, ProductPricing.valid_until: now},
                 synchronize_session=False))
        db.session.delete(event)

    logger.info("event %s deleted", eid)


# ---- public reads --------------------------------------------------------------

def get_event(event_id) -> Event:
    event = db.session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found")
    with transaction("count event click"):
        Event.query.filter_by(id=event.id).update(
            {Event.clicks: Event.clicks + 1}, synchronize_session=False)
    return event


def list_live_events(shop_id=None, event_type=None, at=None, page=1, limit=10):
    """Events running right now. Each listed event gets a view counted."""
    at = at or utcnow()
    q = Event.query.filter(
        Event.is_active.is_(True),
        Event.starting_date <= at,
        Event.ending_date > at,
    )
    if shop_id is not None:
        q = q.filter(Event.shop_id == shop_id)
    if event_type is not None:
        q = q.filter(Event.event_type == parse_enum(event_type, EventType, "event_type"))

    total = q.count()
    events = (q.order_by(Event.ending_date.asc(), Event.views.desc())
              .offset((page - 1) * limit)
              .limit(limit)
              .all())

    ids = [e.id for e in events]
    if ids:
        with transaction("count event views"):
            Event.query.filter(Event.id.in_(ids)).update(
                {Event.views: Event.views + 1}, synchronize_session=False)
    return events, total


def list_shop_events(shop, status="all", event_type=None, at=None, page=1, limit=10):
    at = at or utcnow()
    if status not in EVENT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(EVENT_STATUSES)}")

    q = Event.query.filter(Event.shop_id == shop.id)
    if status == "active":
        q = q.filter(Event.is_active.is_(True), Event.starting_date <= at, Event.ending_date > at)
    elif status == "upcoming":
        q = q.filter(Event.starting_date > at)
    elif status == "expired":
        q = q.filter(Event.ending_date <= at)
    if event_type is not None:
        q = q.filter(Event.event_type == parse_enum(event_type, EventType, "event_type"))

    total = q.count()
    events = (q.order_by(Event.created_at.desc(), Event.id.desc())
              .offset((page - 1) * limit)
              .limit(limit)
              .all())
    return events, total
