# artisan_market/services/event_pricing.py
"""
Derive and cache event prices on products.

``Product.current_price`` / ``is_on_discount`` are a cache written only from
here. Every recompute appends a ProductPricing row so the price history of a
product can be audited; earlier open rows for the same event are closed.
"""
from __future__ import annotations

import logging

from ..extensions import db
from ..model import Event, Product, ProductPricing, PricingSource
from ..utils.dates import utcnow
from ..utils.money import D, round_money, round_percent, to_float
from .errors import NotFound, ValidationError
from .pricing import resolve_event_price, select_price_source
from .tx import transaction

logger = logging.getLogger(__name__)


def close_pricing_records(product_id, event_id, now):
    """Deactivate the open pricing rows a product has for one event."""
    rows = (ProductPricing.query
            .filter_by(product_id=product_id, source_id=event_id,
                       discount_source=PricingSource.EVENT, is_active=True)
            .all())
    for row in rows:
        row.is_active = False
        row.valid_until = now
    return len(rows)


def _reprice(event, products, now):
    for p in products:
        quote = resolve_event_price(p.regular_price, select_price_source(event, event.override_for(p.id)))
        close_pricing_records(p.id, event.id, now)

        record = ProductPricing(
            product_id=p.id,
            base_price=round_money(quote.base_price),
            discounted_price=round_money(quote.discounted_price),
            discount_amount=round_money(quote.discount_amount),
            discount_percent=round_percent(quote.discount_percent),
            discount_source=PricingSource.EVENT,
            source_id=event.id,
            source_name=event.title,
            valid_from=event.starting_date,
            valid_until=event.ending_date,
            is_active=True,
            reason=f"Event pricing: {event.title}",
            created_at=now,
        )
        db.session.add(record)

        p.current_price = round_money(quote.discounted_price)
        p.is_on_discount = quote.is_discounted


def _load_event(event_id) -> Event:
    event = db.session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found")
    return event


def recompute(event_id, *, commit=True, now=None) -> int:
    """Reprice every product attached to an event. Returns how many were written."""
    now = now or utcnow()
    event = _load_event(event_id)
    products = list(event.products)
    if commit:
        with transaction("recompute event pricing"):
            _reprice(event, products, now)
    else:
        _reprice(event, products, now)
    logger.info("event %s repriced %d product(s)", event.id, len(products))
    return len(products)


def sync_event(event_id, *, commit=True, now=None) -> int:
    """
    Bring member prices in line with the event's switch.

    An active event is repriced; a switched-off one has every member put back
    on its baseline price. Returns how many products were touched.
    """
    now = now or utcnow()
    event = _load_event(event_id)
    if event.is_active:
        return recompute(event.id, commit=commit, now=now)
    products = list(event.products)
    if commit:
        with transaction("reset event pricing"):
            for p in products:
                reset_product(p, event.id, now)
    else:
        for p in products:
            reset_product(p, event.id, now)
    return len(products)


def recompute_one(event_id, product_id, *, commit=True, now=None) -> Product:
    now = now or utcnow()
    event = _load_event(event_id)
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    if product.event_id != event.id:
        raise ValidationError("Product is not part of this event")
    if commit:
        with transaction("recompute product pricing"):
            _reprice(event, [product], now)
    else:
        _reprice(event, [product], now)
    logger.info("product %s repriced for event %s", product.id, event.id)
    return product


def reset_product(product, event_id, now=None):
    """Put the baseline price back; does not touch membership."""
    now = now or utcnow()
    product.current_price = round_money(product.baseline_price())
    product.is_on_discount = False
    closed = close_pricing_records(product.id, event_id, now)
    logger.info("product %s reset to baseline, %d pricing row(s) closed", product.id, closed)


def effective_price(product, at=None) -> dict:
    """
    Price a shopper sees right now.

    The cached event price only counts while the product's event is live;
    once the window has passed, or the event is switched off, the baseline
    price applies without anything having to rewrite the row.
    """
    at = at or utcnow()
    baseline = D(product.baseline_price())
    event = product.event
    live = event is not None and event.is_live(at) and product.current_price is not None
    final = D(product.current_price) if live else baseline
    on_discount = bool(live and product.is_on_discount)
    regular = D(product.regular_price)
    return {
        "product_id": product.id,
        "original_price": to_float(regular),
        "final_price": to_float(final),
        "savings": to_float(max(regular - final, D(0))),
        "is_on_discount": on_discount,
        "event_id": event.id if live else None,
        "event_ends_at": event.ending_date.isoformat() if live else None,
    }


def pricing_history(product_id, limit=20):
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound("Product not found")
    rows = (ProductPricing.query
            .filter_by(product_id=product.id)
            .order_by(ProductPricing.created_at.desc())
            .limit(limit)
            .all())
    return [r.as_api() for r in rows]
