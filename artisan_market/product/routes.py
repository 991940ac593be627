# artisan_market/product/routes.py
from flask import request

from ..extensions import db
from ..model import Product
from ..services import event_pricing
from ..services.errors import NotFound
from ..utils.api import ok
from . import bp

# GET /api/products/<id>/price
@bp.get("/<int:pid>/price")
def product_price(pid):
    product = db.session.get(Product, pid)
    if product is None:
        raise NotFound("Product not found")
    return ok("Product price fetched", event_pricing.effective_price(product))

# GET /api/products/<id>/pricing-history
@bp.get("/<int:pid>/pricing-history")
def product_pricing_history(pid):
    limit = request.args.get("limit", default=20, type=int)
    rows = event_pricing.pricing_history(pid, limit=max(1, min(limit, 100)))
    return ok("Pricing history fetched", {"items": rows})
