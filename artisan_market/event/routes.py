# artisan_market/event/routes.py
from flask import request

from ..services import event_service
from ..services.payload import pick
from ..utils.api import ok, err
from ..utils.decorators import shop_required
from . import bp

def _body():
    return request.get_json(silent=True) or {}

def _paging():
    page = max(1, request.args.get("page", default=1, type=int))
    limit = request.args.get("limit", default=10, type=int)
    return page, max(1, min(limit, 100))

def _meta(page, limit, total):
    return {
        "current_page": page,
        "per_page": limit,
        "total": total,
        "last_page": max(1, -(-total // limit)),
    }

# ---------- public ----------
# GET /api/events
@bp.get("")
def list_live_events():
    """
    Query params:
      shop_id     -> int
      event_type  -> FLASH_SALE, SEASONAL, CLEARANCE, NEW_ARRIVAL
      page        -> int, default 1
      limit       -> int, default 10 (cap 100)
    """
    page, limit = _paging()
    events, total = event_service.list_live_events(
        shop_id=request.args.get("shop_id", type=int),
        event_type=request.args.get("event_type") or None,
        page=page,
        limit=limit,
    )
    items = [e.as_api() for e in events]
    return ok("Events fetched", {"items": items, "meta": _meta(page, limit, total)})

# GET /api/events/<id>
@bp.get("/<int:event_id>")
def get_event(event_id):
    event = event_service.get_event(event_id)
    return ok("Event fetched", event.as_api())

# ---------- seller ----------
# GET /api/events/mine
@bp.get("/mine")
@shop_required
def list_shop_events(shop):
    page, limit = _paging()
    events, total = event_service.list_shop_events(
        shop,
        status=(request.args.get("status") or "all").lower(),
        event_type=request.args.get("event_type") or None,
        page=page,
        limit=limit,
    )
    items = [e.as_api(with_products=False) for e in events]
    return ok("Events fetched", {"items": items, "meta": _meta(page, limit, total)})

# POST /api/events
@bp.post("")
@shop_required
def create_event(shop):
    event = event_service.create_event(shop, _body())
    return ok("Event created successfully", event.as_api(), status=201)

# PATCH /api/events/<id>
@bp.patch("/<int:event_id>")
@shop_required
def update_event(event_id, shop):
    event = event_service.update_event(event_id, shop, _body())
    return ok("Event updated successfully", event.as_api())

# PUT /api/events/<id>/products
@bp.put("/<int:event_id>/products")
@shop_required
def set_event_products(event_id, shop):
    found, product_ids = pick(_body(), "product_ids", "productIds", "products")
    if not found:
        return err("product_ids is required", 422, kind="validation_error")
    event = event_service.set_event_products(event_id, shop, product_ids)
    return ok("Event products updated successfully", event.as_api())

# DELETE /api/events/<id>
@bp.delete("/<int:event_id>")
@shop_required
def delete_event(event_id, shop):
    event_service.delete_event(event_id, shop)
    return ok("Event deleted successfully")
