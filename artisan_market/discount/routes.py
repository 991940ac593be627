# artisan_market/discount/routes.py
from flask import request
from flask_jwt_extended import get_jwt_identity, jwt_required

from ..extensions import db
from ..model import DiscountCode, Order
from ..services import discount_service, redemption_service
from ..services.payload import pick
from ..utils.api import ok, err
from ..utils.decorators import shop_required
from . import bp

def _body():
    return request.get_json(silent=True) or {}

# ---------- seller ----------
# GET /api/discounts
@bp.get("")
@shop_required
def list_discount_codes(shop):
    codes = (DiscountCode.query
             .filter_by(shop_id=shop.id)
             .order_by(DiscountCode.created_at.desc(), DiscountCode.id.desc())
             .all())
    return ok("Discount codes fetched", {"items": [d.as_api() for d in codes]})

# POST /api/discounts
@bp.post("")
@shop_required
def create_discount_code(shop):
    discount = discount_service.create_discount_code(shop, _body())
    return ok("Discount code created successfully", discount.as_api(), status=201)

# PATCH /api/discounts/<id>
@bp.patch("/<int:discount_id>")
@shop_required
def update_discount_code(discount_id, shop):
    discount = discount_service.update_discount_code(discount_id, shop, _body())
    return ok("Discount code updated successfully", discount.as_api())

# DELETE /api/discounts/<id>
@bp.delete("/<int:discount_id>")
@shop_required
def delete_discount_code(discount_id, shop):
    discount_service.delete_discount_code(discount_id, shop)
    return ok("Discount code deleted successfully")

# GET /api/discounts/<id>/stats
@bp.get("/<int:discount_id>/stats")
@shop_required
def discount_usage_stats(discount_id, shop):
    return ok("Discount usage stats fetched", discount_service.get_usage_stats(discount_id, shop))

# ---------- storefront ----------
# POST /api/discounts/validate
@bp.post("/validate")
@jwt_required(optional=True)
def validate_discount_code():
    """
    Body:
      code        -> discount code (case-insensitive)
      cart_items  -> [{price, quantity, product_id?, category_id?}]
      shop_id     -> optional, rejects codes from other shops
    """
    data = _body()
    _, code = pick(data, "code", "discount_code", "discountCode")
    _, items = pick(data, "cart_items", "cartItems")
    _, shop_id = pick(data, "shop_id", "shopId")
    if not code:
        return err("Discount code is required", 422, kind="validation_error")

    uid = get_jwt_identity()
    quote = discount_service.validate_discount(code, items, shop_id=shop_id, user_id=int(uid) if uid else None)
    return ok("Discount code is valid", quote.as_api())

# POST /api/discounts/redeem
@bp.post("/redeem")
@jwt_required()
def redeem_discount_code():
    data = _body()
    _, code = pick(data, "code", "discount_code", "discountCode")
    _, order_id = pick(data, "order_id", "orderId")
    if not code or order_id is None:
        return err("code and order_id are required", 422, kind="validation_error")
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        return err("order_id must be an integer", 422, kind="validation_error")

    redemption = redemption_service.redeem_discount(code, order_id, int(get_jwt_identity()))
    data = redemption.as_api()
    data["order"] = db.session.get(Order, order_id).as_api()
    return ok("Discount code applied", data)
