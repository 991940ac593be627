# ------- artisan_market/utils/decorators.py -------
from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..utils.api import api_error
from ..model import Shop, User

ROLE_LEVEL = {"user": 1, "seller": 2, "admin": 3}

def current_user(optional=False):
    verify_jwt_in_request(optional=optional)
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None

def role_at_least(min_role: str, message: str | None = None):  # admin > seller > user
    min_level = ROLE_LEVEL[min_role]
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if ROLE_LEVEL.get(u.role, 0) < min_level:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator

def shop_required(fn):
    """Seller routes act on the caller's own shop, passed in as ``shop=``."""
    @wraps(fn)
    @role_at_least("seller", message="Unauthorized: Seller authentication required")
    def wrapper(*args, **kwargs):
        shop = Shop.query.filter_by(seller_id=current_user().id).first()
        if shop is None:
            return jsonify(api_error("No shop found for this seller")), 403
        return fn(*args, shop=shop, **kwargs)
    return wrapper
