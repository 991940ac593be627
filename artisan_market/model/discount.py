# --- artisan_market/model/discount.py ---
import uuid
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float
from .types import GUID, DiscountType

class DiscountCode(db.Model):
    __tablename__ = "discount_codes"

    id = db.Column(db.Integer, primary_key=True)
    discount_code = db.Column(db.String(20), unique=True, nullable=False, index=True)  # stored upper-case
    public_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))

    discount_type = db.Column(db.Enum(DiscountType, native_enum=False, length=16), nullable=False)
    discount_value = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    maximum_discount_amount = db.Column(db.Numeric(12, 2), nullable=True)   # percentage only
    minimum_order_amount = db.Column(db.Numeric(12, 2), nullable=True)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    # scope
    applicable_to_all = db.Column(db.Boolean, nullable=False, default=True)
    applicable_categories = db.Column(db.JSON, nullable=False, default=list)
    applicable_products = db.Column(db.JSON, nullable=False, default=list)
    excluded_products = db.Column(db.JSON, nullable=False, default=list)

    # limits
    usage_limit = db.Column(db.Integer, nullable=True)
    usage_limit_per_user = db.Column(db.Integer, nullable=True)
    current_usage_count = db.Column(db.Integer, nullable=False, default=0)

    valid_from = db.Column(db.DateTime, nullable=False, default=utcnow)
    valid_until = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    usage_history = db.relationship(
        "DiscountUsage",
        back_populates="discount",
        lazy="dynamic",
        order_by="DiscountUsage.used_at.desc()",
    )

    __table_args__ = (
        db.CheckConstraint("current_usage_count >= 0", name="ck_discount_usage_nonnegative"),
    )

    def remaining_uses(self):
        if self.usage_limit is None:
            return None
        return max(self.usage_limit - (self.current_usage_count or 0), 0)

    def as_api(self):
        return {
            "id": self.id,
            "discount_code": self.discount_code,
            "public_name": self.public_name,
            "description": self.description,
            "discount_type": self.discount_type.value,
            "discount_value": to_float(self.discount_value),
            "maximum_discount_amount": to_float(self.maximum_discount_amount),
            "minimum_order_amount": to_float(self.minimum_order_amount),
            "shop_id": self.shop_id,
            "seller_id": self.seller_id,
            "applicable_to_all": self.applicable_to_all,
            "applicable_categories": list(self.applicable_categories or []),
            "applicable_products": list(self.applicable_products or []),
            "excluded_products": list(self.excluded_products or []),
            "usage_limit": self.usage_limit,
            "usage_limit_per_user": self.usage_limit_per_user,
            "current_usage_count": self.current_usage_count,
            "valid_from": iso(self.valid_from),
            "valid_until": iso(self.valid_until),
            "is_active": self.is_active,
        }


class DiscountUsage(db.Model):
    """Append-only redemption record; one row per (code, order)."""
    __tablename__ = "discount_usage"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    discount_code_id = db.Column(db.Integer, db.ForeignKey("discount_codes.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False)
    used_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    discount = db.relationship("DiscountCode", back_populates="usage_history")
    user = db.relationship("User")

    __table_args__ = (
        db.UniqueConstraint("discount_code_id", "order_id", name="uq_discount_usage_code_order"),
    )

    def as_api(self):
        return {
            "id": str(self.id),
            "user": {"id": self.user_id, "name": self.user.name if self.user else None},
            "order_id": self.order_id,
            "discount_amount": to_float(self.discount_amount),
            "used_at": iso(self.used_at),
        }
