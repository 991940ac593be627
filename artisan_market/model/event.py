# --- artisan_market/model/event.py ---
from sqlalchemy.sql import func

from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float
from .types import EventType, EventDiscountType

class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=False, default="")
    event_type = db.Column(db.Enum(EventType, native_enum=False, length=16), nullable=False)

    # optional event-level rule
    discount_type = db.Column(db.Enum(EventDiscountType, native_enum=False, length=16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    max_discount = db.Column(db.Numeric(12, 2), nullable=True)
    min_order_value = db.Column(db.Numeric(12, 2), nullable=True)

    starting_date = db.Column(db.DateTime, nullable=False, index=True)
    ending_date = db.Column(db.DateTime, nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    views = db.Column(db.Integer, nullable=False, default=0)
    clicks = db.Column(db.Integer, nullable=False, default=0)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    products = db.relationship("Product", back_populates="event", order_by="Product.id")
    product_discounts = db.relationship(
        "EventProductDiscount",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    shop = db.relationship("Shop")

    def is_live(self, at=None):
        at = at or utcnow()
        return bool(self.is_active and self.starting_date <= at < self.ending_date)

    def status(self, at=None):
        at = at or utcnow()
        if at >= self.ending_date:
            return "expired"
        if self.is_active and self.starting_date <= at:
            return "active"
        return "draft"

    def override_for(self, product_id):
        return next(
            (pd for pd in self.product_discounts if pd.product_id == product_id and pd.is_active),
            None,
        )

    def as_api(self, with_products=True):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "event_type": self.event_type.value,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "discount_value": to_float(self.discount_value),
            "max_discount": to_float(self.max_discount),
            "min_order_value": to_float(self.min_order_value),
            "starting_date": iso(self.starting_date),
            "ending_date": iso(self.ending_date),
            "is_active": self.is_active,
            "status": self.status(),
            "views": self.views,
            "clicks": self.clicks,
            "shop": self.shop.as_dict() if self.shop else None,
            "product_discounts": [pd.as_api() for pd in self.product_discounts],
        }
        if with_products:
            data["products"] = [p.as_api() for p in self.products]
        return data


class EventProductDiscount(db.Model):
    __tablename__ = "event_product_discounts"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)

    discount_type = db.Column(db.Enum(EventDiscountType, native_enum=False, length=16), nullable=True)
    discount_value = db.Column(db.Numeric(12, 2), nullable=True)
    max_discount = db.Column(db.Numeric(12, 2), nullable=True)
    special_price = db.Column(db.Numeric(12, 2), nullable=True)   # wins over type/value when set

    min_quantity = db.Column(db.Integer, nullable=True)
    max_quantity = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    event = db.relationship("Event", back_populates="product_discounts")

    __table_args__ = (
        db.UniqueConstraint("event_id", "product_id", name="uq_event_product_discount"),
    )

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "discount_type": self.discount_type.value if self.discount_type else None,
            "discount_value": to_float(self.discount_value),
            "max_discount": to_float(self.max_discount),
            "special_price": to_float(self.special_price),
            "min_quantity": self.min_quantity,
            "max_quantity": self.max_quantity,
            "is_active": self.is_active,
        }
