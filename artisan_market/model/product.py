# artisan_market/model/product.py
from ..extensions import db
from ..utils.money import to_float
from sqlalchemy.sql import func

class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("category.id"), nullable=True, index=True)

    title = db.Column(db.String(255), nullable=False, index=True)
    slug = db.Column(db.String(255), index=True)
    stock = db.Column(db.Integer, default=0)

    # baseline prices, owned by the seller
    regular_price = db.Column(db.Numeric(12, 2), nullable=False)
    sale_price = db.Column(db.Numeric(12, 2), nullable=True)

    # derived cache, written only by services.event_pricing
    current_price = db.Column(db.Numeric(12, 2), nullable=True)
    is_on_discount = db.Column(db.Boolean, nullable=False, default=False)

    event_id = db.Column(db.Integer, db.ForeignKey("events.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    shop = db.relationship("Shop", back_populates="products")
    category = db.relationship("Category", back_populates="products")
    event = db.relationship("Event", back_populates="products")

    def baseline_price(self):
        return self.sale_price if self.sale_price is not None else self.regular_price

    def as_api(self):
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "title": self.title,
            "slug": self.slug,
            "stock": self.stock,
            "regular_price": to_float(self.regular_price),
            "sale_price": to_float(self.sale_price),
            "current_price": to_float(self.current_price),
            "is_on_discount": self.is_on_discount,
            "event_id": self.event_id,
            "category": self.category.as_dict() if self.category else None,
        }
