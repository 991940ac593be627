# --- artisan_market/model/shop.py ---
from sqlalchemy.sql import func
from ..extensions import db

class Shop(db.Model):
    __tablename__ = "shops"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=False)
    slug = db.Column(db.String(180), unique=True, index=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, unique=True, index=True)
    created_at = db.Column(db.DateTime, server_default=func.now())

    seller = db.relationship("User", back_populates="shop")
    products = db.relationship("Product", back_populates="shop", lazy="selectin")

    def as_dict(self):
        return {"id": self.id, "name": self.name, "slug": self.slug}
