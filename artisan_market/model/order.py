from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import D, to_float

class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)  # e.g., "ORD-20251022-0001"
    status = db.Column(db.String(20), default="pending", index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2))
    discount_amount = db.Column(db.Numeric(12, 2), default=0)
    total = db.Column(db.Numeric(12, 2))

    # stamped by services.redemption_service
    discount_code_id = db.Column(db.Integer, db.ForeignKey("discount_codes.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    discount_code = db.relationship("DiscountCode")

    def items_subtotal(self):
        return sum((D(i.unit_price) * i.quantity for i in self.items), D(0))

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "user_id": self.user_id,
            "shop_id": self.shop_id,
            "money": {
                "subtotal": to_float(self.subtotal or 0),
                "discount_amount": to_float(self.discount_amount or 0),
                "total": to_float(self.total or 0),
            },
            "discount_code": self.discount_code.discount_code if self.discount_code else None,
            "items": [i.as_api() for i in self.items],
            "created_at": iso(self.created_at),
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product", lazy="joined")

    def as_api(self):
        return {
            "product_id": self.product_id,
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_float(D(self.unit_price) * self.quantity),
        }
