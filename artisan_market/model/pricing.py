# --- artisan_market/model/pricing.py ---
import uuid

from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float
from .types import GUID, PricingSource

class ProductPricing(db.Model):
    """Audit trail of computed prices. Rows are appended, then only closed."""
    __tablename__ = "product_pricing"

    id = db.Column(GUID(), primary_key=True, default=uuid.uuid4)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)

    base_price = db.Column(db.Numeric(12, 2), nullable=False)
    discounted_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percent = db.Column(db.Numeric(5, 2), nullable=False)

    discount_source = db.Column(db.Enum(PricingSource, native_enum=False, length=16), nullable=False)
    source_id = db.Column(db.Integer, nullable=True, index=True)   # not a FK: outlives the event
    source_name = db.Column(db.String(100), nullable=True)

    valid_from = db.Column(db.DateTime, nullable=False)
    valid_until = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def as_api(self):
        return {
            "id": str(self.id),
            "product_id": self.product_id,
            "base_price": to_float(self.base_price),
            "discounted_price": to_float(self.discounted_price),
            "discount_amount": to_float(self.discount_amount),
            "discount_percent": float(self.discount_percent),
            "discount_source": self.discount_source.value,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "valid_from": iso(self.valid_from),
            "valid_until": iso(self.valid_until),
            "is_active": self.is_active,
            "reason": self.reason,
        }
