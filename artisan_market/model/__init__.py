# ------ artisan_market/model/__init__.py ------

from .user import User
from .shop import Shop
from .category import Category
from .product import Product
from .order import Order, OrderItem
from .discount import DiscountCode, DiscountUsage
from .event import Event, EventProductDiscount
from .pricing import ProductPricing
from .types import GUID, DiscountType, EventDiscountType, EventType, PricingSource

__all__ = [
    "User",
    "Shop",
    "Category",
    "Product",
    "Order",
    "OrderItem",
    "DiscountCode",
    "DiscountUsage",
    "Event",
    "EventProductDiscount",
    "ProductPricing",
    "GUID",
    "DiscountType",
    "EventDiscountType",
    "EventType",
    "PricingSource",
]
