"""Pytest fixtures: a fresh in-memory database per test with one shop seeded."""
from datetime import timedelta
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from artisan_market import create_app
from artisan_market.config import TestingConfig
from artisan_market.extensions import db
from artisan_market.model import (
    Category, DiscountCode, DiscountType, Order, OrderItem, Product, Shop, User,
)
from artisan_market.services import event_service
from artisan_market.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _seller(email, shop_name):
    u = User(email=email, name=shop_name, role="seller")
    db.session.add(u)
    db.session.flush()
    s = Shop(name=shop_name, slug=shop_name.lower().replace(" ", "-"), seller_id=u.id)
    db.session.add(s)
    db.session.commit()
    return u, s


@pytest.fixture
def shop(app):
    _, s = _seller("potter@example.com", "Clay Corner")
    return s


@pytest.fixture
def other_shop(app):
    _, s = _seller("weaver@example.com", "Loom House")
    return s


@pytest.fixture
def customer(app):
    u = User(email="buyer@example.com", name="Buyer", role="user")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def other_customer(app):
    u = User(email="second@example.com", name="Second", role="user")
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def categories(app):
    ceramics = Category(name="Ceramics")
    textiles = Category(name="Textiles")
    db.session.add_all([ceramics, textiles])
    db.session.commit()
    return ceramics, textiles


@pytest.fixture
def products(shop, categories):
    """vase 100.00 (ceramics), scarf 50.00 (textiles), bowl 40.00 with sale 30.00 (ceramics)."""
    ceramics, textiles = categories
    vase = Product(shop_id=shop.id, category_id=ceramics.id, title="Vase", regular_price=Decimal("100.00"))
    scarf = Product(shop_id=shop.id, category_id=textiles.id, title="Scarf", regular_price=Decimal("50.00"))
    bowl = Product(shop_id=shop.id, category_id=ceramics.id, title="Bowl",
                   regular_price=Decimal("40.00"), sale_price=Decimal("30.00"))
    db.session.add_all([vase, scarf, bowl])
    db.session.commit()
    return vase, scarf, bowl


@pytest.fixture
def foreign_product(other_shop):
    p = Product(shop_id=other_shop.id, title="Rug", regular_price=Decimal("80.00"))
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def make_order(app):
    def make(user, shop, lines):
        order = Order(user_id=user.id, shop_id=shop.id, status="pending")
        for product, qty in lines:
            order.items.append(OrderItem(product_id=product.id, unit_price=product.regular_price, quantity=qty))
        order.subtotal = order.items_subtotal()
        order.total = order.subtotal
        db.session.add(order)
        db.session.commit()
        return order
    return make


@pytest.fixture
def make_code(app):
    def make(shop, code="SAVE20", kind=DiscountType.PERCENTAGE, value="20", **kw):
        fields = dict(
            discount_code=code,
            public_name=f"{code} promo",
            discount_type=kind,
            discount_value=Decimal(value),
            shop_id=shop.id,
            seller_id=shop.seller_id,
            valid_from=utcnow() - timedelta(days=1),
            current_usage_count=0,
        )
        fields.update(kw)
        discount = DiscountCode(**fields)
        db.session.add(discount)
        db.session.commit()
        return discount
    return make


@pytest.fixture
def make_event(app):
    def make(shop, products=(), **payload):
        now = utcnow()
        body = {
            "title": "Spring Sale",
            "event_type": "SEASONAL",
            "starting_date": now - timedelta(hours=1),
            "ending_date": now + timedelta(days=2),
            "product_ids": [p.id for p in products],
        }
        body.update(payload)
        return event_service.create_event(shop, body)
    return make


@pytest.fixture
def auth_header(app):
    def header(user):
        return {"Authorization": f"Bearer {create_access_token(identity=str(user.id))}"}
    return header
