"""Tests for the flask CLI commands."""
from datetime import timedelta
from decimal import Decimal

from artisan_market.extensions import db
from artisan_market.model import ProductPricing, Shop, User
from artisan_market.utils.dates import utcnow


def test_create_seller(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-seller", "--email", "Maker@Example.com", "--password", "pw",
                                 "--name", "Maker", "--shop-name", "Maker's Bench"])
    assert "Seller created" in result.output

    user = User.query.filter_by(email="maker@example.com").one()
    assert user.role == "seller"
    assert user.password_hash != "pw"
    assert Shop.query.filter_by(seller_id=user.id).one().slug == "maker-s-bench"

    again = runner.invoke(args=["create-seller", "--email", "maker@example.com", "--password", "pw",
                                "--name", "Maker", "--shop-name", "Other"])
    assert "Email already exists" in again.output


def test_recompute_event_pricing(app, shop, products, make_event):
    vase = products[0]
    event = make_event(shop, [vase], discount_type="PERCENTAGE", discount_value=20)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["recompute-event-pricing", "--event-id", str(event.id)])
    assert f"Event {event.id}: 1 product(s) repriced" in result.output
    assert vase.current_price == Decimal("80.00")

    result = runner.invoke(args=["recompute-event-pricing"])
    assert result.exit_code == 0

    result = runner.invoke(args=["recompute-event-pricing", "--event-id", "9999"])
    assert result.exit_code != 0
    assert "Event not found" in result.output


def test_recompute_resets_switched_off_event(app, shop, products, make_event):
    vase = products[0]
    event = make_event(shop, [vase], discount_type="PERCENTAGE", discount_value=20)
    # flipped behind the service's back, leaving the cached discount in place
    event.is_active = False
    db.session.commit()
    assert vase.is_on_discount

    result = app.test_cli_runner().invoke(args=["recompute-event-pricing", "--event-id", str(event.id)])
    assert f"Event {event.id}: 1 product(s) reset" in result.output

    db.session.expire_all()
    assert vase.current_price == Decimal("100.00")
    assert not vase.is_on_discount
    assert ProductPricing.query.filter_by(source_id=event.id, is_active=True).count() == 0


def test_recompute_all_skips_finished_events(app, shop, products, make_event):
    vase, scarf, _ = products
    live = make_event(shop, [vase], discount_type="PERCENTAGE", discount_value=20)
    done = make_event(shop, [scarf], title="Old Sale", discount_type="PERCENTAGE", discount_value=10)
    done.starting_date = utcnow() - timedelta(days=5)
    done.ending_date = utcnow() - timedelta(days=1)
    db.session.commit()
    rows_before = ProductPricing.query.filter_by(source_id=done.id).count()

    result = app.test_cli_runner().invoke(args=["recompute-event-pricing"])
    assert result.exit_code == 0
    assert f"Event {live.id}: 1 product(s) repriced" in result.output
    assert f"Event {done.id}" not in result.output
    assert ProductPricing.query.filter_by(source_id=done.id).count() == rows_before
