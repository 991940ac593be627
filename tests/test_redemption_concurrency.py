"""Concurrent redemptions against a file-backed database, one session per thread."""
import threading

import pytest

from artisan_market import create_app
from artisan_market.config import TestingConfig
from artisan_market.extensions import db
from artisan_market.model import DiscountCode, DiscountUsage, Order
from artisan_market.services.errors import PromotionError
from artisan_market.services.redemption_service import redeem_discount

THREADS = 8


@pytest.fixture
def app(tmp_path):
    class FileConfig(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'market.db'}"
        SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"timeout": 30, "check_same_thread": False}}

    app = create_app(FileConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(app, calls):
    """Run every (code, order_id, user_id) at once; return 'ok' or the error kind per call."""
    db.session.close()
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def run(i, code, order_id, user_id):
        with app.app_context():
            barrier.wait()
            try:
                redeem_discount(code, order_id, user_id)
                outcomes[i] = "ok"
            except PromotionError as e:
                outcomes[i] = e.kind
            finally:
                db.session.remove()

    threads = [threading.Thread(target=run, args=(i, *call)) for i, call in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def _count(code):
    return DiscountCode.query.filter_by(discount_code=code).one().current_usage_count


def test_same_order_applies_once(app, shop, customer, products, make_code, make_order):
    make_code(shop, "SAVE20")
    order = make_order(customer, shop, [(products[0], 1)])
    order_id, user_id = order.id, customer.id

    outcomes = _race(app, [("SAVE20", order_id, user_id)] * THREADS)

    assert outcomes.count("ok") == 1
    assert outcomes.count("already_applied") == THREADS - 1
    assert _count("SAVE20") == 1
    assert DiscountUsage.query.filter_by(order_id=order_id).count() == 1
    assert db.session.get(Order, order_id).discount_code_id is not None


def test_per_user_limit_holds(app, shop, customer, products, make_code, make_order):
    make_code(shop, "ONEEACH", usage_limit_per_user=1)
    order_ids = [make_order(customer, shop, [(products[0], 1)]).id for _ in range(THREADS)]
    user_id = customer.id

    outcomes = _race(app, [("ONEEACH", oid, user_id) for oid in order_ids])

    assert outcomes.count("ok") == 1
    assert outcomes.count("per_user_limit_reached") == THREADS - 1
    assert _count("ONEEACH") == 1
    assert DiscountUsage.query.filter_by(user_id=user_id).count() == 1
    stamped = Order.query.filter(Order.id.in_(order_ids), Order.discount_code_id.isnot(None)).count()
    assert stamped == 1


def test_global_limit_holds(app, shop, customer, products, make_code, make_order):
    make_code(shop, "FIRST3", usage_limit=3)
    order_ids = [make_order(customer, shop, [(products[1], 1)]).id for _ in range(THREADS)]
    user_id = customer.id

    outcomes = _race(app, [("FIRST3", oid, user_id) for oid in order_ids])

    assert outcomes.count("ok") == 3
    assert outcomes.count("usage_limit_reached") == THREADS - 3
    assert _count("FIRST3") == 3
    assert DiscountUsage.query.count() == 3
