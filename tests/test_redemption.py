"""Tests for applying a discount code to a placed order."""
from decimal import Decimal

import pytest
from sqlalchemy import update

from artisan_market.extensions import db
from artisan_market.model import DiscountCode, DiscountType, DiscountUsage, Order
from artisan_market.services import redemption_service
from artisan_market.services.errors import (
    AlreadyApplied, MinimumNotMet, NotApplicable, NotFound, PerUserLimitReached,
    ShopMismatch, UsageLimitReached,
)
from artisan_market.services.redemption_service import redeem_discount


def _count(code):
    return DiscountCode.query.filter_by(discount_code=code).one().current_usage_count


def test_redeem_stamps_order_and_counts_use(shop, customer, products, make_code, make_order):
    vase = products[0]
    make_code(shop, "SAVE20")
    order = make_order(customer, shop, [(vase, 2)])

    result = redeem_discount("save20", order.id, customer.id)

    assert result.discount_amount == Decimal("40.00")
    assert result.order_total == Decimal("200.00")
    assert result.final_amount == Decimal("160.00")
    assert _count("SAVE20") == 1

    usage = DiscountUsage.query.one()
    assert str(usage.id) == result.usage_id
    assert usage.order_id == order.id
    assert usage.discount_amount == Decimal("40.00")

    order = db.session.get(Order, order.id)
    assert order.discount_code.discount_code == "SAVE20"
    assert order.discount_amount == Decimal("40.00")
    assert order.total == Decimal("160.00")


def test_discount_base_is_eligible_subtotal(shop, customer, products, make_code, make_order):
    vase, scarf, _ = products
    make_code(shop, "NOSCARF", excluded_products=[scarf.id])
    order = make_order(customer, shop, [(vase, 1), (scarf, 1)])

    result = redeem_discount("NOSCARF", order.id, customer.id)
    assert result.order_total == Decimal("150.00")
    assert result.discount_amount == Decimal("20.00")
    assert result.final_amount == Decimal("130.00")


def test_category_scope(shop, customer, products, categories, make_code, make_order):
    vase, scarf, _ = products
    _, textiles = categories
    make_code(shop, "FABRIC", kind=DiscountType.FIXED_AMOUNT, value="80",
              applicable_to_all=False, applicable_categories=[textiles.id])
    order = make_order(customer, shop, [(vase, 1), (scarf, 1)])

    # fixed amount is clamped to the eligible 50.00, not the 150.00 order
    assert redeem_discount("FABRIC", order.id, customer.id).discount_amount == Decimal("50.00")


def test_nothing_eligible(shop, customer, products, make_code, make_order):
    vase = products[0]
    make_code(shop, "NOVASE", excluded_products=[vase.id])
    order = make_order(customer, shop, [(vase, 3)])

    with pytest.raises(NotApplicable):
        redeem_discount("NOVASE", order.id, customer.id)
    assert _count("NOVASE") == 0


def test_same_order_twice(shop, customer, products, make_code, make_order):
    make_code(shop, "SAVE20")
    make_code(shop, "TENOFF", kind=DiscountType.FIXED_AMOUNT, value="10")
    order = make_order(customer, shop, [(products[0], 1)])
    redeem_discount("SAVE20", order.id, customer.id)

    with pytest.raises(AlreadyApplied):
        redeem_discount("SAVE20", order.id, customer.id)
    with pytest.raises(AlreadyApplied):
        redeem_discount("TENOFF", order.id, customer.id)
    assert _count("SAVE20") == 1
    assert _count("TENOFF") == 0
    assert DiscountUsage.query.count() == 1


def test_global_limit(shop, customer, other_customer, products, make_code, make_order):
    make_code(shop, "ONCE", usage_limit=1)
    first = make_order(customer, shop, [(products[0], 1)])
    second = make_order(other_customer, shop, [(products[0], 1)])

    redeem_discount("ONCE", first.id, customer.id)
    with pytest.raises(UsageLimitReached):
        redeem_discount("ONCE", second.id, other_customer.id)
    assert _count("ONCE") == 1
    assert db.session.get(Order, second.id).discount_code_id is None


def test_lost_race_on_last_use(monkeypatch, shop, customer, products, make_code, make_order):
    discount = make_code(shop, "LAST", usage_limit=1)
    order = make_order(customer, shop, [(products[0], 1)])
    real_lock = redemption_service._lock_discount

    def lock_then_lose(discount_id):
        locked = real_lock(discount_id)
        # another checkout takes the last use after our read
        db.session.execute(
            update(DiscountCode).where(DiscountCode.id == discount_id)
            .values(current_usage_count=1)
            .execution_options(synchronize_session=False)
        )
        return locked

    monkeypatch.setattr(redemption_service, "_lock_discount", lock_then_lose)

    with pytest.raises(UsageLimitReached):
        redeem_discount("LAST", order.id, customer.id)
    assert DiscountUsage.query.count() == 0
    assert db.session.get(Order, order.id).discount_code_id is None
    db.session.refresh(discount)
    assert discount.current_usage_count == 0


def test_per_user_limit(shop, customer, products, make_code, make_order):
    make_code(shop, "ONEEACH", usage_limit_per_user=1)
    first = make_order(customer, shop, [(products[0], 1)])
    second = make_order(customer, shop, [(products[1], 1)])

    redeem_discount("ONEEACH", first.id, customer.id)
    with pytest.raises(PerUserLimitReached):
        redeem_discount("ONEEACH", second.id, customer.id)
    assert _count("ONEEACH") == 1


def test_order_of_another_user(shop, customer, other_customer, products, make_code, make_order):
    make_code(shop, "SAVE20")
    order = make_order(customer, shop, [(products[0], 1)])
    with pytest.raises(NotFound):
        redeem_discount("SAVE20", order.id, other_customer.id)
    with pytest.raises(NotFound):
        redeem_discount("SAVE20", 9999, customer.id)


def test_order_from_another_shop(shop, other_shop, customer, foreign_product, make_code, make_order):
    make_code(shop, "SAVE20")
    order = make_order(customer, other_shop, [(foreign_product, 1)])
    with pytest.raises(ShopMismatch):
        redeem_discount("SAVE20", order.id, customer.id)


def test_minimum_checked_on_whole_order(shop, customer, products, make_code, make_order):
    vase, scarf, _ = products
    make_code(shop, "MIN120", minimum_order_amount=Decimal("120"), excluded_products=[scarf.id])
    small = make_order(customer, shop, [(vase, 1)])
    with pytest.raises(MinimumNotMet):
        redeem_discount("MIN120", small.id, customer.id)

    # scarf does not get the discount but still counts toward the minimum
    big = make_order(customer, shop, [(vase, 1), (scarf, 1)])
    assert redeem_discount("MIN120", big.id, customer.id).discount_amount == Decimal("20.00")
