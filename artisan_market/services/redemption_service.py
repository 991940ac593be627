# artisan_market/services/redemption_service.py
"""
Apply a discount code to a placed order.

The read path (``validate_discount``) is advisory. Here the same checks are
repeated once the code row is write-locked, the usage counter is bumped with a
conditional UPDATE so it can never pass ``usage_limit``, and the usage row
plus the order stamp are written in the same transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import or_, select, update

from ..extensions import db
from ..model import DiscountCode, DiscountUsage, Order
from ..utils.dates import utcnow
from ..utils.money import Money, ZERO, round_money, to_float
from .discount_service import (
    ensure_minimum, ensure_usable, find_discount, rule_of, user_usage_count,
)
from .eligibility import DiscountScope, filter_eligible, order_line_items
from .errors import (
    AlreadyApplied, NotApplicable, NotFound, PerUserLimitReached, UsageLimitReached,
)
from .pricing import compute_discount
from .tx import transaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Redemption:
    usage_id: str
    discount_code: str
    discount_amount: Money
    order_total: Money
    final_amount: Money

    def as_api(self):
        return {
            "usage_id": self.usage_id,
            "discount_code": self.discount_code,
            "discount_amount": to_float(self.discount_amount),
            "order_total": to_float(self.order_total),
            "final_amount": to_float(self.final_amount),
        }


def _lock_discount(discount_id) -> DiscountCode:
    # a no-op write takes the row lock (the database lock on SQLite), so the
    # per-user count and order checks that follow see every committed use
    db.session.execute(
        update(DiscountCode)
        .where(DiscountCode.id == discount_id)
        .values(current_usage_count=DiscountCode.current_usage_count)
        .execution_options(synchronize_session=False)
    )
    stmt = (
        select(DiscountCode)
        .where(DiscountCode.id == discount_id)
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one()


def _claim_use(discount_id) -> bool:
    stmt = (
        update(DiscountCode)
        .where(
            DiscountCode.id == discount_id,
            or_(DiscountCode.usage_limit.is_(None),
                DiscountCode.current_usage_count < DiscountCode.usage_limit),
        )
        .values(current_usage_count=DiscountCode.current_usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def redeem_discount(code, order_id, user_id, now=None) -> Redemption:
    now = now or utcnow()

    discount = find_discount(code)
    if discount is None:
        raise NotFound("Invalid discount code")

    order = db.session.get(Order, order_id)
    if order is None or str(order.user_id) != str(user_id):
        raise NotFound("Order not found")

    ensure_usable(discount, order.shop_id, now)

    items = order_line_items(order)
    order_total = round_money(sum((it.line_total for it in items), ZERO))
    if order_total <= 0:
        raise NotApplicable("Order has no billable items")
    ensure_minimum(discount, order_total)

    eligible = filter_eligible(DiscountScope.of(discount), items)
    if not eligible.applicable:
        raise NotApplicable("Discount code is not applicable to any item in this order")

    amount = round_money(compute_discount(eligible.subtotal, rule_of(discount)))
    final_amount = round_money(max(order_total - amount, ZERO))

    with transaction("redeem discount code", on_integrity_error=AlreadyApplied()):
        locked = _lock_discount(discount.id)
        db.session.refresh(order)
        ensure_usable(locked, order.shop_id, now)

        if locked.usage_limit_per_user is not None:
            if user_usage_count(locked.id, order.user_id) >= locked.usage_limit_per_user:
                raise PerUserLimitReached("You have reached the usage limit for this discount code")

        already = DiscountUsage.query.filter_by(discount_code_id=locked.id, order_id=order.id).first()
        if already is not None or order.discount_code_id is not None:
            raise AlreadyApplied()

        if not _claim_use(locked.id):
            raise UsageLimitReached("Discount code usage limit exceeded")

        usage = DiscountUsage(
            discount_code_id=locked.id,
            user_id=order.user_id,
            order_id=order.id,
            discount_amount=amount,
            used_at=now,
        )
        db.session.add(usage)

        order.discount_code_id = locked.id
        order.subtotal = order_total
        order.discount_amount = amount
        order.total = final_amount
        db.session.flush()
        usage_id = str(usage.id)

    logger.info("discount %s redeemed on order %s for %s", locked.discount_code, order.id, amount)
    return Redemption(usage_id, locked.discount_code, amount, order_total, final_amount)
