"""
Typed failures raised by the promotions services.

Every expected failure carries a stable ``kind`` string and the HTTP status
the blueprints answer with, so callers can branch on the reason instead of
parsing messages.
"""


class PromotionError(Exception):
    kind = "error"
    status = 400
    default_message = "promotion error"

    def __init__(self, message=None, data=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.data = data


class NotFound(PromotionError):
    kind = "not_found"
    status = 404
    default_message = "not found"


class Expired(PromotionError):
    kind = "expired"
    default_message = "discount code has expired"


class Inactive(PromotionError):
    kind = "inactive"
    default_message = "discount code is not active"


class ShopMismatch(PromotionError):
    kind = "shop_mismatch"
    default_message = "discount code is not valid for this shop"


class UsageLimitReached(PromotionError):
    kind = "usage_limit_reached"
    status = 409
    default_message = "discount code usage limit exceeded"


class PerUserLimitReached(PromotionError):
    kind = "per_user_limit_reached"
    status = 409
    default_message = "you have reached the usage limit for this discount code"


class MinimumNotMet(PromotionError):
    kind = "minimum_not_met"
    default_message = "minimum order amount not met"


class NotApplicable(PromotionError):
    kind = "not_applicable"
    status = 422
    default_message = "discount code is not applicable to items in this order"


class AlreadyApplied(PromotionError):
    kind = "already_applied"
    status = 409
    default_message = "a discount code has already been applied to this order"


class Conflict(PromotionError):
    kind = "conflict"
    status = 409
    default_message = "conflict"


class ValidationError(PromotionError):
    kind = "validation_error"
    status = 422
    default_message = "invalid input"


class InternalError(PromotionError):
    kind = "internal"
    status = 500
    default_message = "internal error"
